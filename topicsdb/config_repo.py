from .config import load_config

config = load_config()
