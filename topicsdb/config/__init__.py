from .basic import BasicConfig, ConfigurationError


def load_config() -> BasicConfig:
    config = BasicConfig()
    config.initialize_logging()
    return config
