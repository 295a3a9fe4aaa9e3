import logging
import logging.config
import os
import platform
from functools import reduce
from os.path import expandvars
from pathlib import Path
from typing import List, Any

from pyhocon import ConfigTree, ConfigFactory
from pyhocon.exceptions import ConfigException
from pyparsing import (
    ParseFatalException,
    ParseException,
    RecursiveGrammarException,
    ParseSyntaxException,
)

EXTRA_CONFIG_PATHS = ("/opt/topicsdb/config",)
DEFAULT_PREFIX = "topicsdb"
EXTRA_CONFIG_PATH_SEP = ":" if platform.system() != "Windows" else ";"


class BasicConfig:
    """
    HOCON configuration assembled from a folder of *.conf files.
    Each file becomes a top level key named after the file (backfill.conf -> "backfill").
    Later sources override earlier ones: the default folder, then any folder listed
    in TOPICSDB_CONFIG_DIR, then single values injected as TOPICSDB__<section>__<key>
    """

    NotSet = object()

    env_key_sep = "__"
    default_config_dir = "default"

    def __init__(self, folder: str = None, prefix: str = DEFAULT_PREFIX):
        folder = (
            Path(folder)
            if folder
            else Path(__file__).with_name(self.default_config_dir)
        )
        if not folder.is_dir():
            raise ValueError(f"Invalid configuration folder: {folder}")

        self.prefix = prefix
        self.config_dir_env_key = f"{prefix.upper()}_CONFIG_DIR"
        self.values_env_key_prefix = f"{prefix.upper()}{self.env_key_sep}"

        self._config = self._load([folder, *self._get_extra_paths()])

    def get(self, key: str, default: Any = NotSet) -> Any:
        value = self._config.get(key, default)
        if value is self.NotSet:
            raise KeyError(
                f"Unable to find value for key '{key}' and default value was not provided."
            )
        return value

    def logger(self, name: str) -> logging.Logger:
        if Path(name).is_file():
            name = Path(name).stem
        return logging.getLogger(f"{self.prefix}.{name}")

    def initialize_logging(self):
        logging_config = self.get("logging", None)
        if not logging_config:
            return
        logging.config.dictConfig(logging_config.as_plain_ordered_dict())

    def _load(self, paths: List[Path]) -> ConfigTree:
        configs = [self._read_folder(path) for path in paths]
        configs.append(self._read_env_values())

        return reduce(
            lambda last, config: ConfigTree.merge_configs(last, config, copy_trees=True),
            configs,
            ConfigTree(),
        )

    def _read_env_values(self) -> ConfigTree:
        """ TOPICSDB__BACKFILL__SAMPLE_SIZE=3 is read as backfill.sample_size: 3 """
        result = ConfigTree()
        prefix = self.values_env_key_prefix

        for key in sorted(k for k in os.environ if k.startswith(prefix)):
            path = key[len(prefix) :].replace(self.env_key_sep, ".").lower()
            result = ConfigTree.merge_configs(
                result, ConfigFactory.parse_string(f"{path}: {os.environ[key]}")
            )

        return result

    def _get_extra_paths(self) -> List[Path]:
        value = os.environ.get(self.config_dir_env_key)
        paths = [
            Path(expandvars(v)).expanduser()
            for v in (value.split(EXTRA_CONFIG_PATH_SEP) if value else EXTRA_CONFIG_PATHS)
        ]

        invalid = [path for path in paths if not path.is_dir()]
        if value and invalid:
            # logging is not configured yet
            print(
                f"WARNING: Invalid paths in {self.config_dir_env_key} env var: {' '.join(map(str, invalid))}"
            )

        return [path for path in paths if path.is_dir()]

    def _read_folder(self, conf_root: Path) -> ConfigTree:
        conf = ConfigTree()
        for file in sorted(conf_root.rglob("*.conf")):
            key = ".".join(file.relative_to(conf_root).with_suffix("").parts)
            conf.put(key, self._read_single_file(file))
        return conf

    def _read_single_file(self, file_path: Path) -> ConfigTree:
        try:
            return ConfigFactory.parse_file(file_path)
        except ParseSyntaxException as ex:
            msg = f"Failed parsing {file_path} ({ex.__class__.__name__}): (at char {ex.loc}, line:{ex.lineno}, col:{ex.column})"
            raise ConfigurationError(msg, file_path=file_path) from ex
        except (
            ParseException,
            ParseFatalException,
            RecursiveGrammarException,
            ConfigException,
        ) as ex:
            msg = f"Failed parsing {file_path} ({ex.__class__.__name__}): {ex}"
            raise ConfigurationError(msg, file_path=file_path) from ex


class ConfigurationError(Exception):
    def __init__(self, msg, file_path=None, *args):
        super().__init__(msg, *args)
        self.file_path = file_path
