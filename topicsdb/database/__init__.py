import os
from os import getenv
from pathlib import Path
from typing import Optional, Mapping, Sequence, Union

from boltons.iterutils import first
from dotenv import dotenv_values
from furl import furl
from jsonmodels import models
from jsonmodels.errors import ValidationError
from jsonmodels.fields import StringField
from pymongo import MongoClient

from topicsdb.config import ConfigurationError
from topicsdb.config_repo import config

log = config.logger("database")


class MissingConnectionString(ConfigurationError):
    pass


class DatabaseEntry(models.Base):
    host = StringField(required=True)
    db = StringField(required=True)


def get_connection_string_keys() -> Sequence[str]:
    return config.get("mongo.connection_string_keys")


def get_db_name() -> str:
    return getenv(config.get("mongo.db_name_env")) or config.get("mongo.default_db")


def _read_env_file(env_file: Union[str, Path, None]) -> Mapping[str, Optional[str]]:
    if not env_file:
        return {}
    path = Path(env_file)
    if not path.is_file():
        return {}
    try:
        # values are taken verbatim, passwords may contain ${...}
        return dotenv_values(path, interpolate=False)
    except (OSError, UnicodeDecodeError) as ex:
        log.warning(f"Could not read {path}, falling back to the environment: {ex}")
        return {}


def resolve_connection_string(
    argument: str = None,
    env_file: Union[str, Path, None] = None,
    environ: Mapping[str, str] = None,
) -> str:
    """
    Return the mongodb connection string, looked up in this order:
    the explicit argument, DB_URL/MONGO_URL in the local environment file
    and finally DB_URL/MONGO_URL in the process environment.
    Raise MissingConnectionString if none of the sources has one.
    """
    if argument:
        return argument

    keys = get_connection_string_keys()
    file_values = _read_env_file(env_file)
    environ = os.environ if environ is None else environ

    for source in (file_values, environ):
        value = first((source.get(key) for key in keys), key=bool)
        if value:
            return value.strip()

    raise MissingConnectionString(
        f"No connection string found (tried: argument, {env_file}, {', '.join(keys)})"
    )


def redact_host(host: str) -> str:
    try:
        url = furl(host)
    except ValueError:
        # multi-host seed lists are not parsed by furl
        return host.rpartition("@")[-1]
    if url.password:
        url.password = "******"
    return url.url


def create_entry(host: str, db: str = None) -> DatabaseEntry:
    entry = DatabaseEntry(host=host, db=db or get_db_name())
    try:
        entry.validate()
    except ValidationError as ex:
        raise ConfigurationError(f"Invalid database entry: {ex.args[0]}")
    return entry


def connect(entry: DatabaseEntry) -> MongoClient:
    """
    Create a client for the entry host and make sure the server is reachable.
    The caller owns the returned client and must close it
    """
    log.info(f"Connecting to mongodb host {redact_host(entry.host)}")
    client = MongoClient(host=entry.host)
    try:
        server_version = client.server_info()["version"]
    except Exception:
        client.close()
        raise
    log.info(f"Connected to mongodb server version {server_version}")
    return client
