"""MongoDB collection access and mongoimport bulk loading."""

from .config import MongoSettings, load_env_file
from .errors import (
    ConfigurationError,
    ConnectionSetupError,
    DocumentError,
    ImportCommandError,
    MongoToolkitError,
    NotConnectedError,
)
from .import_json import MongoImporter, get_file_paths, move_file
from .mongodb_library import MongoDBConnection

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "ConnectionSetupError",
    "DocumentError",
    "ImportCommandError",
    "MongoDBConnection",
    "MongoImporter",
    "MongoSettings",
    "MongoToolkitError",
    "NotConnectedError",
    "get_file_paths",
    "load_env_file",
    "move_file",
]
