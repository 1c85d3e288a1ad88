# config.py
"""
Connection settings for MongoDB, loaded from the environment.

Values normally come from a `.env` file next to the working directory:

    MONGO_HOST=localhost:27017
    MONGO_USER=app
    MONGO_PASSWORD=secret
    MONGO_DATABASE=todofuken
    MONGO_COLLECTION=prefectures
"""

import logging
import os
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "MONGO_"
DEFAULT_ENV_FILE = ".env"

# settings field -> environment variable suffix
ENV_FIELDS = {
    "host": "HOST",
    "user": "USER",
    "password": "PASSWORD",
    "database_name": "DATABASE",
    "collection_name": "COLLECTION",
}
REQUIRED_FIELDS = ("host", "database_name", "collection_name")


def load_env_file(
    env_path: str=DEFAULT_ENV_FILE, override: bool=False, required: bool=True
) -> bool:
    """
    Load a .env file into the process environment.

    Args:
        env_path (str): Path of the dotenv file.
        override (bool): If True, values from the file replace variables
                         that are already set.
        required (bool): If True, a missing file is an error. Otherwise
                         the call is a no-op.

    Returns:
        bool: True if the file was found and loaded.

    Raises:
        ConfigurationError: If the file is required and does not exist.
    """
    if not os.path.isfile(env_path):
        if required:
            logger.error("Error loading .env file: %s not found", env_path)
            raise ConfigurationError(f"Error loading .env file: {env_path} not found")
        logger.debug("No .env file at %s, using the process environment.", env_path)
        return False

    load_dotenv(dotenv_path=env_path, override=override)
    logger.debug("Loaded environment from %s", env_path)
    return True


class MongoSettings(BaseModel):
    """Immutable MongoDB connection parameters."""

    model_config = ConfigDict(frozen=True)

    host: str
    user: str = ""
    password: str = Field(default="", repr=False)
    database_name: str
    collection_name: str

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]]=None, prefix: str=ENV_PREFIX
    ) -> "MongoSettings":
        """
        Build settings from `<prefix>HOST`, `<prefix>USER`,
        `<prefix>PASSWORD`, `<prefix>DATABASE` and `<prefix>COLLECTION`.

        Raises:
            ConfigurationError: If HOST, DATABASE or COLLECTION is unset
                                or empty. All missing names are reported.
        """
        if environ is None:
            environ = os.environ

        values = {
            field: environ.get(prefix + suffix, "")
            for field, suffix in ENV_FIELDS.items()
        }
        missing = [
            prefix + ENV_FIELDS[field]
            for field in REQUIRED_FIELDS
            if not values[field]
        ]
        if missing:
            error_msg = (
                "Missing required environment variables: " f"{', '.join(missing)}."
            )
            logger.error(error_msg)
            raise ConfigurationError(error_msg)
        return cls(**values)

    def with_host(self, host: str) -> "MongoSettings":
        """Return a copy pointing at another server."""
        return self.model_copy(update={"host": host})

    def with_database(self, database_name: str) -> "MongoSettings":
        """Return a copy using another database (also the auth source)."""
        return self.model_copy(update={"database_name": database_name})

    def with_collection(self, collection_name: str) -> "MongoSettings":
        """Return a copy using another collection."""
        return self.model_copy(update={"collection_name": collection_name})
