# errors.py
"""Exceptions raised by the mongo_toolkit package."""

from typing import Optional


class MongoToolkitError(Exception):
    """Base class for every error raised by this package."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ConfigurationError(MongoToolkitError):
    """Raised when connection settings or the .env file are missing."""


class ConnectionSetupError(MongoToolkitError):
    """Raised when the MongoDB client cannot be created or verified."""


class NotConnectedError(MongoToolkitError):
    """Raised when an operation needs a handle that was never connected."""


class DocumentError(MongoToolkitError):
    """Raised for malformed document, filter or update input."""


class ImportCommandError(MongoToolkitError):
    """
    Raised when the external import tool fails for a file.

    Attributes:
        file_path (str): The file that was being imported.
        returncode (Optional[int]): Exit status of the tool, or None when
                                    the executable could not be started.
        stderr (str): Whatever the tool wrote to stderr.
    """

    def __init__(
        self,
        message: str,
        file_path: str,
        returncode: Optional[int]=None,
        stderr: str="",
    ):
        self.file_path = file_path
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)
