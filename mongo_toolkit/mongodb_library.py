# mongodb_library.py
"""
MongoDB Library for connecting to a single collection and running CRUD
operations against it.

`MongoDBConnection` holds the connection parameters and the three handles
derived from them. The handles are established by an explicit, ordered
connect sequence (client -> database -> collection), each step returning
the connection so the calls can be chained:

    conn = MongoDBConnection.from_settings(MongoSettings.from_env())
    conn.connect_client().connect_database().connect_collection()
    try:
        doc = conn.find_one({"ja": "東京都"})
    finally:
        conn.disconnect()

Every data operation forwards its arguments unchanged to the PyMongo
collection and returns the driver's own result, cursor or exception.
"""

import logging
from typing import Any, Iterable, List, Mapping, Optional

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.cursor import Cursor
from pymongo.database import Database
from pymongo.errors import PyMongoError
from pymongo.results import (
    DeleteResult,
    InsertManyResult,
    InsertOneResult,
    UpdateResult,
)

from .config import MongoSettings
from .documents import id_filter, key_exists_filter
from .errors import ConnectionSetupError, NotConnectedError
from .logging_setup import mask_secret


class MongoDBConnection:
    """
    Manages one MongoDB client, one database and one collection.

    The collection handle is only valid after both the client and the
    database handle are established for the same database. Switching
    databases drops the collection handle.
    """

    URI_SCHEME = "mongodb"

    def __init__(
        self,
        host: str,
        user: str,
        password: str,
        database_name: str,
        collection_name: str,
        **client_kwargs,
    ):
        """
        Initializes the connection parameters.

        This constructor does NOT connect. Call `connect_client`,
        `connect_database` and `connect_collection` (or `connect`) first.

        Args:
            host (str): MongoDB host, optionally with port
                        (e.g., "localhost:27017").
            user (str): Username for authentication. May be empty.
            password (str): Password for authentication. May be empty.
            database_name (str): Database to use. Also the auth source,
                                 since non-root users are managed in the
                                 database they belong to.
            collection_name (str): Collection to run operations against.
            **client_kwargs: Additional keyword arguments passed directly
                             to `pymongo.MongoClient`.
        """
        self.logger = logging.getLogger(__name__)
        self.host = host
        self.user = user
        self._password = password
        self.database_name = database_name
        self.collection_name = collection_name
        self._client_kwargs = client_kwargs

        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None
        self._collection: Optional[Collection] = None

    @classmethod
    def from_settings(
        cls, settings: MongoSettings, **client_kwargs
    ) -> "MongoDBConnection":
        """Create a connection from a `MongoSettings` instance."""
        return cls(
            settings.host,
            settings.user,
            settings.password,
            settings.database_name,
            settings.collection_name,
            **client_kwargs,
        )

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(host={self.host!r}, user={self.user!r}, "
            f"database_name={self.database_name!r}, "
            f"collection_name={self.collection_name!r})"
        )

    # --- handles ---

    @property
    def client(self) -> MongoClient:
        if self._client is None:
            raise NotConnectedError(
                "MongoDB client is not connected. Call connect_client() first."
            )
        return self._client

    @property
    def database(self) -> Database:
        if self._database is None:
            raise NotConnectedError(
                "No database selected. Call connect_database() first."
            )
        return self._database

    @property
    def collection(self) -> Collection:
        if self._collection is None:
            raise NotConnectedError(
                "No collection selected. Call connect_collection() first."
            )
        return self._collection

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    # --- connect sequence ---

    def build_uri(self) -> str:
        """Return the connection URI for the configured host."""
        return f"{self.URI_SCHEME}://{self.host}"

    def connect_client(self, verify: bool=True) -> "MongoDBConnection":
        """
        Creates the MongoClient.

        Credentials are passed separately from the URI, with the database
        name as the auth source.

        Args:
            verify (bool): If True, a ping command checks that the server
                           is reachable and the credentials are accepted.

        Returns:
            MongoDBConnection: self, for chaining.

        Raises:
            ConnectionSetupError: If the host or options are rejected, or
                                  the ping fails.
        """
        uri = self.build_uri()
        auth_kwargs = {}
        if self.user:
            auth_kwargs = {
                "username": self.user,
                "password": self._password,
                "authSource": self.database_name,
            }
        self.logger.debug(
            "Creating MongoClient for %s (user='%s', password='%s', authSource='%s').",
            uri,
            self.user,
            mask_secret(self._password),
            self.database_name,
        )

        client = None
        # pymongo raises ValueError or TypeError for a malformed host or option
        try:
            client = MongoClient(uri, **auth_kwargs, **self._client_kwargs)
            if verify:
                client.admin.command("ping")
        except (PyMongoError, ValueError, TypeError) as e:
            self.logger.exception("Failed to connect MongoClient to %s.", uri)
            if client is not None:
                client.close()
            raise ConnectionSetupError(
                f"Failed to connect to MongoDB at {uri}: {e}"
            ) from e

        self._client = client
        self.logger.info("Connected MongoClient to %s.", uri)
        return self

    def connect_database(
        self, database_name: Optional[str]=None
    ) -> "MongoDBConnection":
        """
        Selects the database. Any previously selected collection is
        dropped, since it may belong to another database.

        Args:
            database_name (Optional[str]): Switch to this database. If None,
                                           uses the configured database.

        Returns:
            MongoDBConnection: self, for chaining.
        """
        client = self.client
        if database_name:
            self.database_name = database_name
        self._database = client[self.database_name]
        self._collection = None
        self.logger.debug("Selected database '%s'.", self.database_name)
        return self

    def connect_collection(
        self, collection_name: Optional[str]=None
    ) -> "MongoDBConnection":
        """
        Selects the collection in the current database.

        Args:
            collection_name (Optional[str]): Switch to this collection. If
                                             None, uses the configured one.

        Returns:
            MongoDBConnection: self, for chaining.
        """
        database = self.database
        if collection_name:
            self.collection_name = collection_name
        self._collection = database[self.collection_name]
        self.logger.debug(
            "Selected collection '%s' in database '%s'.",
            self.collection_name,
            self.database_name,
        )
        return self

    def connect(self, verify: bool=True) -> "MongoDBConnection":
        """Runs the full connect sequence."""
        return self.connect_client(verify=verify).connect_database().connect_collection()

    def disconnect(self):
        """Closes the MongoDB connection and clears every handle."""
        client = self._client
        self._client = None
        self._database = None
        self._collection = None
        if client is None:
            self.logger.debug("No active MongoDB client to close.")
            return
        try:
            client.close()
        except PyMongoError:
            self.logger.exception("Error while closing MongoDB connection.")
            return
        self.logger.info("MongoDB connection to %s closed.", self.host)

    def __enter__(self) -> "MongoDBConnection":
        if self._client is None:
            self.connect()
        elif self._collection is None:
            if self._database is None:
                self.connect_database()
            self.connect_collection()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.disconnect()

    # --- find ---

    def find_one(self, filter: Any, *args, **kwargs) -> Optional[Mapping[str, Any]]:
        """
        Returns one matching document, or None.

        filter = {"_id": id}
        """
        self.logger.debug("find_one filter=%s", filter)
        return self.collection.find_one(filter, *args, **kwargs)

    def find_multiple(self, filter: Any, *args, **kwargs) -> Cursor:
        """
        Returns a cursor over all matching documents. The caller closes it.

        filter = {"name": "bob"}
        """
        self.logger.debug("find filter=%s", filter)
        return self.collection.find(filter, *args, **kwargs)

    def find_key_exists(self, key_name: str, is_exists: bool=True, **kwargs) -> Cursor:
        """Returns a cursor over documents where `key_name` exists (or not)."""
        return self.find_multiple(key_exists_filter(key_name, is_exists), **kwargs)

    def fetch_all(self, filter: Any, *args, **kwargs) -> List[Mapping[str, Any]]:
        """Drains `find_multiple` into a list, always closing the cursor."""
        cursor = self.find_multiple(filter, *args, **kwargs)
        try:
            return list(cursor)
        finally:
            cursor.close()

    # --- insert ---

    def insert_one(self, document: Any, **kwargs) -> InsertOneResult:
        """
        Inserts one document.

        document = {"name": "pi", "value": 3.14159}
        """
        self.logger.debug("insert_one document=%s", document)
        return self.collection.insert_one(document, **kwargs)

    def insert_many(self, documents: Iterable[Any], **kwargs) -> InsertManyResult:
        """
        Inserts several documents.

        documents = [{"name": "Alice"}, {"name": "Bob"}]
        """
        self.logger.debug("insert_many documents=%s", documents)
        return self.collection.insert_many(documents, **kwargs)

    # --- update ---

    def update_one(self, filter: Any, update: Any, **kwargs) -> UpdateResult:
        """
        filter = {"_id": id}
        update = {"$set": {"email": "newemail@example.com"}}
        """
        self.logger.debug("update_one filter=%s update=%s", filter, update)
        return self.collection.update_one(filter, update, **kwargs)

    def update_many(self, filter: Any, update: Any, **kwargs) -> UpdateResult:
        """
        filter = {"birthday": today}
        update = {"$inc": {"age": 1}}
        """
        self.logger.debug("update_many filter=%s update=%s", filter, update)
        return self.collection.update_many(filter, update, **kwargs)

    def update_by_id(self, document_id: Any, update: Any, **kwargs) -> UpdateResult:
        """Updates the document whose _id is `document_id`."""
        return self.update_one(id_filter(document_id), update, **kwargs)

    def replace_one(self, filter: Any, replacement: Any, **kwargs) -> UpdateResult:
        """
        filter = {"_id": id}
        replacement = {"location": "NYC"}
        """
        self.logger.debug("replace_one filter=%s replacement=%s", filter, replacement)
        return self.collection.replace_one(filter, replacement, **kwargs)

    # --- delete ---

    def delete_one(self, filter: Any, **kwargs) -> DeleteResult:
        self.logger.debug("delete_one filter=%s", filter)
        return self.collection.delete_one(filter, **kwargs)

    def delete_many(self, filter: Any, **kwargs) -> DeleteResult:
        self.logger.debug("delete_many filter=%s", filter)
        return self.collection.delete_many(filter, **kwargs)

    # --- find and modify ---

    def find_one_and_delete(self, filter: Any, **kwargs) -> Optional[Mapping[str, Any]]:
        """Deletes one matching document and returns it."""
        self.logger.debug("find_one_and_delete filter=%s", filter)
        return self.collection.find_one_and_delete(filter, **kwargs)

    def find_one_and_replace(
        self, filter: Any, replacement: Any, **kwargs
    ) -> Optional[Mapping[str, Any]]:
        """
        Replaces one matching document. Returns the original document
        unless `return_document=ReturnDocument.AFTER` is passed.
        """
        self.logger.debug(
            "find_one_and_replace filter=%s replacement=%s", filter, replacement
        )
        return self.collection.find_one_and_replace(filter, replacement, **kwargs)

    def find_one_and_update(
        self, filter: Any, update: Any, **kwargs
    ) -> Optional[Mapping[str, Any]]:
        """
        Updates one matching document. Returns the original document
        unless `return_document=ReturnDocument.AFTER` is passed.
        """
        self.logger.debug("find_one_and_update filter=%s update=%s", filter, update)
        return self.collection.find_one_and_update(filter, update, **kwargs)
