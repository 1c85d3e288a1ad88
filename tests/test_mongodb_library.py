"""Tests for the MongoDB connection facade."""

from __future__ import annotations

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from mongo_toolkit.config import MongoSettings
from mongo_toolkit.errors import ConnectionSetupError, NotConnectedError
from mongo_toolkit.mongodb_library import MongoDBConnection


def _connection(**kwargs: object) -> MongoDBConnection:
    return MongoDBConnection("localhost:27017", "app", "s3cret", "todofuken", "prefectures", **kwargs)


def test_connect_chain_builds_uri_and_credentials(fake_client) -> None:
    conn = _connection(serverSelectionTimeoutMS=500)

    result = conn.connect_client().connect_database().connect_collection()

    assert result is conn
    client = fake_client.instances[0]
    assert client.uri == "mongodb://localhost:27017"
    assert client.kwargs == {
        "username": "app",
        "password": "s3cret",
        "authSource": "todofuken",
        "serverSelectionTimeoutMS": 500,
    }
    assert client.admin.commands == ["ping"]
    assert conn.collection.name == "prefectures"
    assert conn.collection.database == "todofuken"


def test_connect_without_user_skips_credentials(fake_client) -> None:
    conn = MongoDBConnection("db:27017", "", "", "todofuken", "prefectures")

    conn.connect_client(verify=False)

    client = fake_client.instances[0]
    assert client.kwargs == {}
    assert client.admin.commands == []


def test_ping_failure_raises_setup_error_and_closes_client(fake_client) -> None:
    fake_client.ping_error = ServerSelectionTimeoutError("no servers")
    conn = _connection()

    with pytest.raises(ConnectionSetupError) as excinfo:
        conn.connect_client()

    assert "mongodb://localhost:27017" in str(excinfo.value)
    assert fake_client.instances[0].closed
    assert not conn.is_connected


def test_connect_then_disconnect(fake_client) -> None:
    conn = _connection().connect()

    conn.disconnect()

    assert fake_client.instances[0].closed
    assert not conn.is_connected
    with pytest.raises(NotConnectedError):
        conn.find_one({})


def test_disconnect_without_connect_is_noop() -> None:
    _connection().disconnect()


def test_operations_require_collection(fake_client) -> None:
    conn = _connection()
    with pytest.raises(NotConnectedError):
        conn.insert_one({"name": "pi"})

    conn.connect_client()
    with pytest.raises(NotConnectedError):
        conn.connect_collection()

    conn.connect_database()
    with pytest.raises(NotConnectedError):
        conn.find_multiple({})


def test_database_requires_client() -> None:
    with pytest.raises(NotConnectedError):
        _connection().connect_database()


def test_switching_database_drops_collection(fake_client) -> None:
    conn = _connection().connect()
    old_collection = conn.collection

    conn.connect_database("archive")

    assert conn.database_name == "archive"
    with pytest.raises(NotConnectedError):
        conn.delete_many({})
    assert old_collection.calls == []

    conn.connect_collection()
    assert conn.collection.database == "archive"
    assert conn.collection is not old_collection


def test_connect_collection_can_switch_collection(fake_client) -> None:
    conn = _connection().connect()

    conn.connect_collection("cities")

    assert conn.collection.name == "cities"
    assert conn.collection_name == "cities"


@pytest.mark.parametrize(
    ("method", "args", "driver_method"),
    [
        ("find_one", ({"_id": 1},), "find_one"),
        ("find_multiple", ({"name": "bob"},), "find"),
        ("insert_one", ({"name": "pi", "value": 3.14159},), "insert_one"),
        ("insert_many", ([{"name": "Alice"}, {"name": "Bob"}],), "insert_many"),
        ("update_one", ({"_id": 1}, {"$set": {"email": "a@b.c"}}), "update_one"),
        ("update_many", ({"age": 3}, {"$inc": {"age": 1}}), "update_many"),
        ("replace_one", ({"_id": 1}, {"location": "NYC"}), "replace_one"),
        ("delete_one", ({"name": "bob"},), "delete_one"),
        ("delete_many", ({"name": "bob"},), "delete_many"),
        ("find_one_and_delete", ({"_id": 1},), "find_one_and_delete"),
        ("find_one_and_replace", ({"_id": 1}, {"location": "NYC"}), "find_one_and_replace"),
        ("find_one_and_update", ({"_id": 1}, {"$set": {"x": 1}}), "find_one_and_update"),
    ],
)
def test_operations_forward_to_driver(fake_client, method: str, args: tuple, driver_method: str) -> None:
    conn = _connection().connect()

    result = getattr(conn, method)(*args)

    assert result == f"{driver_method}-result"
    assert conn.collection.calls == [(driver_method, args, {})]


def test_driver_options_pass_through(fake_client) -> None:
    conn = _connection().connect()

    conn.update_many({"a": 1}, {"$set": {"b": 2}}, upsert=True)

    assert conn.collection.calls == [("update_many", ({"a": 1}, {"$set": {"b": 2}}), {"upsert": True})]


def test_find_key_exists_builds_exists_filter(fake_client) -> None:
    conn = _connection().connect()

    conn.find_key_exists("en")
    conn.find_key_exists("en", False)

    assert conn.collection.calls == [
        ("find", ({"en": {"$exists": True}},), {}),
        ("find", ({"en": {"$exists": False}},), {}),
    ]


def test_update_by_id_filters_on_id(fake_client) -> None:
    conn = _connection().connect()

    conn.update_by_id(42, {"$set": {"ja": "東京都"}})

    assert conn.collection.calls == [("update_one", ({"_id": 42}, {"$set": {"ja": "東京都"}}), {})]


class _Cursor:
    def __init__(self, docs: list[dict]) -> None:
        self._docs = docs
        self.closed = False

    def __iter__(self):
        return iter(self._docs)

    def close(self) -> None:
        self.closed = True


def test_fetch_all_drains_and_closes_cursor(fake_client, monkeypatch: pytest.MonkeyPatch) -> None:
    conn = _connection().connect()
    cursor = _Cursor([{"ja": "東京都"}, {"ja": "大阪府"}])
    monkeypatch.setattr(conn.collection, "find", lambda *args, **kwargs: cursor, raising=False)

    documents = conn.fetch_all({})

    assert documents == [{"ja": "東京都"}, {"ja": "大阪府"}]
    assert cursor.closed


def test_context_manager_connects_and_disconnects(fake_client) -> None:
    with _connection() as conn:
        assert conn.collection.name == "prefectures"
        client = fake_client.instances[0]

    assert client.closed
    assert not conn.is_connected


def test_context_manager_disconnects_on_error(fake_client) -> None:
    with pytest.raises(RuntimeError):
        with _connection():
            raise RuntimeError("boom")

    assert fake_client.instances[0].closed


def test_from_settings_and_repr_hide_password(fake_client) -> None:
    settings = MongoSettings(
        host="db:27017",
        user="app",
        password="s3cret",
        database_name="todofuken",
        collection_name="prefectures",
    )

    conn = MongoDBConnection.from_settings(settings)

    assert conn.build_uri() == "mongodb://db:27017"
    assert "s3cret" not in repr(conn)
    conn.connect_client()
    assert fake_client.instances[0].kwargs["password"] == "s3cret"


def test_bad_host_raises_setup_error() -> None:
    conn = MongoDBConnection("localhost:99999", "", "", "todofuken", "prefectures")

    with pytest.raises(ConnectionSetupError):
        conn.connect_client(verify=False)

    assert not conn.is_connected
