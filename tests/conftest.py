"""Shared fixtures: an in-memory stand-in for pymongo.MongoClient."""

from __future__ import annotations

from typing import Any

import pytest

from mongo_toolkit import mongodb_library


class FakeCollection:
    """Records every driver call and returns a canned or marker result."""

    results: dict[str, Any] = {}

    def __init__(self, database: str, name: str) -> None:
        self.database = database
        self.name = name
        self.calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []

    def __getattr__(self, method: str) -> Any:
        if method.startswith("_"):
            raise AttributeError(method)

        def _call(*args: Any, **kwargs: Any) -> Any:
            self.calls.append((method, args, kwargs))
            return self.results.get(method, f"{method}-result")

        return _call


class FakeDatabase:
    def __init__(self, name: str) -> None:
        self.name = name
        self.collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection(self.name, name))


class FakeAdmin:
    def __init__(self, error: Exception | None) -> None:
        self._error = error
        self.commands: list[str] = []

    def command(self, name: str) -> dict[str, float]:
        self.commands.append(name)
        if self._error is not None:
            raise self._error
        return {"ok": 1.0}


class FakeClient:
    instances: list["FakeClient"] = []
    ping_error: Exception | None = None

    def __init__(self, uri: str, **kwargs: Any) -> None:
        self.uri = uri
        self.kwargs = kwargs
        self.closed = False
        self.admin = FakeAdmin(type(self).ping_error)
        self.databases: dict[str, FakeDatabase] = {}
        type(self).instances.append(self)

    def __getitem__(self, name: str) -> FakeDatabase:
        return self.databases.setdefault(name, FakeDatabase(name))

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_client(monkeypatch: pytest.MonkeyPatch) -> type[FakeClient]:
    FakeClient.instances = []
    FakeClient.ping_error = None
    FakeCollection.results = {}
    monkeypatch.setattr(mongodb_library, "MongoClient", FakeClient)
    return FakeClient


@pytest.fixture(autouse=True)
def _clean_mongo_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for suffix in ("HOST", "USER", "PASSWORD", "DATABASE", "COLLECTION"):
        monkeypatch.delenv(f"MONGO_{suffix}", raising=False)


@pytest.fixture
def fake_results(fake_client: type[FakeClient]) -> dict[str, Any]:
    """Canned return values keyed by driver method name."""
    return FakeCollection.results
