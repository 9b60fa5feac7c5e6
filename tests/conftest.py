import uuid
from collections import defaultdict

import pytest
from fastapi.testclient import TestClient
from pydantic import BaseModel

import main
from main import app, get_repository


class MemoryRepository:
    """Dict-backed stand-in for database.Repository with the same methods."""

    def __init__(self):
        self.collections = defaultdict(dict)

    @staticmethod
    def _matches(doc, field, value):
        actual = doc.get(field)
        if isinstance(value, (list, tuple, set)):
            return actual in value
        return actual == value

    def find(self, collection, **filters):
        return [
            dict(doc) for doc in self.collections[collection].values()
            if all(self._matches(doc, f, v) for f, v in filters.items())
        ]

    def get(self, collection, record_id):
        doc = self.collections[collection].get(record_id)
        return dict(doc) if doc else None

    def insert(self, collection, data):
        doc = data.model_dump(mode="json") if isinstance(data, BaseModel) else dict(data)
        doc["id"] = doc.get("id") or uuid.uuid4().hex
        self.collections[collection][doc["id"]] = doc
        return doc["id"]

    def update(self, collection, record_id, data):
        if record_id not in self.collections[collection]:
            return False
        self.collections[collection][record_id].update(data)
        return True

    def delete(self, collection, record_id):
        return self.collections[collection].pop(record_id, None) is not None

    def collection_names(self):
        return list(self.collections)

    def seed(self, collection, **doc):
        return self.insert(collection, doc)


@pytest.fixture
def repo():
    repository = MemoryRepository()
    repository.seed("users", id="u-admin", auth_id="auth-admin", name="Admin", role="admin")
    repository.seed("users", id="u-site", auth_id="auth-user", name="Site", role="user")
    return repository


@pytest.fixture
def client(repo):
    app.dependency_overrides[get_repository] = lambda: repo
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin():
    return {"X-Auth-Id": "auth-admin"}


@pytest.fixture
def user():
    return {"X-Auth-Id": "auth-user"}


@pytest.fixture
def no_database(monkeypatch):
    monkeypatch.setattr(main, "db", None)
