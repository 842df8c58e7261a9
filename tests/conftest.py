"""Shared pytest fixtures for MongoDB-enabled services and the Flask app."""

from __future__ import annotations

import sys
from pathlib import Path

import mongomock
import pytest

# Ensure the application package is importable during tests.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from mentor_api import database  # noqa: E402
from mentor_api.main import create_app  # noqa: E402
from mentor_api.storage import sessions  # noqa: E402


@pytest.fixture(autouse=True)
def mongo_db(monkeypatch: pytest.MonkeyPatch):
    """Provide an isolated in-memory MongoDB database for each test."""
    test_db_name = "test_mentor_app"
    monkeypatch.setenv("ENABLE_MONGODB", "true")
    monkeypatch.setenv("MONGODB_DATABASE", test_db_name)
    monkeypatch.delenv("ENABLE_AUTH", raising=False)

    client = mongomock.MongoClient()
    db = client[test_db_name]

    monkeypatch.setattr(database, "get_mongo_client", lambda: client)
    monkeypatch.setattr(database, "get_database", lambda: db)

    yield db

    sessions.clear()
    client.drop_database(test_db_name)


@pytest.fixture
def app():
    app = create_app()
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
