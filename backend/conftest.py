"""
Shared fixtures for backend tests: a throwaway SQLite file and upload dir
per test, users provisioned directly in the DB, and bearer tokens for them.
"""

import pytest
from fastapi.testclient import TestClient

import backend.db as db
from backend.auth_context import create_access_token
from backend.main import app
from backend.migrate import run_migrations
from backend.modules import storage


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    monkeypatch.setattr(db, "DB_PATH", str(tmp_path / "test.db"))
    monkeypatch.setattr(storage, "UPLOAD_DIR", str(tmp_path / "uploads"))
    run_migrations()
    return tmp_path


@pytest.fixture
def conn(temp_db):
    connection = db.get_db()
    yield connection
    connection.close()


@pytest.fixture
def client(temp_db):
    return TestClient(app)


@pytest.fixture
def make_user(temp_db):
    """Create a user and return (user_id, auth headers)."""
    counter = {"n": 0}

    def _make(tier: str = "free", email: str = None):
        counter["n"] += 1
        email = email or f"user{counter['n']}@shelf.test"
        connection = db.get_db()
        try:
            cur = connection.execute("INSERT INTO users (email, tier) VALUES (?, ?)", (email, tier))
            connection.commit()
            user_id = cur.lastrowid
        finally:
            connection.close()
        return user_id, {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _make


@pytest.fixture
def user(make_user):
    return make_user()
