"""
Shared pytest fixtures for backend tests.
Uses a temp-file SQLite database per test for isolation.
"""
import os
import sqlite3
import sys

# Pin settings before any backend module reads them
os.environ["TIMEZONE"] = "UTC"
os.environ["DEFAULT_DUE_HOUR"] = "12"
os.environ["CHAT_LIST_LIMIT"] = "20"

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database

PHONE = "+15550001111"
OTHER_PHONE = "+15550002222"

SCHEMA = """
    CREATE TABLE owners (
        id TEXT PRIMARY KEY,
        phone_key TEXT NOT NULL UNIQUE,
        name TEXT,
        created_at TEXT NOT NULL,
        last_active_at TEXT NOT NULL,
        list_context TEXT NOT NULL DEFAULT 'all'
    );

    CREATE TABLE tasks (
        id TEXT PRIMARY KEY,
        owner_id TEXT NOT NULL REFERENCES owners(id),
        description TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'New',
        priority TEXT NOT NULL DEFAULT 'Medium',
        due_date TEXT NOT NULL,
        course TEXT,
        repeat TEXT NOT NULL DEFAULT 'none',
        created_at TEXT NOT NULL
    );
"""


@pytest.fixture
def test_db(monkeypatch, tmp_path):
    """
    Create an isolated test database for each test.
    Uses a temp file (not :memory:) because database.py opens new connections per operation.
    """
    db_path = str(tmp_path / "test.db")
    monkeypatch.setattr(database, "DATABASE_PATH", db_path)
    monkeypatch.setattr(database, "init_db", lambda: None)

    # Create tables directly (skip alembic for tests)
    conn = sqlite3.connect(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()

    yield db_path


@pytest.fixture
def owner(test_db):
    return database.find_or_create_owner(PHONE)


@pytest.fixture
def other_owner(test_db):
    return database.find_or_create_owner(OTHER_PHONE)


@pytest.fixture
def app_client(test_db, monkeypatch):
    """
    Create a test client for the FastAPI app.
    Mocks init_db to skip alembic migrations.
    """
    from fastapi.testclient import TestClient
    import main

    monkeypatch.setattr(database, "init_db", lambda: None)

    with TestClient(main.app) as client:
        yield client
