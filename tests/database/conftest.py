"""Fixtures for isolated database module tests.

Provides reusable fixtures for all database test modules, including
a fresh temp-file SQLite DatabaseManager for each test.
"""
import os
import shutil
import tempfile
from datetime import date

import pytest

from database import DatabaseManager
from database.base_crud import BaseCRUD


@pytest.fixture
def temp_db():
    """Yield a fresh DatabaseManager bound to a temp SQLite database."""
    temp_dir = tempfile.mkdtemp(prefix="db-tests-")
    db_path = os.path.join(temp_dir, "test.db")
    manager = DatabaseManager(database_url=f"sqlite:///{db_path}")
    manager.create_tables()

    try:
        yield manager
    finally:
        manager.close()
        shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def db_conn(temp_db):
    """Yield a DatabaseConnection from the temp_db manager."""
    return temp_db.conn


@pytest.fixture
def base_crud(db_conn):
    """Yield a BaseCRUD instance."""
    return BaseCRUD(db_conn)


@pytest.fixture
def sample_date():
    """Stable date value for deterministic tests."""
    return date(2024, 3, 4)


@pytest.fixture
def member(temp_db):
    """A member registered on 2024-03-04 without any sale."""
    return temp_db.members.create({
        "name": "Kim Minji",
        "total_sessions": 10,
        "unit_price": 50000,
        "registration_date": "2024-03-04",
    })


@pytest.fixture
def make_event(temp_db, member):
    """Factory creating workout events for the shared member."""
    def _make(event_date="2024-03-04", start_time="10:00", end_time="10:50", **extra):
        data = {
            "date": event_date,
            "type": "workout",
            "title": member.name,
            "start_time": start_time,
            "end_time": end_time,
            "member_id": member.id,
        }
        data.update(extra)
        return temp_db.events.create(data)
    return _make
