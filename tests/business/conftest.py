"""Fixtures for business module tests.

Pure engine tests use the record factories; FrontDeskStore tests get a
store bound to a fresh temp-file SQLite database.
"""
import os
import shutil
import tempfile

import pytest

from business.cache import SnapshotCache
from business.records import (
    CalendarEvent, MemberSession, SaleEntry, TrackedMemberWithStats,
)
from business.store import FrontDeskStore
from database import DatabaseManager


@pytest.fixture
def temp_dir():
    path = tempfile.mkdtemp(prefix="business-tests-")
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def db(temp_dir):
    """Yield a DatabaseManager bound to a temp SQLite database."""
    manager = DatabaseManager(database_url=f"sqlite:///{os.path.join(temp_dir, 'store.db')}")
    manager.create_tables()
    try:
        yield manager
    finally:
        manager.close()


@pytest.fixture
def store(db):
    """A refreshed FrontDeskStore without a snapshot cache."""
    front_desk = FrontDeskStore(db)
    front_desk.refresh()
    return front_desk


@pytest.fixture
def cache(temp_dir):
    return SnapshotCache(path=os.path.join(temp_dir, "cache.json"), key="test-cache")


@pytest.fixture
def make_sale():
    """Factory for SaleEntry records of a single member."""
    counter = {"seq": 0}

    def _make(sale_date, class_count, unit_price, member_id="member-1",
              member_name="Kim Minji"):
        counter["seq"] += 1
        return SaleEntry(
            id=f"sale-{counter['seq']}", sale_date=sale_date,
            member_id=member_id, member_name=member_name,
            class_count=class_count, unit_price=unit_price,
            amount=class_count * unit_price,
        )
    return _make


@pytest.fixture
def make_session():
    """Factory for MemberSession records."""
    counter = {"seq": 0}

    def _make(session_date, class_count=1, unit_price=50000,
              member_id="member-1", member_name="Kim Minji"):
        counter["seq"] += 1
        return MemberSession(
            id=f"session-{counter['seq']}", session_date=session_date,
            member_id=member_id, member_name=member_name,
            class_count=class_count, unit_price=unit_price,
        )
    return _make


@pytest.fixture
def make_calendar_event():
    """Factory for workout CalendarEvent records."""
    counter = {"seq": 0}

    def _make(event_date="2024-03-04", start_time="10:00", end_time="11:00",
              status="scheduled", member_id="member-1"):
        counter["seq"] += 1
        return CalendarEvent(
            id=f"event-{counter['seq']}", date=event_date, type="workout",
            title="Kim Minji", start_time=start_time, end_time=end_time,
            member_id=member_id, status=status,
        )
    return _make


@pytest.fixture
def make_member():
    """Factory for TrackedMemberWithStats records."""
    counter = {"seq": 0}

    def _make(cumulative_total_sessions=10, used_sessions=0,
              last_session_date=None, forecast_status=None, name=None, **extra):
        counter["seq"] += 1
        return TrackedMemberWithStats(
            id=f"member-{counter['seq']}",
            name=name or f"Member {counter['seq']}",
            total_sessions=cumulative_total_sessions,
            used_sessions=used_sessions,
            cumulative_total_sessions=cumulative_total_sessions,
            last_session_date=last_session_date,
            forecast_status=forecast_status,
            **extra
        )
    return _make
