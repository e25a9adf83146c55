"""ORM model tests.

Tests for:
- Table creation (idempotent)
- to_record() conversion to plain records
- Member cascade delete of sales, sessions, events, weekly schedules
- Foreign key enforcement on SQLite
"""
import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError

from business.records import (
    CalendarEvent, ForecastEntry, MemberSession, SaleEntry, TrackedMember,
    WeeklyScheduleEntry,
)
from database.models import ClassSession, Event, Member, Sale, WeeklySchedule


class TestTableCreation:
    """Test schema creation."""

    def test_all_tables_created(self, temp_db):
        tables = set(inspect(temp_db.engine).get_table_names())
        assert {
            "tracked_members", "sales", "member_sessions", "forecast_entries",
            "calendar_events", "weekly_schedules", "app_settings",
        } <= tables

    def test_create_tables_is_idempotent(self, temp_db):
        temp_db.create_tables()
        temp_db.create_tables()
        assert "sales" in inspect(temp_db.engine).get_table_names()


class TestToRecord:
    """Test ORM -> plain record conversion."""

    def test_member_to_record(self, member):
        record = member.to_record()
        assert isinstance(record, TrackedMember)
        assert record.name == "Kim Minji"
        assert record.used_sessions == 0
        assert record.registration_date == "2024-03-04"

    def test_sale_to_record(self, temp_db, member):
        sale = temp_db.sales.create({
            "member_id": member.id, "member_name": member.name,
            "sale_date": "2024-03-04", "class_count": 10, "unit_price": 50000,
        })
        record = sale.to_record()
        assert isinstance(record, SaleEntry)
        assert record.amount == 500000
        assert record.paid_amount == 0

    def test_session_to_record(self, temp_db, member):
        session = temp_db.sessions.create({
            "member_id": member.id, "member_name": member.name,
            "session_date": "2024-03-05", "unit_price": 50000,
        })
        record = session.to_record()
        assert isinstance(record, MemberSession)
        assert record.class_count == 1
        assert record.completion_source_id is None

    def test_event_to_record(self, make_event):
        record = make_event().to_record()
        assert isinstance(record, CalendarEvent)
        assert record.status == "scheduled"
        assert record.recurrence_id is None

    def test_forecast_to_record(self, temp_db):
        entry = temp_db.forecasts.create({
            "member_name": "Lee Jun", "class_count": 10, "amount": 600000,
            "forecast_date": "2024-03-04",
        })
        record = entry.to_record()
        assert isinstance(record, ForecastEntry)
        assert record.unit_price == 60000

    def test_weekly_to_record(self, temp_db, member):
        entry = temp_db.weekly_schedules.create({
            "day_of_week": 1, "start_time": "10:00", "end_time": "10:50",
            "member_id": member.id, "member_name": member.name,
        })
        record = entry.to_record()
        assert isinstance(record, WeeklyScheduleEntry)
        assert record.status == "planned"


class TestCascadeDelete:
    """Deleting a member removes everything attached to it."""

    def test_member_delete_cascades(self, temp_db, member, make_event):
        temp_db.sales.create({
            "member_id": member.id, "member_name": member.name,
            "sale_date": "2024-03-04", "class_count": 10, "unit_price": 50000,
        })
        temp_db.sessions.create({
            "member_id": member.id, "member_name": member.name,
            "session_date": "2024-03-05",
        })
        make_event()
        temp_db.weekly_schedules.create({
            "day_of_week": 1, "start_time": "10:00", "end_time": "10:50",
            "member_id": member.id, "member_name": member.name,
        })

        assert temp_db.members.delete(member.id) is True

        with temp_db.get_session() as session:
            assert session.query(Member).count() == 0
            assert session.query(Sale).count() == 0
            assert session.query(ClassSession).count() == 0
            assert session.query(Event).count() == 0
            assert session.query(WeeklySchedule).count() == 0


class TestForeignKeys:
    """SQLite foreign keys are enforced."""

    def test_sale_for_unknown_member_rejected(self, temp_db):
        with pytest.raises(IntegrityError):
            temp_db.sales.create({
                "member_id": "member-20240304-99", "member_name": "Ghost",
                "sale_date": "2024-03-04", "class_count": 1, "unit_price": 1,
            })
