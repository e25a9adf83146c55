"""DatabaseManager facade tests.

Tests for:
- register_member: member + sale + new_member event in one transaction
- record_session: session + completed workout event, linked by id
- remove_session: synthesized event deleted, schedule event reverted
- fetch_all_data: derived member statistics
"""
import pytest

from business.records import DataSnapshot, TrackedMemberWithStats
from database.models import Event


@pytest.fixture
def registered(temp_db):
    """A member registered through the facade with 10 sessions at 50000."""
    return temp_db.register_member(
        "Kim Minji", 10, 50000, registration_date="2024-03-04"
    )


# ============================================================
# register_member Tests
# ============================================================
class TestRegisterMember:
    """Tests for DatabaseManager.register_member."""

    def test_creates_member_sale_and_event(self, temp_db, registered):
        member = registered["member"]
        sale = registered["sale"]
        event = registered["event"]

        assert member.name == "Kim Minji"
        assert sale.member_id == member.id
        assert sale.amount == 500000
        assert sale.sale_date == "2024-03-04"
        assert event.type == "new_member"
        assert event.title == "New member: Kim Minji"
        assert event.date == "2024-03-04"

    def test_invalid_name_writes_nothing(self, temp_db):
        with pytest.raises(ValueError):
            temp_db.register_member("  ", 10, 50000)
        assert temp_db.members.list_all() == []
        assert temp_db.sales.list_all() == []

    def test_get_member(self, temp_db, registered):
        member_id = registered["member"].id
        assert temp_db.get_member(member_id).name == "Kim Minji"
        assert temp_db.get_member("member-20990101-1") is None

    def test_get_member_purchases(self, temp_db, registered):
        purchases = temp_db.get_member_purchases(registered["member"].id)
        assert [p.class_count for p in purchases] == [10]


# ============================================================
# record_session / remove_session Tests
# ============================================================
class TestRecordSession:
    """Manual sessions and their synthesized events."""

    def test_session_linked_to_completed_event(self, temp_db, registered):
        member = registered["member"]
        record = temp_db.record_session(
            member.id, member.name, "2024-03-05", 1, 50000,
            start_time="10:00", end_time="10:50",
        )
        assert record.completion_source_id == f"schedule-{record.id}"

        event = temp_db.events.get_by_id(Event, record.completion_source_id)
        assert event.status == "completed"
        assert event.type == "workout"
        assert event.date == "2024-03-05"
        assert event.start_time == "10:00"

    def test_default_times(self, temp_db, registered):
        member = registered["member"]
        record = temp_db.record_session(member.id, member.name, "2024-03-05", 2, 50000)
        event = temp_db.events.get_by_id(Event, record.completion_source_id)
        assert (event.start_time, event.end_time) == ("00:00", "00:00")
        assert record.class_count == 2

    def test_remove_deletes_synthesized_event(self, temp_db, registered):
        member = registered["member"]
        record = temp_db.record_session(member.id, member.name, "2024-03-05", 1, 50000)

        result = temp_db.remove_session(record.id)

        assert result["event_action"] == "deleted"
        assert result["event_id"] == f"schedule-{record.id}"
        assert temp_db.events.get_by_id(Event, result["event_id"]) is None
        assert temp_db.sessions.list_all() == []

    def test_remove_reverts_schedule_event(self, temp_db, registered):
        member = registered["member"]
        event = temp_db.events.create({
            "date": "2024-03-06", "type": "workout", "title": member.name,
            "start_time": "10:00", "end_time": "10:50", "member_id": member.id,
            "status": "completed",
        })
        record = temp_db.sessions.create({
            "member_id": member.id, "member_name": member.name,
            "session_date": "2024-03-06", "unit_price": 50000,
            "completion_source_id": event.id,
        })

        result = temp_db.remove_session(record.id)

        assert result["event_action"] == "reverted"
        assert temp_db.events.get_by_id(Event, event.id).status == "scheduled"

    def test_remove_without_source(self, temp_db, registered):
        member = registered["member"]
        record = temp_db.sessions.create({
            "member_id": member.id, "member_name": member.name,
            "session_date": "2024-03-06",
        })
        result = temp_db.remove_session(record.id)
        assert result["event_action"] is None
        assert result["event_id"] is None

    def test_remove_missing(self, temp_db):
        assert temp_db.remove_session("session-20990101-1") is None


# ============================================================
# fetch_all_data Tests
# ============================================================
class TestFetchAllData:
    """Bulk load with derived statistics."""

    def test_empty_database(self, temp_db):
        snapshot = temp_db.fetch_all_data()
        assert isinstance(snapshot, DataSnapshot)
        assert snapshot.members == []

    def test_derived_stats(self, temp_db, registered):
        member = registered["member"]
        temp_db.sales.create({
            "member_id": member.id, "member_name": member.name,
            "sale_date": "2024-04-01", "class_count": 20, "unit_price": 45000,
        })
        temp_db.record_session(member.id, member.name, "2024-03-05", 1, 50000)
        temp_db.record_session(member.id, member.name, "2024-03-12", 2, 50000)
        temp_db.events.create({
            "date": "2024-04-02", "type": "workout", "title": member.name,
            "start_time": "10:00", "end_time": "10:50", "member_id": member.id,
        })

        snapshot = temp_db.fetch_all_data()
        stats = snapshot.members[0]

        assert isinstance(stats, TrackedMemberWithStats)
        assert stats.used_sessions == 3
        assert stats.total_sessions == 20
        assert stats.unit_price == 45000
        assert stats.cumulative_total_sessions == 30
        assert stats.ltv == 500000 + 900000
        assert stats.last_session_date == "2024-03-12"
        assert stats.scheduled_sessions == 1
        assert len(snapshot.sales) == 2
        assert len(snapshot.sessions) == 2
        # new_member + two synthesized + one scheduled
        assert len(snapshot.calendar_events) == 4
