"""Attendance sheet scan matching tests."""
from business.records import TrackedMember
from business.scan import (
    MATCHED, UNMATCHED, match_scanned_sessions, selected_session_requests,
)

ROSTER = [
    TrackedMember(id="member-1", name="Kim Minji", unit_price=50000),
    TrackedMember(id="member-2", name="Lee Jun", unit_price=45000),
    TrackedMember(id="member-3", name="Lee Jun", unit_price=1),
]


def test_match_is_trimmed_and_case_insensitive():
    scanned = match_scanned_sessions(
        [{"member_name": "  kim minji ", "session_date": "2024-03-04"}], ROSTER
    )
    assert scanned[0].status == MATCHED
    assert scanned[0].matched_id == "member-1"
    assert scanned[0].unit_price == 50000
    assert scanned[0].selected


def test_duplicate_names_match_first():
    scanned = match_scanned_sessions(
        [{"member_name": "Lee Jun", "session_date": "2024-03-04"}], ROSTER
    )
    assert scanned[0].matched_id == "member-2"


def test_unmatched_not_selectable():
    scanned = match_scanned_sessions(
        [{"member_name": "Kim Min", "session_date": "2024-03-04"}], ROSTER
    )
    item = scanned[0]
    assert item.status == UNMATCHED
    assert not item.selected
    item.toggle()
    assert not item.selected


def test_dates_normalized():
    scanned = match_scanned_sessions(
        [{"member_name": "Lee Jun", "session_date": "2024-03-04T00:00:00Z"}], ROSTER
    )
    assert scanned[0].session_date == "2024-03-04"


def test_selected_requests():
    scanned = match_scanned_sessions(
        [
            {"member_name": "Kim Minji", "session_date": "2024-03-04"},
            {"member_name": "Lee Jun", "session_date": "2024-03-05"},
            {"member_name": "Nobody", "session_date": "2024-03-05"},
        ],
        ROSTER,
    )
    scanned[1].toggle()
    requests = selected_session_requests(scanned)
    assert [(r.member_id, r.session_date) for r in requests] == [("member-1", "2024-03-04")]
    assert requests[0].class_count == 1
