"""Local snapshot cache tests."""
import json

from business.cache import SnapshotCache
from business.records import DataSnapshot, SaleEntry, TrackedMemberWithStats


def _snapshot():
    return DataSnapshot(
        members=[TrackedMemberWithStats(id="member-1", name="Kim Minji", ltv=500000)],
        sales=[SaleEntry(id="sale-1", sale_date="2024-03-04", member_id="member-1",
                         member_name="Kim Minji", class_count=10, unit_price=50000,
                         amount=500000)],
    )


class TestSnapshotCache:
    """Stale-while-revalidate snapshot file."""

    def test_missing_file(self, cache):
        assert cache.load() is None

    def test_save_then_load(self, cache):
        cache.save(_snapshot())
        loaded = cache.load()
        assert loaded.members[0].ltv == 500000
        assert loaded.sales[0].amount == 500000
        assert loaded.sessions == []

    def test_other_key_is_ignored(self, cache):
        cache.save(_snapshot())
        other = SnapshotCache(path=cache.path, key="another-key")
        assert other.load() is None

    def test_corrupt_file(self, cache):
        with open(cache.path, "w", encoding="utf-8") as f:
            f.write("{not json")
        assert cache.load() is None

    def test_mismatched_record_fields(self, cache):
        payload = {cache.key: {"data": {"members": [{"unexpected": 1}]}}}
        with open(cache.path, "w", encoding="utf-8") as f:
            json.dump(payload, f)
        assert cache.load() is None

    def test_clear(self, cache):
        cache.save(_snapshot())
        cache.clear()
        assert cache.load() is None
