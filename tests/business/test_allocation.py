"""FIFO allocation engine tests."""
import pytest

from business.allocation import (
    allocate, find_active_purchase, find_active_unit_price, remaining_balance,
    sort_purchases, split_new_sessions,
)


@pytest.fixture
def two_purchases(make_sale):
    """Two 10-session purchases at different prices, given out of order."""
    return [
        make_sale("2024-02-01", 10, 45000),
        make_sale("2024-01-01", 10, 50000),
    ]


# ============================================================
# allocate
# ============================================================
class TestAllocate:
    """Oldest purchase is consumed first."""

    def test_partial_second_purchase(self, two_purchases):
        allocated = allocate(two_purchases, 15)
        assert [p.used_count for p in allocated] == [10, 5]
        assert [p.sale.sale_date for p in allocated] == ["2024-01-01", "2024-02-01"]

    def test_total_is_capped_by_capacity(self, two_purchases):
        allocated = allocate(two_purchases, 25)
        assert sum(p.used_count for p in allocated) == 20

    def test_zero_used(self, two_purchases):
        allocated = allocate(two_purchases, 0)
        assert [p.used_count for p in allocated] == [0, 0]
        assert not allocated[0].is_exhausted
        assert allocated[0].remaining == 10

    def test_no_purchases(self):
        assert allocate([], 5) == []

    def test_active_purchase(self, two_purchases):
        active = find_active_purchase(allocate(two_purchases, 12))
        assert active.sale.unit_price == 45000
        assert active.remaining == 8

    def test_active_purchase_none_when_exhausted(self, two_purchases):
        assert find_active_purchase(allocate(two_purchases, 20)) is None


# ============================================================
# find_active_unit_price
# ============================================================
class TestFindActiveUnitPrice:
    """Unit price for the next recorded session."""

    def test_first_purchase_active(self, two_purchases):
        active = find_active_unit_price(two_purchases, 8)
        assert active.unit_price == 50000
        assert active.remaining_in_purchase == 2

    def test_boundary_moves_to_next_purchase(self, two_purchases):
        assert find_active_unit_price(two_purchases, 10).unit_price == 45000

    def test_all_exhausted(self, two_purchases):
        assert find_active_unit_price(two_purchases, 20) is None

    def test_no_purchases(self):
        assert find_active_unit_price([], 0) is None

    def test_same_day_keeps_input_order(self, make_sale):
        purchases = [make_sale("2024-01-01", 5, 1), make_sale("2024-01-01", 5, 2)]
        assert [s.unit_price for s in sort_purchases(purchases)] == [1, 2]
        assert find_active_unit_price(purchases, 5).unit_price == 2


# ============================================================
# split_new_sessions
# ============================================================
class TestSplitNewSessions:
    """Pricing a multi-session record across purchases."""

    def test_within_one_purchase(self, two_purchases):
        split = split_new_sessions(two_purchases, 2, 3)
        assert split.chunks == [(3, 50000)]
        assert split.overflow == 0

    def test_across_purchases(self, two_purchases):
        split = split_new_sessions(two_purchases, 8, 4)
        assert split.chunks == [(2, 50000), (2, 45000)]

    def test_overflow(self, two_purchases):
        split = split_new_sessions(two_purchases, 18, 5)
        assert split.chunks == [(2, 45000)]
        assert split.overflow == 3

    def test_no_purchases_no_overflow(self):
        split = split_new_sessions([], 0, 3)
        assert split.chunks == []
        assert split.overflow == 0


def test_remaining_balance_can_go_negative(two_purchases):
    assert remaining_balance(two_purchases, 15) == 5
    assert remaining_balance(two_purchases, 22) == -2
