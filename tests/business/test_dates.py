"""Currency and date utility tests."""
from datetime import date, datetime

import pytest

from business.dates import (
    add_minutes, end_of_month, end_of_week, format_currency, months_before,
    normalize_date, parse_currency, parse_date, parse_time, start_of_week,
    this_month_range, weekday_index,
)


class TestCurrency:
    """Thousands-separated currency strings."""

    @pytest.mark.parametrize("value, expected", [
        (1500000, "1,500,000"),
        ("1500000", "1,500,000"),
        ("1,500,000", "1,500,000"),
        (0, "0"),
        (None, ""),
        ("", ""),
        ("abc", ""),
    ])
    def test_format_currency(self, value, expected):
        assert format_currency(value) == expected

    def test_parse_currency(self):
        assert parse_currency("1,500,000") == 1500000
        assert parse_currency("junk") == 0
        assert parse_currency(None) == 0


class TestDateRanges:
    """Week ranges start on Sunday."""

    def test_weekday_index_sunday_zero(self):
        assert weekday_index(date(2024, 3, 3)) == 0
        assert weekday_index(date(2024, 3, 4)) == 1
        assert weekday_index(date(2024, 3, 9)) == 6

    def test_start_and_end_of_week(self):
        assert start_of_week(date(2024, 3, 6)) == datetime(2024, 3, 3)
        end = end_of_week(date(2024, 3, 6))
        assert end.date() == date(2024, 3, 9)
        assert (end.hour, end.minute, end.second) == (23, 59, 59)

    def test_end_of_month_leap_year(self):
        assert end_of_month(date(2024, 2, 10)).date() == date(2024, 2, 29)

    def test_this_month_range(self):
        start, end = this_month_range(date(2024, 4, 15))
        assert start == datetime(2024, 4, 1)
        assert end.date() == date(2024, 4, 30)

    def test_months_before_clamps_day(self):
        assert months_before(date(2024, 7, 31), 5) == date(2024, 2, 29)
        assert months_before(date(2024, 1, 15), 2) == date(2023, 11, 15)


class TestParsing:
    """Date and time parsing."""

    def test_parse_date_variants(self):
        assert parse_date("2024-03-04") == date(2024, 3, 4)
        assert parse_date("2024-03-04T10:00:00.000Z") == date(2024, 3, 4)
        assert parse_date(datetime(2024, 3, 4, 10)) == date(2024, 3, 4)
        assert parse_date("03/04/2024") is None
        assert parse_date(None) is None

    def test_normalize_date(self):
        assert normalize_date(date(2024, 3, 4)) == "2024-03-04"
        assert normalize_date("garbage") == ""

    def test_parse_time(self):
        assert parse_time("09:30") == 570

    @pytest.mark.parametrize("value", ["24:00", "10:60", "1030", ""])
    def test_parse_time_invalid(self, value):
        with pytest.raises(ValueError):
            parse_time(value)

    def test_add_minutes(self):
        assert add_minutes("14:00", 50) == "14:50"
        assert add_minutes("23:30", 50) == "00:20"
