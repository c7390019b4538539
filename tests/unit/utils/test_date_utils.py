"""Unit tests for fiscal-year and date helpers."""

from datetime import date, datetime, timezone

import pytest

from capture_mcp.utils.date_utils import (
    UNKNOWN_MONTH,
    fiscal_year_window,
    format_sam_date,
    month_bucket,
    parse_award_date,
    trailing_window,
)


pytestmark = pytest.mark.fast


class TestFiscalYearWindow:
    def test_fiscal_year_runs_october_to_september(self):
        assert fiscal_year_window(2024) == ("2023-10-01", "2024-09-30")

    def test_fiscal_year_2000(self):
        assert fiscal_year_window(2000) == ("1999-10-01", "2000-09-30")


class TestSamDates:
    def test_format_sam_date_zero_pads(self):
        assert format_sam_date(date(2024, 3, 5)) == "03/05/2024"

    def test_trailing_window_spans_requested_days(self):
        assert trailing_window(date(2024, 3, 31), 30) == ("03/01/2024", "03/31/2024")

    def test_trailing_window_crosses_year_boundary(self):
        assert trailing_window(date(2024, 1, 10), 30) == ("12/11/2023", "01/10/2024")


class TestParseAwardDate:
    def test_iso_date(self):
        assert parse_award_date("2024-03-15") == datetime(2024, 3, 15, tzinfo=timezone.utc)

    def test_trailing_z(self):
        parsed = parse_award_date("2024-03-15T10:30:00Z")
        assert parsed == datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc)

    def test_offset_is_converted_to_utc(self):
        parsed = parse_award_date("2024-03-31T23:30:00-05:00")
        assert parsed == datetime(2024, 4, 1, 4, 30, tzinfo=timezone.utc)

    def test_us_format_fallback(self):
        assert parse_award_date("01/15/2023") == datetime(2023, 1, 15, tzinfo=timezone.utc)

    def test_date_object(self):
        assert parse_award_date(date(2022, 7, 4)) == datetime(2022, 7, 4, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "   ", "not a date", 20240315, "2024-13-45"])
    def test_unparseable_returns_none(self, value):
        assert parse_award_date(value) is None


class TestMonthBucket:
    def test_year_month(self):
        assert month_bucket("2024-03-15") == "2024-03"

    def test_uses_utc_month(self):
        assert month_bucket("2024-03-31T23:30:00-05:00") == "2024-04"

    def test_unknown_for_missing_or_bad_dates(self):
        assert month_bucket(None) == UNKNOWN_MONTH
        assert month_bucket("garbage") == UNKNOWN_MONTH
