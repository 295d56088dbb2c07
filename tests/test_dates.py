"""Tests for member-local day bucketing."""

from datetime import date, datetime, timedelta, timezone

import pytest  # type: ignore[import-not-found]

from timeboard.core.dates import (
    bucket_date,
    clamp_tz_offset,
    day_bounds,
    ensure_utc,
    parse_date_key,
    parse_instant,
    week_dates,
)
from timeboard.core.errors import ValidationError


class TestClampTzOffset:
    """Test offset normalization."""

    def test_passes_valid_offsets(self) -> None:
        """Test in-range offsets are kept."""
        assert clamp_tz_offset(-120) == -120
        assert clamp_tz_offset(300) == 300
        assert clamp_tz_offset("60") == 60

    def test_clamps_out_of_range(self) -> None:
        """Test offsets are clamped to [-720, 840]."""
        assert clamp_tz_offset(-1000) == -720
        assert clamp_tz_offset(2000) == 840

    def test_non_numeric_becomes_zero(self) -> None:
        """Test garbage input falls back to UTC."""
        assert clamp_tz_offset(None) == 0
        assert clamp_tz_offset("abc") == 0
        assert clamp_tz_offset(float("nan")) == 0
        assert clamp_tz_offset(True) == 0

    def test_truncates_fractions(self) -> None:
        """Test fractional minutes are truncated toward zero."""
        assert clamp_tz_offset(90.9) == 90
        assert clamp_tz_offset(-90.9) == -90


class TestBucketDate:
    """Test mapping instants to local days."""

    def test_late_utc_entry_lands_on_next_local_day(self) -> None:
        """Test 23:30Z at UTC+2 is filed under the next day."""
        start = datetime(2024, 1, 1, 23, 30, tzinfo=timezone.utc)
        assert bucket_date(start, -120) == date(2024, 1, 2)

    def test_early_utc_entry_lands_on_previous_local_day(self) -> None:
        """Test 02:00Z at UTC-5 is filed under the previous day."""
        start = datetime(2024, 1, 2, 2, 0, tzinfo=timezone.utc)
        assert bucket_date(start, 300) == date(2024, 1, 1)

    def test_zero_offset_is_utc_date(self) -> None:
        """Test default offset buckets by UTC date."""
        start = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)
        assert bucket_date(start) == date(2024, 3, 10)

    def test_naive_instants_are_utc(self) -> None:
        """Test naive datetimes are treated as UTC."""
        assert ensure_utc(datetime(2024, 1, 1, 12)).tzinfo == timezone.utc
        assert bucket_date(datetime(2024, 1, 1, 23, 30), -120) == date(2024, 1, 2)


class TestDayBounds:
    """Test local day intervals."""

    def test_bounds_shift_with_offset(self) -> None:
        """Test a UTC+2 day starts at 22:00Z the evening before."""
        start, end = day_bounds(date(2024, 1, 2), -120)
        assert start == datetime(2024, 1, 1, 22, 0, tzinfo=timezone.utc)
        assert end - start == timedelta(days=1)

    def test_bucketed_instant_falls_inside_bounds(self) -> None:
        """Test bucket_date and day_bounds agree."""
        instant = datetime(2024, 1, 1, 23, 30, tzinfo=timezone.utc)
        start, end = day_bounds(bucket_date(instant, -120), -120)
        assert start <= instant < end


class TestParsing:
    """Test date and instant parsing."""

    def test_week_dates_oldest_first(self) -> None:
        """Test the seven days end on the given date."""
        dates = week_dates(date(2024, 1, 7))
        assert dates[0] == date(2024, 1, 1)
        assert dates[-1] == date(2024, 1, 7)
        assert len(dates) == 7

    def test_parse_date_key(self) -> None:
        """Test YYYY-MM-DD parsing and rejection."""
        assert parse_date_key("2024-02-29") == date(2024, 2, 29)
        with pytest.raises(ValidationError):
            parse_date_key("2024-13-01")

    def test_parse_instant_accepts_z_suffix(self) -> None:
        """Test a trailing Z is read as UTC."""
        parsed = parse_instant("2024-01-01T09:00:00Z")
        assert parsed == datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)

    def test_parse_instant_converts_offsets(self) -> None:
        """Test explicit offsets are converted to UTC."""
        parsed = parse_instant("2024-01-01T11:00:00+02:00")
        assert parsed == datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)

    def test_parse_instant_rejects_garbage(self) -> None:
        """Test invalid and missing instants raise ValidationError."""
        with pytest.raises(ValidationError, match="Invalid start_at"):
            parse_instant("yesterday-ish", "start_at")
        with pytest.raises(ValidationError, match="Missing stop_at"):
            parse_instant("", "stop_at")
