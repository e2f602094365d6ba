"""Tests for period key helpers."""

from datetime import UTC, date, datetime

import pytest

from app.utils.datetime_utils import (
    parse_period_key,
    period_end,
    period_key_for,
    previous_period_key,
    trailing_period_keys,
    utc_now,
)
from compensation.exceptions import ValidationError


class TestParsePeriodKey:
    """Test period key validation."""

    def test_monday_accepted(self):
        assert parse_period_key("2025-01-06") == date(2025, 1, 6)

    @pytest.mark.parametrize("key", [None, "", "2025-13-01", "06.01.2025", "2025-1-6", "20250106"])
    def test_malformed_rejected(self, key):
        with pytest.raises(ValidationError):
            parse_period_key(key)

    def test_not_monday_rejected(self):
        with pytest.raises(ValidationError, match="not a Monday"):
            parse_period_key("2025-01-08")


class TestPeriodHelpers:
    """Test period arithmetic."""

    def test_key_for_midweek_moment(self):
        assert period_key_for(datetime(2025, 1, 9, 15, 30, tzinfo=UTC)) == "2025-01-06"

    def test_key_for_sunday_date(self):
        assert period_key_for(date(2025, 1, 12)) == "2025-01-06"

    def test_period_end_is_sunday(self):
        assert period_end(date(2025, 1, 6)) == date(2025, 1, 12)

    def test_previous_period_crosses_year(self):
        assert previous_period_key("2025-01-06") == "2024-12-30"

    def test_trailing_oldest_first(self):
        assert trailing_period_keys("2025-01-20", 3) == ["2025-01-06", "2025-01-13", "2025-01-20"]

    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo is not None
