"""
Datetime utilities.

Provides timezone-aware datetime functions and settlement period helpers.
A period is a Monday-to-Sunday week keyed by its Monday (YYYY-MM-DD).
"""

from datetime import UTC, date, datetime, timedelta

from compensation.constants import PERIOD_DAYS
from compensation.exceptions import ValidationError


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def parse_period_key(period_key: str | None) -> date:
    """
    Validate a period key and return its start date.

    Args:
        period_key: Monday of the week as YYYY-MM-DD

    Returns:
        Period start date

    Raises:
        ValidationError: Missing, malformed or not a Monday
    """
    if not period_key:
        raise ValidationError("Period key is required")
    try:
        start = date.fromisoformat(period_key)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Malformed period key {period_key!r}: expected YYYY-MM-DD") from e
    if start.isoformat() != period_key:
        raise ValidationError(f"Malformed period key {period_key!r}: expected YYYY-MM-DD")
    if start.weekday() != 0:
        raise ValidationError(f"Period key {period_key} is not a Monday")
    return start


def period_key_for(moment: datetime | date) -> str:
    """Key of the period containing ``moment``."""
    day = moment.date() if isinstance(moment, datetime) else moment
    return (day - timedelta(days=day.weekday())).isoformat()


def period_end(period_start: date) -> date:
    """Last day (Sunday) of the period."""
    return period_start + timedelta(days=PERIOD_DAYS - 1)


def previous_period_key(period_key: str) -> str:
    """Key of the week before ``period_key``."""
    return (parse_period_key(period_key) - timedelta(days=PERIOD_DAYS)).isoformat()


def trailing_period_keys(period_key: str, count: int) -> list[str]:
    """``count`` period keys ending with ``period_key``, oldest first."""
    start = parse_period_key(period_key)
    return [
        (start - timedelta(days=PERIOD_DAYS * i)).isoformat()
        for i in range(count - 1, -1, -1)
    ]
