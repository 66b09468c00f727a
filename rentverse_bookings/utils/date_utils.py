"""Date manipulation utilities"""

from datetime import date, datetime, timezone
from typing import Any

from dateutil.relativedelta import relativedelta


def add_months(start: date, months: int) -> date:
    """Same day of month `months` later, clamped to the end of shorter months"""
    return start + relativedelta(months=months)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def epoch_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def parse_gateway_timestamp(value: Any) -> datetime:
    """
    Parse an ISO-8601 timestamp from the gateway, falling back to now.

    Raises:
        ValueError: Value is present but not an ISO-8601 string
    """
    if value is None or value == "":
        return utcnow()
    if not isinstance(value, str):
        raise ValueError(f"Expected an ISO-8601 string, got {type(value).__name__}")
    # Python < 3.11 does not accept the trailing Z
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
