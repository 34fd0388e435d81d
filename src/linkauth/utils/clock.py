"""Time source used by token issuance, verification and maintenance."""

from collections.abc import Callable
from datetime import UTC, datetime

# A clock returns the current time as an aware UTC datetime
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Wall-clock time in UTC."""
    return datetime.now(UTC)
