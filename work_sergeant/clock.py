"""Time source used by the state machines.

Everything that needs "now" or needs to wait goes through a Clock so tests
can drive time by hand.
"""
import time
from datetime import datetime, timezone


class Clock:
    """Interface for reading the current time and waiting."""

    def now(self) -> datetime:
        raise NotImplementedError

    def sleep(self, seconds: float) -> None:
        raise NotImplementedError


class SystemClock(Clock):
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)


def to_iso(ts: datetime) -> str:
    """
    Format an aware datetime as ISO-8601 UTC with a Z suffix.

    Microseconds are kept when present, so a stored start time measures the
    same elapsed time as the in-memory one it came from.
    """
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def from_iso(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def elapsed_seconds(start: datetime, end: datetime) -> int:
    """Whole seconds between two instants, never negative."""
    return max(0, int((end - start).total_seconds()))
