"""Pomodoro counter and break selection for Work Sergeant."""
import logging
from typing import Any, Dict, Tuple

from .storage import POMODORO_COUNT, StateStore

logger = logging.getLogger("work_sergeant.pomodoro")


class PomodoroCounter:
    """Completed-pomodoro counter persisted as a scalar file."""

    def __init__(self, store: StateStore):
        self.store = store

    def get(self) -> int:
        return self.store.read_counter(POMODORO_COUNT)

    def increment(self) -> int:
        count = self.get() + 1
        self.store.write_counter(POMODORO_COUNT, count)
        logger.debug(f"Pomodoro count incremented to {count}")
        return count

    def reset(self) -> None:
        self.store.write_counter(POMODORO_COUNT, 0)
        logger.info("Pomodoro count reset")


def break_after_pomodoro(count: int, config: Dict[str, Any]) -> Tuple[str, int]:
    """
    Pick the break that should follow the given number of pomodoros.

    Every ``pomodoros_until_long``-th pomodoro earns a long break; a count of
    zero (nothing completed yet) always gets a short one.

    Args:
        count: Completed pomodoros
        config: Configuration dictionary

    Returns:
        (break_type, duration_seconds)
    """
    breaks = config.get("breaks", {})
    until_long = max(1, int(breaks.get("pomodoros_until_long", 4)))

    if count > 0 and count % until_long == 0:
        return "long", int(breaks.get("long_seconds", 900))
    return "short", int(breaks.get("short_seconds", 300))
