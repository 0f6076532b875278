"""Violation tracking, focus scoring and command activity."""
import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from .clock import Clock, SystemClock, from_iso, to_iso
from .models import EnforcementState
from .storage import StateStore

logger = logging.getLogger("work_sergeant.focus")

MIN_SCORE = 1
MAX_SCORE = 10

ACTIVITY_PREFIX = "activity_"


def record_violation(state: EnforcementState) -> EnforcementState:
    """Return a copy of ``state`` with one more violation."""
    return replace(state, violation_count=state.violation_count + 1)


def reset_violations(state: EnforcementState) -> EnforcementState:
    return replace(state, violation_count=0)


def violation_penalty(violation_count: int) -> int:
    """Score adjustment for the number of violations (positive when clean)."""
    if violation_count <= 0:
        return 2
    if violation_count <= 2:
        return -1
    if violation_count <= 4:
        return -2
    return -3


def calculate_focus_score(
    session_active: bool, violation_count: int, recent_activity: bool
) -> int:
    """
    Calculate the focus score on a 1-10 scale.

    Starts at a neutral 5, then: +2 for an active session, +2 with no
    violations (or -1/-2/-3 as violations pile up), +1 for recent command
    activity. The result is clamped to 1..10.

    Args:
        session_active: Whether a work session is running
        violation_count: Policy violations recorded so far
        recent_activity: Whether the activity tracker saw recent commands

    Returns:
        Focus score
    """
    score = 5
    if session_active:
        score += 2
    score += violation_penalty(violation_count)
    if recent_activity:
        score += 1
    return max(MIN_SCORE, min(MAX_SCORE, score))


class ActivityTracker:
    """Records CLI commands and answers "has the user been busy lately"."""

    def __init__(
        self,
        store: StateStore,
        config: Dict[str, Any],
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        focus_config = config.get("focus", {})
        self.window_minutes = int(focus_config.get("activity_window_minutes", 15))
        self.threshold = int(focus_config.get("activity_threshold", 10))
        self.retention_days = int(focus_config.get("activity_retention_days", 90))

    def _archive(self, day) -> str:
        return f"{ACTIVITY_PREFIX}{day.strftime('%Y-%m-%d')}"

    def record(self, command: str) -> None:
        now = self.clock.now()
        name = self._archive(now)
        # First event of the day prunes old logs
        if not self.store.read_records(name):
            self.cleanup()
        self.store.append_record(name, {"timestamp": to_iso(now), "command": command})

    def cleanup(self) -> List[str]:
        """
        Delete daily activity logs older than the retention period.

        Returns:
            Names of the deleted archives
        """
        if self.retention_days <= 0:
            return []

        cutoff = self._archive(self.clock.now() - timedelta(days=self.retention_days))
        deleted = []
        for name in self.store.list_archives(ACTIVITY_PREFIX):
            day = name[len(ACTIVITY_PREFIX):]
            try:
                datetime.strptime(day, "%Y-%m-%d")
            except ValueError:
                continue
            # Same-format names sort chronologically
            if name < cutoff:
                self.store.delete_archive(name)
                deleted.append(name)

        if deleted:
            logger.info(f"Removed {len(deleted)} activity logs older than {self.retention_days} days")
        return deleted

    def recent_count(self) -> int:
        now = self.clock.now()
        cutoff = now - timedelta(minutes=self.window_minutes)
        days = {self._archive(now), self._archive(cutoff)}

        count = 0
        for name in days:
            for record in self.store.read_records(name):
                try:
                    ts = from_iso(record["timestamp"])
                except (KeyError, TypeError, ValueError):
                    continue
                if cutoff <= ts <= now:
                    count += 1
        return count

    def has_recent_activity(self) -> bool:
        return self.recent_count() > self.threshold


def score_recommendations(score: int) -> list:
    """Human advice for a focus score."""
    if score >= 8:
        return ["Excellent focus - keep going!"]
    if score >= 6:
        return ["Good focus - stay on track"]
    if score >= 4:
        return ["Some distractions - refocus on your goal"]
    return [
        "Low focus - consider:",
        "1. Review your goal",
        "2. Take a break: 5 minutes",
        "3. Restart: work-sergeant work stop && work-sergeant work start",
    ]


def focus_summary(
    session_active: bool,
    violation_count: int,
    recent_activity: bool,
    goal: Optional[str] = None,
) -> Dict[str, Any]:
    score = calculate_focus_score(session_active, violation_count, recent_activity)
    logger.debug(
        f"Focus score calculated: {score} (active={session_active}, "
        f"violations={violation_count}, recent_activity={recent_activity})"
    )
    return {
        "score": score,
        "scale": f"{MIN_SCORE}-{MAX_SCORE}",
        "session_active": session_active,
        "goal": goal,
        "violations": violation_count,
        "recent_activity": recent_activity,
        "recommendations": score_recommendations(score),
    }
