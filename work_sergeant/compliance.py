"""Break compliance and work statistics from the monthly archives."""
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from . import enforcement
from .clock import Clock, SystemClock, from_iso
from .errors import ValidationError
from .storage import StateStore, archive_name

logger = logging.getLogger("work_sergeant.compliance")

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def _rate(numerator: int, denominator: int) -> Optional[float]:
    if denominator <= 0:
        return None
    return round(numerator / denominator, 4)


def _average(values: List[int]) -> Optional[int]:
    if not values:
        return None
    return int(sum(values) / len(values))


def compliance_feedback(compliance_rate: Optional[float], completion_rate: Optional[float]) -> Optional[str]:
    """Pick the one-line verdict for a compliance report."""
    if compliance_rate is not None and compliance_rate < 0.5:
        return "Less than half of work sessions were followed by a break"
    if completion_rate is not None and completion_rate < 0.5:
        return "Many breaks were stopped early; try to finish the full break"
    if (
        compliance_rate is not None
        and completion_rate is not None
        and compliance_rate >= 0.8
        and completion_rate >= 0.8
    ):
        return "Excellent! You're keeping a good work-break balance"
    return None


class ComplianceReporter:
    """Read-only reports over ``sessions_*`` and ``breaks_*`` archives."""

    def __init__(self, store: StateStore, config: Dict[str, Any], clock: Optional[Clock] = None):
        self.store = store
        self.config = config
        self.clock = clock or SystemClock()

    def _month_records(self, kind: str, month: str) -> List[Dict[str, Any]]:
        return self.store.read_records(f"{kind}_{month}")

    def break_compliance(self, month: Optional[str] = None) -> Dict[str, Any]:
        """
        Compare breaks taken against work sessions for one month.

        Args:
            month: "YYYY-MM" (defaults to the current month)

        Returns:
            Report dictionary. Rates are None when their denominator is zero.

        Raises:
            ValidationError: malformed month
        """
        if month is None:
            month = self.clock.now().strftime("%Y-%m")
        elif not MONTH_PATTERN.match(month):
            raise ValidationError(f"Invalid month '{month}', expected YYYY-MM")

        sessions = self._month_records("sessions", month)
        breaks = self._month_records("breaks", month)
        state = enforcement.load_state(self.store, self.config)

        report: Dict[str, Any] = {
            "month": month,
            "sessions_count": len(sessions),
            "breaks_count": len(breaks),
            "tracking_enabled": state.track_breaks,
            "hint": None,
        }
        if not state.track_breaks:
            report["hint"] = "Enable break tracking: work-sergeant work strict on"

        if not sessions and not breaks:
            report.update(
                {
                    "status": "no_data",
                    "message": "No break data available for this month",
                    "breaks_completed_fully_count": 0,
                    "compliance_rate": None,
                    "completion_rate": None,
                    "avg_break_duration_seconds": None,
                    "avg_planned_duration_seconds": None,
                    "feedback": None,
                }
            )
            return report

        completed = sum(1 for b in breaks if b.get("completed_fully") is True)
        compliance_rate = _rate(len(breaks), len(sessions))
        completion_rate = _rate(completed, len(breaks))

        report.update(
            {
                "status": "ok",
                "breaks_completed_fully_count": completed,
                "compliance_rate": compliance_rate,
                "completion_rate": completion_rate,
                "avg_break_duration_seconds": _average(
                    [int(b.get("duration_seconds") or 0) for b in breaks]
                ),
                "avg_planned_duration_seconds": _average(
                    [int(b.get("planned_duration_seconds") or 0) for b in breaks]
                ),
                "feedback": compliance_feedback(compliance_rate, completion_rate),
            }
        )
        logger.debug(
            f"Compliance for {month}: sessions={len(sessions)} breaks={len(breaks)} "
            f"completed={completed}"
        )
        return report

    def _sessions_since(self, start: datetime, now: datetime) -> List[Dict[str, Any]]:
        months = []
        cursor = start.replace(day=1)
        while cursor <= now:
            months.append(archive_name("sessions", cursor))
            cursor = (cursor + timedelta(days=32)).replace(day=1)

        selected = []
        for name in months:
            for record in self.store.read_records(name):
                try:
                    started = from_iso(record["start_time"])
                except (KeyError, TypeError, ValueError):
                    continue
                if start <= started <= now:
                    selected.append(record)
        return selected

    @staticmethod
    def _summarize(records: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "sessions": len(records),
            "total_duration_seconds": sum(int(r.get("duration_seconds") or 0) for r in records),
            "pomodoros": sum(1 for r in records if not r.get("early_stop", False)),
        }

    def work_stats(self) -> Dict[str, Any]:
        """Session counts and totals for today, this week (since Monday) and this month."""
        now = self.clock.now()
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_start = day_start - timedelta(days=day_start.weekday())
        month_start = day_start.replace(day=1)

        today = self._summarize(self._sessions_since(day_start, now))
        today["date"] = day_start.strftime("%Y-%m-%d")
        week = self._summarize(self._sessions_since(week_start, now))
        week["week_start"] = week_start.strftime("%Y-%m-%d")
        month = self._summarize(self._sessions_since(month_start, now))
        month["month"] = month_start.strftime("%Y-%m")

        return {"today": today, "week": week, "month": month}
