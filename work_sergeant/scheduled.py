"""Scheduled break daemon.

When enabled, a repeating background timer (role ``scheduled``) fires every
``breaks.scheduled_interval_minutes``. Each time it fires while neither a
work session nor a break is running, the user is notified and a short
detached break starts.
"""
import logging
from typing import Any, Dict, Optional

from .breaks import DETACHED, BreakMachine
from .clock import Clock, SystemClock, to_iso
from .errors import AlreadyActive, ValidationError, WorkSergeantError
from .notifications import Notifier, safe_notify
from .phrases import SCHEDULED_BREAK_TITLE, scheduled_break_message
from .session import WorkSessionMachine
from .timers import TimerSupervisor

logger = logging.getLogger("work_sergeant.scheduled")

SCHEDULED = "scheduled"
ENABLE_HINT = 'Set "scheduled_enabled": true in the "breaks" section of config.json'


class ScheduledBreaks:
    """Start, stop and inspect the scheduled break daemon."""

    def __init__(
        self,
        config: Dict[str, Any],
        supervisor: TimerSupervisor,
        sessions: WorkSessionMachine,
        breaks: BreakMachine,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.supervisor = supervisor
        self.sessions = sessions
        self.breaks = breaks
        self.clock = clock or SystemClock()
        self.notifier = notifier

        break_config = config.get("breaks", {})
        self.enabled = bool(break_config.get("scheduled_enabled", False))
        self.interval_minutes = int(break_config.get("scheduled_interval_minutes", 120))

    def start(self) -> Dict[str, Any]:
        """
        Start the daemon.

        Raises:
            ValidationError: scheduled breaks are disabled or the interval is not positive
            AlreadyActive: the daemon is already running
            TimerSpawnError: the background process could not be started
        """
        if not self.enabled:
            raise ValidationError("Scheduled breaks are disabled", hint=ENABLE_HINT)
        if self.interval_minutes <= 0:
            raise ValidationError(
                f"Scheduled break interval must be positive, got {self.interval_minutes}"
            )

        running = self.supervisor.inspect(SCHEDULED)
        if running is not None:
            raise AlreadyActive(
                f"Scheduled break daemon already running (pid {running.pid})",
                hint="Stop it first: work-sergeant break scheduled stop",
            )

        token = to_iso(self.clock.now())
        handle = self.supervisor.schedule(SCHEDULED, self.interval_minutes * 60, token)
        logger.info(f"Scheduled break daemon started: pid={handle.pid} interval={self.interval_minutes}m")
        return {
            "status": "running",
            "pid": handle.pid,
            "interval_minutes": self.interval_minutes,
            "next_break_at": to_iso(handle.end_time),
        }

    def stop(self) -> Dict[str, Any]:
        """Stop the daemon. Safe to call when it is not running."""
        was_running = self.supervisor.inspect(SCHEDULED) is not None
        self.supervisor.cancel(SCHEDULED)
        if was_running:
            logger.info("Scheduled break daemon stopped")
        return {"status": "stopped", "was_running": was_running}

    def status(self) -> Dict[str, Any]:
        if not self.enabled:
            return {
                "status": "disabled",
                "interval_minutes": self.interval_minutes,
                "hint": ENABLE_HINT,
            }

        handle = self.supervisor.inspect(SCHEDULED)
        if handle is None:
            return {"status": "stopped", "pid": None, "interval_minutes": self.interval_minutes}
        return {
            "status": "running",
            "pid": handle.pid,
            "interval_minutes": self.interval_minutes,
            "next_break_at": to_iso(handle.end_time),
        }

    def owns(self, token: str) -> bool:
        """True while the daemon started with ``token`` is the registered one."""
        handle = self.supervisor.read_handle(SCHEDULED)
        return handle is not None and handle.owner_token == token

    def trigger(self, token: str) -> Dict[str, Any]:
        """
        One tick of the daemon: start a short break unless the user is busy.

        Args:
            token: Token the daemon was started with

        Returns:
            Result dictionary (``status`` is "triggered" or "skipped")
        """
        if not self.owns(token):
            return {"status": "skipped", "reason": "superseded"}
        if not self.enabled:
            return {"status": "skipped", "reason": "disabled"}
        if self.sessions.current() is not None or self.breaks.current() is not None:
            logger.debug("Skipping scheduled break (work or break active)")
            return {"status": "skipped", "reason": "busy"}

        logger.info("Triggering scheduled break")
        safe_notify(self.notifier, SCHEDULED_BREAK_TITLE, scheduled_break_message(self.interval_minutes))
        try:
            result = self.breaks.start(break_type="short", mode=DETACHED)
        except WorkSergeantError as e:
            logger.warning(f"Scheduled break not started: {e}")
            return {"status": "skipped", "reason": e.code}
        return {"status": "triggered", "break": result}
