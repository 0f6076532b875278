"""Work session state machine.

Idle --start--> Active --stop--> Idle. At most one session is active per
home directory; it lives in ``current_session.json`` and is archived to
``sessions_YYYY-MM.jsonl`` when it stops.
"""
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

from . import enforcement
from .clock import Clock, SystemClock, elapsed_seconds, to_iso
from .errors import AlreadyActive, NoActiveSession, TimerSpawnError, ValidationError
from .models import WorkSession
from .notifications import Notifier, safe_notify
from .phrases import NOTIFY_TITLE, reminder_message, work_complete_message
from .pomodoro import PomodoroCounter, break_after_pomodoro
from .projects import ProjectDetector
from .storage import CURRENT_SESSION, StateStore, archive_name, load_model
from .timers import TimerSupervisor

logger = logging.getLogger("work_sergeant.session")

# Sessions shorter than this share of the planned time count as early stops
EARLY_STOP_PERCENT = 80

ConfirmCallback = Callable[[WorkSession, int], bool]


def is_early_stop(elapsed: int, planned: int) -> bool:
    return elapsed * 100 < planned * EARLY_STOP_PERCENT


class WorkSessionMachine:
    """Start, stop and inspect the active work session."""

    def __init__(
        self,
        store: StateStore,
        config: Dict[str, Any],
        supervisor: TimerSupervisor,
        clock: Optional[Clock] = None,
        detector: Optional[ProjectDetector] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.store = store
        self.config = config
        self.supervisor = supervisor
        self.clock = clock or SystemClock()
        self.detector = detector
        self.notifier = notifier
        self.counter = PomodoroCounter(store)

        work_config = config.get("work", {})
        self.default_duration = int(work_config.get("duration_seconds", 1500))
        self.reminder_minutes = int(work_config.get("reminder_interval_minutes", 0))

    def current(self) -> Optional[WorkSession]:
        """The active session, or None."""
        session = load_model(self.store, CURRENT_SESSION, WorkSession)
        if session is not None and not session.is_active:
            logger.warning("Stopped session found in active slot, clearing it")
            self.store.delete_document(CURRENT_SESSION)
            return None
        return session

    def start(
        self,
        goal: str,
        planned_duration_seconds: Optional[int] = None,
        directory: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Start a work session.

        Args:
            goal: What the session is for
            planned_duration_seconds: Countdown length (config default if None)
            directory: Working directory used for project detection

        Returns:
            Result dictionary for rendering

        Raises:
            ValidationError: empty goal or non-positive duration
            AlreadyActive: a session is already running
            BreakRequired: a mandatory break has not been taken
        """
        goal = (goal or "").strip()
        if not goal:
            raise ValidationError(
                "Goal must not be empty",
                hint='Usage: work-sergeant work start "task description" [seconds]',
            )
        planned = self.default_duration if planned_duration_seconds is None else planned_duration_seconds
        if isinstance(planned, bool) or not isinstance(planned, int) or planned <= 0:
            raise ValidationError(f"Planned duration must be a positive number of seconds, got {planned!r}")

        existing = self.current()
        if existing is not None:
            raise AlreadyActive(
                f"Work session already active: {existing.goal}",
                hint="Stop it first: work-sergeant work stop",
            )

        state = enforcement.load_state(self.store, self.config)
        warnings = []
        gentle = enforcement.check_session_start_allowed(state)
        if gentle:
            warnings.append(gentle)

        now = self.clock.now()
        project = self.detector.detect(directory) if self.detector else None
        session = WorkSession(
            goal=goal,
            start_time=now,
            planned_duration_seconds=planned,
            pomodoro_count=self.counter.get(),
            active_project=project,
        )
        self.store.write_document(CURRENT_SESSION, session.to_dict())
        enforcement.save_state(
            self.store, enforcement.on_session_started(state, project, now)
        )
        logger.info(f"Work session started: goal='{goal}' planned={planned}s project={project}")

        timer = None
        try:
            timer = self.supervisor.schedule(
                "work", planned, to_iso(now), reminder_minutes=self.reminder_minutes
            )
        except TimerSpawnError as e:
            logger.warning(f"Work timer not started: {e}")
            warnings.append(f"Background timer unavailable: {e.message}")

        return {
            "status": "started",
            "goal": goal,
            "start_time": to_iso(now),
            "planned_duration_seconds": planned,
            "project": project,
            "timer": timer.to_dict() if timer else None,
            "warnings": warnings,
        }

    def stop(
        self, reason: Optional[str] = None, confirm: Optional[ConfirmCallback] = None
    ) -> Dict[str, Any]:
        """
        Stop the active session and archive it.

        Args:
            reason: Free-text termination reason
            confirm: Asked before an early stop when the policy wants
                confirmation; returning False cancels the stop

        Returns:
            Result dictionary (``status`` is "stopped" or "cancelled")

        Raises:
            NoActiveSession: nothing to stop
        """
        session = self.current()
        if session is None:
            raise NoActiveSession("No active work session")

        now = self.clock.now()
        elapsed = elapsed_seconds(session.start_time, now)
        early = is_early_stop(elapsed, session.planned_duration_seconds)
        state = enforcement.load_state(self.store, self.config)

        if early and confirm is not None and enforcement.requires_early_stop_confirmation(state):
            if not confirm(session, elapsed):
                logger.info("Early stop cancelled by user")
                return {
                    "status": "cancelled",
                    "goal": session.goal,
                    "elapsed_seconds": elapsed,
                }

        count = self.counter.increment()
        break_type, break_seconds = break_after_pomodoro(count, self.config)

        stopped = replace(
            session,
            status="stopped",
            end_time=now,
            duration_seconds=elapsed,
            early_stop=early,
            termination_reason=reason,
            pomodoro_count=count,
        )
        self.store.append_record(archive_name("sessions", now), stopped.to_dict())
        self.store.delete_document(CURRENT_SESSION)

        state = enforcement.on_session_stopped(state, break_type, now)
        enforcement.save_state(self.store, state)
        self.supervisor.cancel("work")

        logger.info(
            f"Work session stopped: goal='{session.goal}' duration={elapsed}s "
            f"early_stop={early} pomodoros={count}"
        )
        return {
            "status": "stopped",
            "goal": session.goal,
            "duration_seconds": elapsed,
            "planned_duration_seconds": session.planned_duration_seconds,
            "early_stop": early,
            "termination_reason": reason,
            "pomodoro_count": count,
            "suggested_break": {"type": break_type, "duration_seconds": break_seconds},
            "break_required": state.break_required,
            "warnings": [],
        }

    def status(self) -> Dict[str, Any]:
        session = self.current()
        if session is None:
            return {"active": False, "pomodoro_count": self.counter.get()}

        elapsed = elapsed_seconds(session.start_time, self.clock.now())
        timer = self.supervisor.inspect("work")
        return {
            "active": True,
            "goal": session.goal,
            "start_time": to_iso(session.start_time),
            "elapsed_seconds": elapsed,
            "planned_duration_seconds": session.planned_duration_seconds,
            "remaining_seconds": max(0, session.planned_duration_seconds - elapsed),
            "project": session.active_project,
            "pomodoro_count": self.counter.get(),
            "timer": timer.to_dict() if timer else None,
        }

    def _owned_session(self, token: str) -> WorkSession:
        session = self.current()
        if session is None or to_iso(session.start_time) != token:
            raise NoActiveSession("The work session this timer belongs to is no longer active")
        return session

    def remind(self, token: str) -> bool:
        """Send an interval reminder if the timer's session is still running."""
        try:
            session = self._owned_session(token)
        except NoActiveSession:
            return False
        elapsed = elapsed_seconds(session.start_time, self.clock.now())
        safe_notify(self.notifier, NOTIFY_TITLE, reminder_message(session.goal, elapsed))
        return True

    def timer_expired(self, token: str) -> Dict[str, Any]:
        """
        The work countdown ran out.

        Only notifies; the session stays active until it is stopped.

        Raises:
            NoActiveSession: the timer's session was stopped or replaced
        """
        session = self._owned_session(token)
        safe_notify(self.notifier, NOTIFY_TITLE, work_complete_message(session.goal))
        logger.info(f"Work timer expired for goal='{session.goal}'")
        return {"status": "expired", "goal": session.goal}

    def reset_pomodoros(self) -> Dict[str, Any]:
        self.counter.reset()
        return {"status": "reset", "pomodoro_count": 0}
