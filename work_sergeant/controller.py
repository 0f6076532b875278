"""WorkController - wires the state machines to storage, timers and sinks."""
import logging
from typing import Any, Dict, Optional

from . import enforcement
from .breaks import DETACHED, BreakMachine
from .clock import Clock, SystemClock
from .compliance import ComplianceReporter
from .config import CONFIG_FILE_NAME, get_home_dir, load_config
from .errors import WorkSergeantError
from .focus import ActivityTracker, focus_summary, reset_violations
from .notifications import Notifier, create_notifier, safe_notify
from .phrases import NOTIFY_TITLE
from .projects import ProjectDetector
from .scheduled import ScheduledBreaks
from .session import WorkSessionMachine
from .storage import JsonStateStore, StateStore
from .timers import Spawner, TimerSupervisor

logger = logging.getLogger("work_sergeant.controller")


class WorkController:
    """
    Central entry point for Work Sergeant.

    The CLI, the background timer worker and the HTTP bridge all go through
    this class. It owns:
    - Work session and break state machines
    - Enforcement state updates (modes, violations, project switches)
    - Focus scoring and compliance reports
    - The scheduled break daemon
    """

    def __init__(
        self,
        home=None,
        config: Optional[Dict[str, Any]] = None,
        store: Optional[StateStore] = None,
        clock: Optional[Clock] = None,
        spawner: Optional[Spawner] = None,
        notifier: Optional[Notifier] = None,
        detector: Optional[ProjectDetector] = None,
    ):
        self.home = get_home_dir(home)
        self.config = config if config is not None else load_config(self.home / CONFIG_FILE_NAME)
        self.store = store or JsonStateStore(self.home)
        self.clock = clock or SystemClock()
        self.notifier = notifier or create_notifier(self.config)
        self.detector = detector or ProjectDetector()

        self.supervisor = TimerSupervisor(self.store, self.home, clock=self.clock, spawner=spawner)
        self.sessions = WorkSessionMachine(
            self.store,
            self.config,
            self.supervisor,
            clock=self.clock,
            detector=self.detector,
            notifier=self.notifier,
        )
        self.breaks = BreakMachine(
            self.store, self.config, self.supervisor, clock=self.clock, notifier=self.notifier
        )
        self.scheduled = ScheduledBreaks(
            self.config,
            self.supervisor,
            self.sessions,
            self.breaks,
            clock=self.clock,
            notifier=self.notifier,
        )
        self.activity = ActivityTracker(self.store, self.config, clock=self.clock)
        self.reporter = ComplianceReporter(self.store, self.config, clock=self.clock)
        logger.debug(f"WorkController initialized for {self.home}")

    def _state(self):
        return enforcement.load_state(self.store, self.config)

    def _save(self, state) -> None:
        enforcement.save_state(self.store, state)

    def record_activity(self, command: str) -> None:
        try:
            self.activity.record(command)
        except OSError as e:
            logger.warning(f"Could not record activity: {e}")

    def cleanup_activity(self) -> Dict[str, Any]:
        deleted = self.activity.cleanup()
        return {
            "status": "cleaned",
            "deleted": deleted,
            "retention_days": self.activity.retention_days,
        }

    # --- work sessions -------------------------------------------------

    def start_work(self, goal: str, planned_duration_seconds: Optional[int] = None, directory: Optional[str] = None):
        return self.sessions.start(goal, planned_duration_seconds, directory=directory)

    def stop_work(self, reason: Optional[str] = None, confirm=None) -> Dict[str, Any]:
        """
        Stop the active session, then auto-start a break if configured.

        A failing auto-start is reported as a warning; the stop stands.
        """
        result = self.sessions.stop(reason=reason, confirm=confirm)
        if result["status"] != "stopped" or not self.config["work"].get("auto_start_break", False):
            return result

        suggested = result["suggested_break"]
        try:
            result["auto_break"] = self.breaks.start(
                duration=suggested["duration_seconds"],
                break_type=suggested["type"],
                mode=DETACHED,
            )
        except WorkSergeantError as e:
            logger.warning(f"Auto-start break failed: {e}")
            result["warnings"].append(f"Break not started automatically: {e.message}")
        return result

    def work_status(self) -> Dict[str, Any]:
        status = self.sessions.status()
        state = self._state()
        status["enforcement"] = {
            "mode": state.mode,
            "break_required": state.break_required,
            "break_type_required": state.break_type_required,
            "violation_count": state.violation_count,
        }
        return status

    def work_timer_expired(self, token: str) -> Dict[str, Any]:
        return self.sessions.timer_expired(token)

    def work_reminder(self, token: str) -> bool:
        return self.sessions.remind(token)

    def reset_pomodoros(self) -> Dict[str, Any]:
        return self.sessions.reset_pomodoros()

    # --- enforcement ---------------------------------------------------

    def violations(self) -> Dict[str, Any]:
        state = self._state()
        return {
            "violation_count": state.violation_count,
            "mode": state.mode,
            "active_project": state.active_project,
            "distraction_threshold": self.config["enforcement"].get("distraction_threshold", 3),
        }

    def reset_violations(self) -> Dict[str, Any]:
        state = self._state()
        previous = state.violation_count
        self._save(reset_violations(state))
        logger.info(f"Violations reset (was {previous})")
        return {"status": "reset", "previous_count": previous, "violation_count": 0}

    def set_mode(self, mode: str) -> Dict[str, Any]:
        state = enforcement.set_mode(self._state(), mode, self.clock.now())
        self._save(state)
        return {"status": "updated", "mode": state.mode}

    def set_strict(self, on: bool) -> Dict[str, Any]:
        state = enforcement.toggle_strict_all(self._state(), on, self.clock.now())
        self._save(state)
        return {
            "status": "updated",
            "mode": state.mode,
            "block_project_switch": state.block_project_switch,
            "require_break": state.require_break,
            "confirm_early_stop": state.confirm_early_stop,
            "track_breaks": state.track_breaks,
        }

    def check_switch(self, from_dir: str, to_dir: str) -> Dict[str, Any]:
        """
        Shell ``chpwd`` hook: evaluate a directory change during a session.

        The first change in a session without a bound project binds it.

        Raises:
            ProjectSwitchBlocked: strict mode with switch blocking on
        """
        session = self.sessions.current()
        if session is None:
            return {"status": "ignored", "reason": "no active session"}

        state = self._state()
        from_project = self.detector.detect(from_dir) if from_dir else None
        to_project = self.detector.detect(to_dir)
        if from_project and from_project == to_project:
            return {"status": "ok", "active_project": state.active_project, "to_project": to_project}
        active = state.active_project or session.active_project

        if not active:
            if to_project:
                self._save(enforcement.on_session_started(state, to_project, self.clock.now()))
                logger.info(f"Active project set: {to_project}")
            return {"status": "bound", "active_project": to_project}

        threshold = int(self.config["enforcement"].get("distraction_threshold", 3))
        new_state, warning = enforcement.check_project_switch(state, active, to_project, threshold)
        if warning is None:
            return {"status": "ok", "active_project": active, "to_project": to_project}

        self._save(new_state)
        safe_notify(self.notifier, NOTIFY_TITLE, warning)
        return {
            "status": "violation",
            "active_project": active,
            "to_project": to_project,
            "violation_count": new_state.violation_count,
            "warning": warning,
        }

    def focus(self) -> Dict[str, Any]:
        session = self.sessions.current()
        state = self._state()
        return focus_summary(
            session_active=session is not None,
            violation_count=state.violation_count,
            recent_activity=self.activity.has_recent_activity(),
            goal=session.goal if session else None,
        )

    def stats(self) -> Dict[str, Any]:
        stats = self.reporter.work_stats()
        stats["current"] = {
            "pomodoro_count": self.sessions.counter.get(),
            "session_active": self.sessions.current() is not None,
        }
        return stats

    # --- breaks --------------------------------------------------------

    def start_break(self, duration=None, break_type=None, mode: str = DETACHED, countdown=None):
        return self.breaks.start(duration=duration, break_type=break_type, mode=mode, countdown=countdown)

    def stop_break(self) -> Dict[str, Any]:
        return self.breaks.stop()

    def complete_break(self, token: str) -> Dict[str, Any]:
        return self.breaks.complete(token)

    def break_status(self) -> Dict[str, Any]:
        return self.breaks.status()

    def break_compliance(self, month: Optional[str] = None) -> Dict[str, Any]:
        return self.reporter.break_compliance(month)

    # --- scheduled breaks ----------------------------------------------

    def scheduled_start(self) -> Dict[str, Any]:
        return self.scheduled.start()

    def scheduled_stop(self) -> Dict[str, Any]:
        return self.scheduled.stop()

    def scheduled_status(self) -> Dict[str, Any]:
        return self.scheduled.status()

    def scheduled_trigger(self, token: str) -> Dict[str, Any]:
        return self.scheduled.trigger(token)
