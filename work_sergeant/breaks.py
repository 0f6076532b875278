"""Break state machine.

A break runs either blocking (the caller watches a live countdown) or
detached (a background timer completes it). Either way it ends up archived
in ``breaks_YYYY-MM.jsonl`` and may pay off an outstanding break requirement.
"""
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

from . import enforcement
from .clock import Clock, SystemClock, elapsed_seconds, to_iso
from .errors import AlreadyActive, NoActiveBreak, TimerSpawnError, ValidationError
from .models import BREAK_TYPES, BreakSession
from .notifications import Notifier, safe_notify
from .phrases import NOTIFY_TITLE, break_complete_message
from .pomodoro import PomodoroCounter, break_after_pomodoro
from .storage import CURRENT_BREAK, StateStore, archive_name, load_model
from .timers import TimerSupervisor

logger = logging.getLogger("work_sergeant.breaks")

BLOCKING = "blocking"
DETACHED = "detached"

Countdown = Callable[[int], None]


def resolve_mode(explicit: Optional[str], interactive: bool, output_format: str = "text") -> str:
    """
    Decide how a break runs.

    JSON output always runs detached so the caller gets its answer at once.
    Otherwise an explicit choice wins, then an interactive terminal blocks.

    Args:
        explicit: "blocking", "background" or None
        interactive: Whether stdin/stdout are a TTY
        output_format: "text" or "json"

    Returns:
        BLOCKING or DETACHED
    """
    if output_format == "json":
        return DETACHED
    if explicit == "blocking":
        return BLOCKING
    if explicit in ("background", DETACHED):
        return DETACHED
    return BLOCKING if interactive else DETACHED


class BreakMachine:
    """Start, stop, complete and inspect the active break."""

    def __init__(
        self,
        store: StateStore,
        config: Dict[str, Any],
        supervisor: TimerSupervisor,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.store = store
        self.config = config
        self.supervisor = supervisor
        self.clock = clock or SystemClock()
        self.notifier = notifier
        self.counter = PomodoroCounter(store)

        breaks_config = config.get("breaks", {})
        self.short_seconds = int(breaks_config.get("short_seconds", 300))
        self.long_seconds = int(breaks_config.get("long_seconds", 900))
        self.completion_percent = int(round(float(breaks_config.get("completion_threshold", 0.8)) * 100))

    def current(self) -> Optional[BreakSession]:
        brk = load_model(self.store, CURRENT_BREAK, BreakSession)
        if brk is not None and not brk.is_active:
            logger.warning("Finished break found in active slot, clearing it")
            self.store.delete_document(CURRENT_BREAK)
            return None
        return brk

    def _resolve_break(self, duration: Optional[int], break_type: Optional[str]):
        if break_type is not None and break_type not in BREAK_TYPES:
            raise ValidationError(
                f"Invalid break type '{break_type}'. Options: {', '.join(BREAK_TYPES)}"
            )
        if duration is not None:
            if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
                raise ValidationError(f"Break duration must be a positive number of seconds, got {duration!r}")
            return break_type or "custom", duration

        if break_type == "short":
            return "short", self.short_seconds
        if break_type == "long":
            return "long", self.long_seconds
        if break_type == "custom":
            raise ValidationError("A custom break needs a duration")
        return break_after_pomodoro(self.counter.get(), self.config)

    def start(
        self,
        duration: Optional[int] = None,
        break_type: Optional[str] = None,
        mode: str = DETACHED,
        countdown: Optional[Countdown] = None,
    ) -> Dict[str, Any]:
        """
        Start a break.

        Without a duration the type and length follow the pomodoro counter.
        A duration without a type makes a custom break.

        Args:
            duration: Break length in seconds
            break_type: "short", "long" or "custom"
            mode: BLOCKING or DETACHED
            countdown: Renders the blocking countdown; called with the
                planned seconds and expected to return when time is up.
                KeyboardInterrupt ends the break early.

        Returns:
            Result dictionary. Blocking breaks return the stop result.

        Raises:
            ValidationError: bad duration or type
            AlreadyActive: a break is already running
        """
        break_type, planned = self._resolve_break(duration, break_type)

        existing = self.current()
        if existing is not None:
            raise AlreadyActive(
                f"Break already active ({existing.type})",
                hint="Stop it first: work-sergeant break stop",
            )

        now = self.clock.now()
        blocking = mode == BLOCKING
        brk = BreakSession(
            type=break_type,
            start_time=now,
            planned_duration_seconds=planned,
            blocking_mode=blocking,
        )
        self.store.write_document(CURRENT_BREAK, brk.to_dict())
        logger.info(f"Break started: type={break_type} planned={planned}s mode={mode}")

        if blocking:
            return self._run_blocking(planned, countdown)

        warnings = []
        timer = None
        try:
            timer = self.supervisor.schedule("break", planned, to_iso(now))
        except TimerSpawnError as e:
            logger.warning(f"Break timer not started: {e}")
            warnings.append(f"Background timer unavailable, stop the break manually: {e.message}")

        return {
            "status": "started",
            "type": break_type,
            "start_time": to_iso(now),
            "planned_duration_seconds": planned,
            "mode": DETACHED,
            "timer": timer.to_dict() if timer else None,
            "warnings": warnings,
        }

    def _run_blocking(self, planned: int, countdown: Optional[Countdown]) -> Dict[str, Any]:
        interrupted = False
        try:
            if countdown is not None:
                countdown(planned)
            else:
                self.clock.sleep(planned)
        except KeyboardInterrupt:
            interrupted = True
            logger.info("Blocking break interrupted")

        result = self.stop()
        result["mode"] = BLOCKING
        result["interrupted"] = interrupted
        return result

    def stop(self) -> Dict[str, Any]:
        """
        Stop the active break now.

        Raises:
            NoActiveBreak: nothing to stop
        """
        brk = self.current()
        if brk is None:
            raise NoActiveBreak("No active break")
        return self._finish(brk, natural=False)

    def complete(self, token: str) -> Dict[str, Any]:
        """
        Natural completion from the break timer.

        Raises:
            NoActiveBreak: the timer's break was already stopped or replaced
        """
        brk = self.current()
        if brk is None or to_iso(brk.start_time) != token:
            raise NoActiveBreak("The break this timer belongs to is no longer active")
        result = self._finish(brk, natural=True)
        safe_notify(self.notifier, NOTIFY_TITLE, break_complete_message(brk.type))
        return result

    def _finish(self, brk: BreakSession, natural: bool) -> Dict[str, Any]:
        now = self.clock.now()
        elapsed = elapsed_seconds(brk.start_time, now)
        completed_fully = elapsed * 100 >= brk.planned_duration_seconds * self.completion_percent
        status = "completed" if natural or elapsed >= brk.planned_duration_seconds else "stopped"

        finished = replace(
            brk,
            status=status,
            end_time=now,
            duration_seconds=elapsed,
            completed_fully=completed_fully,
        )
        self.store.append_record(archive_name("breaks", now), finished.to_dict())
        self.store.delete_document(CURRENT_BREAK)

        state = enforcement.load_state(self.store, self.config)
        state, cleared = enforcement.on_break_stopped(state, finished, now)
        enforcement.save_state(self.store, state)
        self.supervisor.cancel("break")

        logger.info(
            f"Break {status}: type={brk.type} duration={elapsed}s "
            f"completed_fully={completed_fully} requirement_cleared={cleared}"
        )
        return {
            "status": status,
            "type": brk.type,
            "duration_seconds": elapsed,
            "planned_duration_seconds": brk.planned_duration_seconds,
            "completed_fully": completed_fully,
            "break_requirement_cleared": cleared,
            "break_required": state.break_required,
        }

    def status(self) -> Dict[str, Any]:
        brk = self.current()
        if brk is None:
            return {"active": False}

        elapsed = elapsed_seconds(brk.start_time, self.clock.now())
        timer = self.supervisor.inspect("break")
        return {
            "active": True,
            "type": brk.type,
            "start_time": to_iso(brk.start_time),
            "elapsed_seconds": elapsed,
            "planned_duration_seconds": brk.planned_duration_seconds,
            "remaining_seconds": max(0, brk.planned_duration_seconds - elapsed),
            "mode": BLOCKING if brk.blocking_mode else DETACHED,
            "timer": timer.to_dict() if timer else None,
        }
