"""Background countdown worker.

Spawned detached by TimerSupervisor as
``python -m work_sergeant.timer_worker --role ROLE --seconds N --token T --home DIR``.
It sleeps until the countdown ends, sending interval reminders for work
timers, then runs the natural-completion path through a fresh controller.
The ``scheduled`` role repeats: every interval it asks the controller to
start a scheduled break, until its handle is removed or replaced.
"""
import argparse
import logging
import os
import sys
from datetime import timedelta
from typing import List, Optional

from .clock import Clock, SystemClock
from .config import get_home_dir
from .controller import WorkController
from .errors import NoActiveBreak, NoActiveSession, WorkSergeantError
from .logging_utils import setup_logging
from .models import TIMER_ROLES
from .scheduled import SCHEDULED

logger = logging.getLogger("work_sergeant.timer_worker")


class TimerWorker:
    """Waits out one countdown, then completes the session it belongs to."""

    def __init__(
        self,
        controller,
        role: str,
        seconds: int,
        token: str,
        reminder_minutes: int = 0,
        clock: Optional[Clock] = None,
        poll_interval: float = 1.0,
    ):
        """
        Initialize timer worker.

        Args:
            controller: WorkController for the home directory
            role: "work", "break" or "scheduled"
            seconds: Countdown length
            token: Start time of the owning session
            reminder_minutes: Interval between work reminders (0 disables)
            clock: Time source
            poll_interval: Longest single sleep
        """
        self.controller = controller
        self.role = role
        self.seconds = seconds
        self.token = token
        self.reminder_seconds = reminder_minutes * 60 if role == "work" else 0
        self.clock = clock or SystemClock()
        self.poll_interval = max(0.1, poll_interval)

    def _owner_alive(self) -> bool:
        if self.role == SCHEDULED:
            return self.controller.scheduled.owns(self.token)
        if self.role == "work":
            session = self.controller.sessions.current()
        else:
            session = self.controller.breaks.current()
        return session is not None

    def wait(self) -> bool:
        """
        Sleep until the end time.

        Returns:
            False if the owning session went away first
        """
        start = self.clock.now()
        end_time = start + timedelta(seconds=self.seconds)
        next_reminder = (
            start + timedelta(seconds=self.reminder_seconds) if self.reminder_seconds else None
        )

        while True:
            now = self.clock.now()
            if now >= end_time:
                return True

            if next_reminder is not None and now >= next_reminder:
                if not self.controller.work_reminder(self.token):
                    logger.info("Work session gone, reminder loop ending")
                    return False
                next_reminder += timedelta(seconds=self.reminder_seconds)

            # Poll the slot now and then so a stopped session ends us early
            if not self._owner_alive():
                logger.info(f"{self.role} session no longer active, timer exiting")
                return False

            remaining = (end_time - now).total_seconds()
            self.clock.sleep(min(self.poll_interval, remaining))

    def complete(self) -> Optional[dict]:
        try:
            if self.role == SCHEDULED:
                result = self.controller.scheduled_trigger(self.token)
            elif self.role == "break":
                result = self.controller.complete_break(self.token)
            else:
                result = self.controller.work_timer_expired(self.token)
        except (NoActiveBreak, NoActiveSession) as e:
            logger.info(f"Nothing to complete for {self.role} timer: {e}")
            return None
        logger.info(f"{self.role} timer completed: {result}")
        return result

    def repeat(self, max_cycles: Optional[int] = None) -> int:
        """
        Fire every ``seconds`` until the daemon is stopped or replaced.

        Returns:
            Number of completed cycles
        """
        cycles = 0
        while self.wait():
            self.complete()
            cycles += 1
            next_fire = self.clock.now() + timedelta(seconds=self.seconds)
            self.controller.supervisor.touch(self.role, os.getpid(), next_fire)
            if max_cycles is not None and cycles >= max_cycles:
                break
        return cycles

    def run(self, max_cycles: Optional[int] = None):
        logger.info(f"Timer worker started: role={self.role} seconds={self.seconds} pid={os.getpid()}")
        try:
            if self.role == SCHEDULED:
                return self.repeat(max_cycles)
            if self.wait():
                return self.complete()
            return None
        finally:
            self.controller.supervisor.release(self.role, os.getpid())
            logger.info("Timer worker stopped")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="work_sergeant.timer_worker")
    parser.add_argument("--role", choices=TIMER_ROLES, required=True)
    parser.add_argument("--seconds", type=int, required=True)
    parser.add_argument("--token", required=True)
    parser.add_argument("--home", default=None)
    parser.add_argument("--reminder-minutes", type=int, default=0)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    home = get_home_dir(args.home)
    setup_logging(home / "logs")

    try:
        controller = WorkController(home=home)
        worker = TimerWorker(
            controller,
            role=args.role,
            seconds=args.seconds,
            token=args.token,
            reminder_minutes=args.reminder_minutes,
            poll_interval=float(controller.config["timer"].get("poll_interval_sec", 1.0)),
        )
        worker.run()
    except WorkSergeantError as e:
        logger.error(f"Timer worker failed: {e}")
        return e.exit_code
    except Exception as e:
        logger.error(f"Fatal error in timer worker: {e}", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
