"""Background countdown supervision.

A countdown is a detached ``python -m work_sergeant.timer_worker`` process
that outlives the CLI invocation which started it. Each role (``work``,
``break`` or the repeating ``scheduled`` break daemon) has at most one
handle, persisted as ``timer_<role>.json``.
"""
import logging
import os
import subprocess
import sys
from dataclasses import replace
from datetime import timedelta
from typing import Dict, List, Optional

import psutil

from .clock import Clock, SystemClock
from .errors import TimerSpawnError, ValidationError
from .models import TIMER_ROLES, TimerHandle
from .storage import StateStore, load_model, timer_handle_name

logger = logging.getLogger("work_sergeant.timers")

WORKER_MODULE = "work_sergeant.timer_worker"


class Spawner:
    """Interface for starting a detached worker process."""

    def spawn(self, args: List[str]) -> int:
        """Start the worker with ``args`` and return its PID."""
        raise NotImplementedError


# Directory holding the work_sergeant package; the worker must import it from any cwd
PACKAGE_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def worker_env(base: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Environment for the worker with the package root first on PYTHONPATH."""
    env = dict(os.environ if base is None else base)
    paths = [PACKAGE_ROOT]
    existing = env.get("PYTHONPATH")
    if existing:
        paths += [p for p in existing.split(os.pathsep) if p and p != PACKAGE_ROOT]
    env["PYTHONPATH"] = os.pathsep.join(paths)
    return env


class ProcessSpawner(Spawner):
    """Starts the worker as a new session with stdio detached."""

    def __init__(self, python: Optional[str] = None):
        self.python = python or sys.executable

    def spawn(self, args: List[str]) -> int:
        command = [self.python, "-m", WORKER_MODULE] + list(args)
        try:
            proc = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                cwd=PACKAGE_ROOT,
                env=worker_env(),
                start_new_session=True,
                close_fds=True,
            )
        except OSError as e:
            raise TimerSpawnError(f"Could not start background timer: {e}")
        logger.debug(f"Spawned timer worker pid={proc.pid}: {' '.join(command)}")
        return proc.pid


def is_worker_process(pid: int) -> bool:
    """True if ``pid`` is alive and looks like one of our timer workers."""
    if not psutil.pid_exists(pid):
        return False
    try:
        cmdline = " ".join(psutil.Process(pid).cmdline())
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        # Can't read it; assume it is ours rather than orphan the handle
        return True
    return WORKER_MODULE in cmdline


class TimerSupervisor:
    """Schedules, inspects and cancels background countdowns."""

    def __init__(
        self,
        store: StateStore,
        home,
        clock: Optional[Clock] = None,
        spawner: Optional[Spawner] = None,
    ):
        self.store = store
        self.home = os.path.abspath(str(home))
        self.clock = clock or SystemClock()
        self.spawner = spawner or ProcessSpawner()

    def _check_role(self, role: str) -> None:
        if role not in TIMER_ROLES:
            raise ValidationError(f"Unknown timer role '{role}'")

    def read_handle(self, role: str) -> Optional[TimerHandle]:
        return load_model(self.store, timer_handle_name(role), TimerHandle)

    def schedule(
        self, role: str, seconds: int, token: str, reminder_minutes: int = 0
    ) -> TimerHandle:
        """
        Start a countdown for ``role``, replacing any previous one.

        Args:
            role: "work", "break" or "scheduled"
            seconds: Countdown length (the repeat interval for "scheduled")
            token: Start time of the owning session; the worker only completes
                the session it was started for
            reminder_minutes: Interval between reminders (work timers only)

        Returns:
            The persisted TimerHandle

        Raises:
            TimerSpawnError: the worker process could not be started
        """
        self._check_role(role)
        if seconds <= 0:
            raise ValidationError("Timer duration must be positive")

        self.cancel(role)

        args = [
            "--role", role,
            "--seconds", str(int(seconds)),
            "--token", token,
            "--home", self.home,
        ]
        if role == "work" and reminder_minutes > 0:
            args += ["--reminder-minutes", str(int(reminder_minutes))]

        pid = self.spawner.spawn(args)
        handle = TimerHandle(
            owner_kind=role,
            pid=pid,
            end_time=self.clock.now() + timedelta(seconds=seconds),
            owner_token=token,
        )
        self.store.write_document(timer_handle_name(role), handle.to_dict())
        logger.info(f"Scheduled {role} timer: pid={pid} seconds={seconds}")
        return handle

    def cancel(self, role: str) -> bool:
        """
        Stop the countdown for ``role``. Safe to call when none is running.

        Returns:
            True if a live worker was terminated
        """
        self._check_role(role)
        handle = self.read_handle(role)
        if handle is None:
            return False

        terminated = False
        # The worker itself runs the completion path; never signal ourselves
        if handle.pid != os.getpid() and is_worker_process(handle.pid):
            try:
                psutil.Process(handle.pid).terminate()
                terminated = True
                logger.info(f"Terminated {role} timer pid={handle.pid}")
            except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
                logger.warning(f"Could not terminate {role} timer pid={handle.pid}: {e}")

        self.store.delete_document(timer_handle_name(role))
        return terminated

    def inspect(self, role: str) -> Optional[TimerHandle]:
        """Return the live handle for ``role``; stale handles are removed."""
        self._check_role(role)
        handle = self.read_handle(role)
        if handle is None:
            return None
        if handle.pid != os.getpid() and not is_worker_process(handle.pid):
            logger.info(f"Removing stale {role} timer handle (pid={handle.pid})")
            self.store.delete_document(timer_handle_name(role))
            return None
        return handle

    def release(self, role: str, pid: int) -> None:
        """Drop the handle for ``role`` if it still belongs to ``pid``."""
        handle = self.read_handle(role)
        if handle is not None and handle.pid == pid:
            self.store.delete_document(timer_handle_name(role))

    def touch(self, role: str, pid: int, end_time) -> None:
        """Move the end time of a repeating timer if ``pid`` still owns it."""
        handle = self.read_handle(role)
        if handle is not None and handle.pid == pid:
            handle = replace(handle, end_time=end_time)
            self.store.write_document(timer_handle_name(role), handle.to_dict())
