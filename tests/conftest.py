"""
Pytest configuration and shared fixtures for Work Sergeant tests.

This module provides common fixtures used across all test modules:
- A hand-driven clock so sessions and breaks can "elapse" instantly
- A fake process spawner so no real timer workers are started
- A recording notifier and a fixed project detector
- Controller instances wired to an in-memory store
"""

import copy
import os
import sys
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from work_sergeant.clock import Clock  # noqa: E402
from work_sergeant.config import DEFAULT_CONFIG  # noqa: E402
from work_sergeant.controller import WorkController  # noqa: E402
from work_sergeant.errors import TimerSpawnError  # noqa: E402
from work_sergeant.notifications import Notifier  # noqa: E402
from work_sergeant.storage import MemoryStateStore  # noqa: E402
from work_sergeant.timers import Spawner, TimerSupervisor  # noqa: E402

# Above the largest Linux pid_max, so a fake PID never names a real process
FAKE_PID_BASE = 5_000_000


# =============================================================================
# Mock Classes
# =============================================================================


class FakeClock(Clock):
    """Clock that only moves when told to. sleep() advances it."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2024, 5, 15, 9, 0, 0, tzinfo=timezone.utc)
        self.slept: List[float] = []

    def now(self) -> datetime:
        return self.current

    def sleep(self, seconds: float) -> None:
        self.slept.append(seconds)
        self.advance(seconds)

    def advance(self, seconds: float) -> None:
        self.current = self.current + timedelta(seconds=seconds)


class FakeSpawner(Spawner):
    """Records spawn requests instead of starting processes."""

    def __init__(self):
        self.calls: List[List[str]] = []
        self.should_fail = False
        self._next_pid = FAKE_PID_BASE

    def spawn(self, args: List[str]) -> int:
        if self.should_fail:
            raise TimerSpawnError("Could not start background timer: mock failure")
        self.calls.append(list(args))
        self._next_pid += 1
        return self._next_pid

    def set_failure_mode(self, should_fail: bool):
        """Configure the mock to simulate spawn failures."""
        self.should_fail = should_fail


class RecordingNotifier(Notifier):
    """Notifier that keeps every alert for assertions."""

    def __init__(self):
        self.sent: List[Tuple[str, str]] = []

    def notify(self, title: str, message: str) -> None:
        self.sent.append((title, message))


class FixedProjectDetector:
    """Project detector answering from a directory -> project map."""

    def __init__(self, default: Optional[str] = "alpha", mapping: Optional[dict] = None):
        self.default = default
        self.mapping = mapping or {}

    def detect(self, directory: Optional[str] = None) -> Optional[str]:
        if directory in self.mapping:
            return self.mapping[directory]
        return self.default


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_spawner():
    return FakeSpawner()


@pytest.fixture
def recording_notifier():
    return RecordingNotifier()


@pytest.fixture
def project_detector():
    return FixedProjectDetector(
        default="alpha",
        mapping={"/src/alpha": "alpha", "/src/alpha/lib": "alpha", "/src/beta": "beta"},
    )


@pytest.fixture
def memory_store():
    return MemoryStateStore()


@pytest.fixture
def sample_config():
    """Default configuration with notifications off."""
    config = copy.deepcopy(DEFAULT_CONFIG)
    config["notifications"]["enabled"] = False
    return config


@pytest.fixture
def supervisor(memory_store, fake_clock, fake_spawner, tmp_path):
    return TimerSupervisor(memory_store, tmp_path, clock=fake_clock, spawner=fake_spawner)


@pytest.fixture
def controller(
    tmp_path,
    sample_config,
    memory_store,
    fake_clock,
    fake_spawner,
    recording_notifier,
    project_detector,
):
    """WorkController backed by memory, a fake clock and fake timers."""
    return WorkController(
        home=tmp_path,
        config=sample_config,
        store=memory_store,
        clock=fake_clock,
        spawner=fake_spawner,
        notifier=recording_notifier,
        detector=project_detector,
    )


@pytest.fixture
def make_controller(tmp_path, memory_store, fake_clock, fake_spawner, recording_notifier, project_detector):
    """Factory for controllers with config tweaks, sharing the same store and clock."""

    def _make(**overrides) -> WorkController:
        config = copy.deepcopy(DEFAULT_CONFIG)
        config["notifications"]["enabled"] = False
        for section, values in overrides.items():
            config[section].update(values)
        return WorkController(
            home=tmp_path,
            config=config,
            store=memory_store,
            clock=fake_clock,
            spawner=fake_spawner,
            notifier=recording_notifier,
            detector=project_detector,
        )

    return _make
