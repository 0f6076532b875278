"""
Unit tests for the scheduled break daemon.

Tests daemon behavior:
- Start, stop and status against the enabled flag and the timer handle
- Each tick starts a short break only while nothing else is running
- The repeating worker loop
"""

import os
import sys
from unittest.mock import patch

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from work_sergeant.breaks import DETACHED
from work_sergeant.errors import AlreadyActive, ValidationError
from work_sergeant.phrases import SCHEDULED_BREAK_TITLE
from work_sergeant.storage import CURRENT_BREAK
from work_sergeant.timer_worker import TimerWorker

HANDLE = "timer_scheduled"


@pytest.fixture
def scheduled_controller(make_controller):
    """Controller with scheduled breaks enabled every 60 minutes."""
    return make_controller(breaks={"scheduled_enabled": True, "scheduled_interval_minutes": 60})


@pytest.mark.unit
class TestStartStop:
    """Tests for starting and stopping the daemon."""

    def test_disabled_by_default(self, controller, memory_store, fake_spawner):
        with pytest.raises(ValidationError) as exc_info:
            controller.scheduled_start()

        assert "scheduled_enabled" in exc_info.value.hint
        assert memory_store.read_document(HANDLE) is None
        assert fake_spawner.calls == []

    def test_start_spawns_repeating_timer(self, scheduled_controller, fake_spawner, memory_store):
        result = scheduled_controller.scheduled_start()

        assert result["status"] == "running"
        assert result["interval_minutes"] == 60
        assert result["next_break_at"] == "2024-05-15T10:00:00Z"
        args = fake_spawner.calls[0]
        assert args[args.index("--role") + 1] == "scheduled"
        assert args[args.index("--seconds") + 1] == "3600"
        assert "--reminder-minutes" not in args
        assert memory_store.read_document(HANDLE)["owner_token"] == "2024-05-15T09:00:00Z"

    def test_second_start_rejected_while_running(self, scheduled_controller):
        scheduled_controller.scheduled_start()

        with patch("work_sergeant.timers.is_worker_process", return_value=True):
            with pytest.raises(AlreadyActive):
                scheduled_controller.scheduled_start()

    def test_start_replaces_dead_daemon(self, scheduled_controller, fake_clock, memory_store):
        scheduled_controller.scheduled_start()
        fake_clock.advance(30)

        with patch("work_sergeant.timers.is_worker_process", return_value=False):
            scheduled_controller.scheduled_start()

        assert memory_store.read_document(HANDLE)["owner_token"] == "2024-05-15T09:00:30Z"

    def test_zero_interval_rejected(self, make_controller):
        controller = make_controller(breaks={"scheduled_enabled": True, "scheduled_interval_minutes": 0})

        with pytest.raises(ValidationError):
            controller.scheduled_start()

    @patch("work_sergeant.timers.is_worker_process", return_value=True)
    @patch("work_sergeant.timers.psutil.Process")
    def test_stop_terminates_daemon(self, mock_process, _, scheduled_controller, memory_store):
        scheduled_controller.scheduled_start()

        result = scheduled_controller.scheduled_stop()

        assert result == {"status": "stopped", "was_running": True}
        mock_process.return_value.terminate.assert_called_once()
        assert memory_store.read_document(HANDLE) is None

    def test_stop_is_idempotent(self, scheduled_controller):
        assert scheduled_controller.scheduled_stop() == {"status": "stopped", "was_running": False}


@pytest.mark.unit
class TestStatus:
    """Tests for daemon status."""

    def test_disabled(self, controller):
        status = controller.scheduled_status()

        assert status["status"] == "disabled"
        assert status["interval_minutes"] == 120

    def test_stopped(self, scheduled_controller):
        status = scheduled_controller.scheduled_status()

        assert status == {"status": "stopped", "pid": None, "interval_minutes": 60}

    def test_running(self, scheduled_controller):
        pid = scheduled_controller.scheduled_start()["pid"]

        with patch("work_sergeant.timers.is_worker_process", return_value=True):
            status = scheduled_controller.scheduled_status()

        assert status["status"] == "running"
        assert status["pid"] == pid
        assert status["next_break_at"] == "2024-05-15T10:00:00Z"


@pytest.mark.unit
class TestTrigger:
    """Tests for a single daemon tick."""

    def test_idle_tick_starts_short_break(self, scheduled_controller, recording_notifier, fake_spawner):
        scheduled_controller.scheduled_start()

        result = scheduled_controller.scheduled_trigger("2024-05-15T09:00:00Z")

        assert result["status"] == "triggered"
        assert result["break"]["type"] == "short"
        assert result["break"]["planned_duration_seconds"] == 300
        assert recording_notifier.sent[-1] == (
            SCHEDULED_BREAK_TITLE,
            "It's been 60 minutes. Time for a break!",
        )
        assert scheduled_controller.break_status()["mode"] == DETACHED

    def test_tick_skipped_during_work(self, scheduled_controller, memory_store):
        scheduled_controller.scheduled_start()
        scheduled_controller.start_work("Deep work", 1500)

        result = scheduled_controller.scheduled_trigger("2024-05-15T09:00:00Z")

        assert result == {"status": "skipped", "reason": "busy"}
        assert memory_store.read_document(CURRENT_BREAK) is None

    def test_tick_skipped_during_break(self, scheduled_controller, recording_notifier):
        scheduled_controller.scheduled_start()
        scheduled_controller.start_break(600, "long")

        result = scheduled_controller.scheduled_trigger("2024-05-15T09:00:00Z")

        assert result["reason"] == "busy"
        assert scheduled_controller.break_status()["type"] == "long"
        assert recording_notifier.sent == []

    def test_tick_from_replaced_daemon_ignored(self, scheduled_controller, memory_store):
        scheduled_controller.scheduled_start()

        result = scheduled_controller.scheduled_trigger("2024-05-14T09:00:00Z")

        assert result == {"status": "skipped", "reason": "superseded"}
        assert memory_store.read_document(CURRENT_BREAK) is None


@pytest.mark.unit
class TestScheduledWorker:
    """Tests for the repeating worker loop."""

    def test_repeats_and_skips_while_break_runs(self, scheduled_controller, fake_clock, recording_notifier):
        scheduled_controller.scheduled_start()
        worker = TimerWorker(
            scheduled_controller, "scheduled", 3600, "2024-05-15T09:00:00Z", clock=fake_clock, poll_interval=600
        )

        cycles = worker.run(max_cycles=2)

        assert cycles == 2
        # First tick starts a break; it is still running at the second tick
        scheduled_titles = [t for t, _ in recording_notifier.sent if t == SCHEDULED_BREAK_TITLE]
        assert len(scheduled_titles) == 1
        assert scheduled_controller.break_status()["active"] is True
        assert fake_clock.current.hour == 11

    def test_stopped_daemon_ends_worker(self, scheduled_controller, fake_clock):
        scheduled_controller.scheduled_start()
        scheduled_controller.scheduled_stop()
        worker = TimerWorker(
            scheduled_controller, "scheduled", 3600, "2024-05-15T09:00:00Z", clock=fake_clock
        )

        assert worker.run() == 0
        assert scheduled_controller.break_status()["active"] is False
