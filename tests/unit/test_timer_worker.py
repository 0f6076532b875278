"""
Unit tests for the background timer worker loop.

The worker runs against the in-memory controller with the fake clock, so
whole countdowns finish instantly.
"""

import os
import sys
from unittest.mock import patch

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from work_sergeant.timer_worker import TimerWorker, build_parser


@pytest.mark.unit
class TestTimerWorker:
    """Tests for TimerWorker."""

    def test_break_completes_naturally(self, controller, fake_clock, memory_store):
        token = controller.start_break(300, "short")["start_time"]
        worker = TimerWorker(controller, "break", 300, token, clock=fake_clock)

        result = worker.run()

        assert result["status"] == "completed"
        assert result["completed_fully"] is True
        assert memory_store.read_document("current_break") is None
        assert memory_store.read_records("breaks_2024-05")[0]["status"] == "completed"

    def test_break_stopped_meanwhile_ends_worker(self, controller, fake_clock, memory_store):
        token = controller.start_break(300, "short")["start_time"]
        controller.stop_break()
        worker = TimerWorker(controller, "break", 300, token, clock=fake_clock)

        assert worker.run() is None
        assert len(memory_store.read_records("breaks_2024-05")) == 1

    def test_replaced_break_is_not_completed(self, controller, fake_clock):
        token = controller.start_break(300, "short")["start_time"]
        controller.stop_break()
        fake_clock.advance(1)
        controller.start_break(600, "long")
        worker = TimerWorker(controller, "break", 300, token, clock=fake_clock)

        assert worker.run() is None
        assert controller.break_status()["active"] is True

    def test_work_timer_sends_reminders_then_expires(self, controller, fake_clock, recording_notifier):
        token = controller.start_work("Write docs", 3600)["start_time"]
        worker = TimerWorker(controller, "work", 3600, token, reminder_minutes=20, clock=fake_clock, poll_interval=60)

        result = worker.run()

        assert result["status"] == "expired"
        # Reminders at 20 and 40 minutes, then the completion alert
        assert len(recording_notifier.sent) == 3
        assert controller.sessions.current() is not None

    def test_run_releases_own_handle(self, controller, fake_clock, memory_store):
        token = controller.start_break(60)["start_time"]
        memory_store.documents["timer_break"]["pid"] = os.getpid()
        worker = TimerWorker(controller, "break", 60, token, clock=fake_clock)

        with patch.object(controller.supervisor, "release", wraps=controller.supervisor.release) as release:
            worker.run()

        release.assert_called_once_with("break", os.getpid())
        assert memory_store.read_document("timer_break") is None

    def test_sleeps_in_bounded_steps(self, controller, fake_clock):
        token = controller.start_break(10)["start_time"]
        worker = TimerWorker(controller, "break", 10, token, clock=fake_clock, poll_interval=4)

        worker.run()

        assert fake_clock.slept == [4, 4, 2]


@pytest.mark.unit
def test_parser_requires_role_and_token():
    args = build_parser().parse_args(["--role", "break", "--seconds", "300", "--token", "t"])

    assert args.role == "break"
    assert args.seconds == 300
    assert args.reminder_minutes == 0

    with pytest.raises(SystemExit):
        build_parser().parse_args(["--role", "lunch", "--seconds", "1", "--token", "t"])


@pytest.mark.unit
def test_parser_accepts_scheduled_role():
    args = build_parser().parse_args(["--role", "scheduled", "--seconds", "7200", "--token", "t", "--home", "/tmp/ws"])

    assert args.role == "scheduled"
    assert args.home == "/tmp/ws"
