"""
Unit tests for violations, focus scoring and activity tracking.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from work_sergeant.focus import (
    ActivityTracker,
    calculate_focus_score,
    focus_summary,
    record_violation,
    reset_violations,
    score_recommendations,
)
from work_sergeant.models import EnforcementState
from work_sergeant.storage import JsonStateStore


@pytest.mark.unit
class TestViolations:
    """Tests for record_violation / reset_violations."""

    def test_record_increments_copy(self):
        state = EnforcementState(violation_count=1)

        assert record_violation(state).violation_count == 2
        assert state.violation_count == 1

    def test_record_then_reset(self):
        state = record_violation(record_violation(EnforcementState()))

        assert state.violation_count == 2
        assert reset_violations(state).violation_count == 0


@pytest.mark.unit
class TestFocusScore:
    """Tests for calculate_focus_score."""

    @pytest.mark.parametrize(
        "active,violations,recent,expected",
        [
            (True, 0, True, 10),
            (True, 0, False, 9),
            (False, 0, False, 7),
            (True, 1, False, 6),
            (True, 3, False, 5),
            (True, 5, False, 4),
            (False, 10, False, 2),
            (False, 2, False, 4),
        ],
    )
    def test_score_table(self, active, violations, recent, expected):
        assert calculate_focus_score(active, violations, recent) == expected

    def test_score_is_pure(self):
        scores = {calculate_focus_score(True, 2, True) for _ in range(5)}

        assert scores == {7}

    def test_score_clamped(self):
        for violations in range(0, 50):
            for active in (True, False):
                for recent in (True, False):
                    assert 1 <= calculate_focus_score(active, violations, recent) <= 10


@pytest.mark.unit
class TestRecommendations:
    """Tests for score bands."""

    def test_bands(self):
        assert "Excellent" in score_recommendations(9)[0]
        assert "Good" in score_recommendations(6)[0]
        assert "distractions" in score_recommendations(4)[0]
        assert len(score_recommendations(2)) > 1

    def test_summary_shape(self):
        summary = focus_summary(True, 0, False, goal="Write tests")

        assert summary["score"] == 9
        assert summary["scale"] == "1-10"
        assert summary["goal"] == "Write tests"
        assert summary["recommendations"]


@pytest.mark.unit
class TestActivityTracker:
    """Tests for ActivityTracker."""

    def test_counts_only_recent_commands(self, memory_store, sample_config, fake_clock):
        tracker = ActivityTracker(memory_store, sample_config, clock=fake_clock)
        tracker.record("work start")
        fake_clock.advance(20 * 60)
        tracker.record("work status")
        tracker.record("work focus")

        assert tracker.recent_count() == 2

    def test_recent_activity_needs_more_than_threshold(self, memory_store, sample_config, fake_clock):
        tracker = ActivityTracker(memory_store, sample_config, clock=fake_clock)
        for _ in range(10):
            tracker.record("work status")

        assert tracker.has_recent_activity() is False

        tracker.record("work status")

        assert tracker.has_recent_activity() is True

    def test_records_written_to_daily_archive(self, memory_store, sample_config, fake_clock):
        tracker = ActivityTracker(memory_store, sample_config, clock=fake_clock)
        tracker.record("break start")

        records = memory_store.read_records("activity_2024-05-15")
        assert records[0]["command"] == "break start"


@pytest.mark.unit
class TestActivityRetention:
    """Tests for pruning old daily activity logs."""

    def _seed(self, store, *days):
        for day in days:
            store.append_record(f"activity_{day}", {"timestamp": f"{day}T12:00:00Z", "command": "work status"})

    def test_cleanup_deletes_logs_past_retention(self, memory_store, sample_config, fake_clock):
        self._seed(memory_store, "2024-01-01", "2024-02-15", "2024-02-16", "2024-05-14")
        tracker = ActivityTracker(memory_store, sample_config, clock=fake_clock)

        deleted = tracker.cleanup()

        # 90 days before 2024-05-15 is 2024-02-15
        assert deleted == ["activity_2024-01-01"]
        assert memory_store.list_archives("activity_") == [
            "activity_2024-02-15",
            "activity_2024-02-16",
            "activity_2024-05-14",
        ]

    def test_first_record_of_the_day_prunes(self, memory_store, sample_config, fake_clock):
        self._seed(memory_store, "2023-12-31")
        tracker = ActivityTracker(memory_store, sample_config, clock=fake_clock)

        tracker.record("work start")

        assert memory_store.list_archives("activity_") == ["activity_2024-05-15"]

    def test_later_records_skip_the_scan(self, memory_store, sample_config, fake_clock):
        tracker = ActivityTracker(memory_store, sample_config, clock=fake_clock)
        tracker.record("work start")
        self._seed(memory_store, "2023-12-31")

        tracker.record("work status")

        assert "activity_2023-12-31" in memory_store.list_archives("activity_")

    def test_zero_retention_keeps_everything(self, memory_store, sample_config, fake_clock):
        sample_config["focus"]["activity_retention_days"] = 0
        self._seed(memory_store, "2020-01-01")
        tracker = ActivityTracker(memory_store, sample_config, clock=fake_clock)

        assert tracker.cleanup() == []
        assert memory_store.list_archives("activity_") == ["activity_2020-01-01"]

    def test_unrecognized_names_are_left_alone(self, memory_store, sample_config, fake_clock):
        memory_store.append_record("activity_backup", {"n": 1})
        tracker = ActivityTracker(memory_store, sample_config, clock=fake_clock)

        assert tracker.cleanup() == []
        assert memory_store.list_archives("activity_") == ["activity_backup"]

    def test_cleanup_on_disk(self, tmp_path, sample_config, fake_clock):
        store = JsonStateStore(tmp_path)
        self._seed(store, "2024-01-01", "2024-05-01")
        tracker = ActivityTracker(store, sample_config, clock=fake_clock)

        tracker.cleanup()

        assert not (tmp_path / "activity_2024-01-01.jsonl").exists()
        assert (tmp_path / "activity_2024-05-01.jsonl").exists()
