"""
Unit tests for the persisted data models.

Tests document validation:
- Required fields and enum values
- Schema version handling
- Timestamp parsing
"""

import os
import sys
from datetime import datetime, timezone

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from work_sergeant.errors import SchemaError
from work_sergeant.models import (
    SCHEMA_VERSION,
    BreakSession,
    EnforcementState,
    TimerHandle,
    WorkSession,
)

START = datetime(2024, 5, 15, 9, 0, 0, tzinfo=timezone.utc)


@pytest.mark.unit
class TestWorkSession:
    """Tests for WorkSession documents."""

    def test_to_dict_serializes_timestamps(self):
        session = WorkSession(goal="Implement parser", start_time=START, planned_duration_seconds=1500)
        data = session.to_dict()

        assert data["start_time"] == "2024-05-15T09:00:00Z"
        assert data["end_time"] is None
        assert data["schema_version"] == SCHEMA_VERSION
        assert data["status"] == "active"

    def test_from_dict_reads_back(self):
        data = {
            "goal": "Implement parser",
            "start_time": "2024-05-15T09:00:00Z",
            "planned_duration_seconds": 1500,
            "active_project": "alpha",
        }
        session = WorkSession.from_dict(data)

        assert session.goal == "Implement parser"
        assert session.start_time == START
        assert session.active_project == "alpha"
        assert session.is_active

    def test_sub_second_start_time_survives_round_trip(self):
        start = START.replace(microsecond=999000)
        data = WorkSession(goal="x", start_time=start, planned_duration_seconds=10).to_dict()

        assert data["start_time"] == "2024-05-15T09:00:00.999000Z"
        assert WorkSession.from_dict(data).start_time == start

    def test_missing_goal_rejected(self):
        with pytest.raises(SchemaError):
            WorkSession.from_dict({"start_time": "2024-05-15T09:00:00Z", "planned_duration_seconds": 10})

    def test_future_schema_version_rejected(self):
        data = WorkSession(goal="x", start_time=START, planned_duration_seconds=10).to_dict()
        data["schema_version"] = SCHEMA_VERSION + 1

        with pytest.raises(SchemaError):
            WorkSession.from_dict(data)

    def test_document_without_version_is_accepted(self):
        data = WorkSession(goal="x", start_time=START, planned_duration_seconds=10).to_dict()
        del data["schema_version"]

        assert WorkSession.from_dict(data).goal == "x"

    def test_bad_timestamp_rejected(self):
        with pytest.raises(SchemaError):
            WorkSession.from_dict(
                {"goal": "x", "start_time": "yesterday", "planned_duration_seconds": 10}
            )


@pytest.mark.unit
class TestBreakSession:
    """Tests for BreakSession documents."""

    def test_unknown_type_rejected(self):
        with pytest.raises(SchemaError):
            BreakSession.from_dict(
                {"type": "nap", "start_time": "2024-05-15T09:00:00Z", "planned_duration_seconds": 300}
            )

    def test_zero_planned_duration_rejected(self):
        with pytest.raises(SchemaError):
            BreakSession.from_dict(
                {"type": "short", "start_time": "2024-05-15T09:00:00Z", "planned_duration_seconds": 0}
            )

    def test_blocking_flag_preserved(self):
        brk = BreakSession(type="long", start_time=START, planned_duration_seconds=900, blocking_mode=True)
        restored = BreakSession.from_dict(brk.to_dict())

        assert restored.blocking_mode is True
        assert restored.type == "long"


@pytest.mark.unit
class TestEnforcementState:
    """Tests for EnforcementState documents."""

    def test_defaults(self):
        state = EnforcementState()

        assert state.mode == "moderate"
        assert state.violation_count == 0
        assert state.break_required is False

    def test_unknown_mode_rejected(self):
        with pytest.raises(SchemaError):
            EnforcementState.from_dict({"mode": "brutal"})

    def test_negative_violations_rejected(self):
        with pytest.raises(SchemaError):
            EnforcementState.from_dict({"violation_count": -1})

    def test_break_type_required_limited_to_short_and_long(self):
        with pytest.raises(SchemaError):
            EnforcementState.from_dict({"break_required": True, "break_type_required": "custom"})


@pytest.mark.unit
class TestTimerHandle:
    """Tests for TimerHandle documents."""

    def test_from_dict(self):
        handle = TimerHandle.from_dict(
            {"owner_kind": "break", "pid": 4321, "end_time": "2024-05-15T09:05:00Z", "owner_token": "t"}
        )

        assert handle.owner_kind == "break"
        assert handle.pid == 4321
        assert handle.owner_token == "t"

    def test_invalid_pid_rejected(self):
        with pytest.raises(SchemaError):
            TimerHandle.from_dict({"owner_kind": "work", "pid": 0, "end_time": "2024-05-15T09:05:00Z"})
