"""Exception types for Work Sergeant.

Every error carries a machine-readable ``code``, the process exit code the
CLI should use, and an optional hint telling the user how to get unstuck.
"""
from typing import Optional

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_INVALID_ARGS = 2
EXIT_POLICY_BLOCKED = 4
EXIT_INVALID_STATE = 6


class WorkSergeantError(Exception):
    """Base class for all expected Work Sergeant failures."""

    code = "error"
    exit_code = EXIT_ERROR
    default_hint: Optional[str] = None

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint if hint is not None else self.default_hint

    def to_dict(self) -> dict:
        return {
            "status": "error",
            "error": self.code,
            "message": self.message,
            "hint": self.hint,
        }


class ValidationError(WorkSergeantError):
    """Bad input, rejected before any state is touched."""

    code = "validation_error"
    exit_code = EXIT_INVALID_ARGS


class StateConflictError(WorkSergeantError):
    """The requested transition is not valid from the current state."""

    code = "state_conflict"
    exit_code = EXIT_INVALID_STATE


class AlreadyActive(StateConflictError):
    code = "already_active"


class NoActiveSession(StateConflictError):
    code = "no_active_session"
    default_hint = 'Start one with: work-sergeant work start "task description"'


class NoActiveBreak(StateConflictError):
    code = "no_active_break"
    default_hint = "Start one with: work-sergeant break start"


class PolicyBlockedError(WorkSergeantError):
    """The enforcement policy refused the operation."""

    code = "policy_blocked"
    exit_code = EXIT_POLICY_BLOCKED


class ProjectSwitchBlocked(PolicyBlockedError):
    code = "project_switch_blocked"

    def __init__(self, active_project: str, attempted_project: str):
        super().__init__(
            f"Project switch blocked by strict mode: "
            f"active project is '{active_project}', attempted '{attempted_project}'",
            hint=(
                "Stop the current session first (work-sergeant work stop), "
                "or leave strict mode (work-sergeant work strict off)"
            ),
        )
        self.active_project = active_project
        self.attempted_project = attempted_project


class BreakRequired(PolicyBlockedError):
    code = "break_required"

    def __init__(self, break_type: str = "short"):
        super().__init__(
            f"A {break_type} break is required before starting a new work session",
            hint=(
                "Take the break: work-sergeant break start, "
                "or relax the policy: work-sergeant work set-mode coaching"
            ),
        )
        self.break_type = break_type


class SchemaError(WorkSergeantError):
    """A persisted document does not match the expected shape."""

    code = "schema_error"


class TimerSpawnError(WorkSergeantError):
    """The background countdown process could not be started."""

    code = "timer_spawn_failed"
