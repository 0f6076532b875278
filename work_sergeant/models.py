"""Data models for Work Sergeant."""
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, Literal, Optional

from .clock import from_iso, to_iso
from .errors import SchemaError

SCHEMA_VERSION = 1

ENFORCEMENT_MODES = ("off", "moderate", "coaching", "strict")
BREAK_TYPES = ("short", "long", "custom")
TIMER_ROLES = ("work", "break", "scheduled")


def _check_version(data: Dict[str, Any], kind: str) -> None:
    if not isinstance(data, dict):
        raise SchemaError(f"{kind} document must be a JSON object")
    version = data.get("schema_version", SCHEMA_VERSION)
    if not isinstance(version, int) or version > SCHEMA_VERSION:
        raise SchemaError(f"Unsupported {kind} schema version: {version!r}")


def _required(data: Dict[str, Any], key: str, kind: str) -> Any:
    if data.get(key) in (None, ""):
        raise SchemaError(f"{kind} is missing required field '{key}'")
    return data[key]


def _choice(value: Any, allowed: Iterable[str], field_name: str) -> Any:
    if value not in allowed:
        raise SchemaError(f"Invalid {field_name}: {value!r}")
    return value


def _ts(value: Optional[str]) -> Optional[datetime]:
    if value in (None, ""):
        return None
    try:
        return from_iso(value)
    except (TypeError, ValueError) as e:
        raise SchemaError(f"Invalid timestamp {value!r}: {e}")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return to_iso(value) if value else None


def _int(value: Any, field_name: str, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise SchemaError(f"Invalid {field_name}: {value!r}")
    return value


@dataclass
class WorkSession:
    """One focused-work interval."""

    goal: str
    start_time: datetime
    planned_duration_seconds: int
    status: Literal["active", "stopped"] = "active"
    end_time: Optional[datetime] = None
    duration_seconds: int = 0
    pomodoro_count: int = 0
    early_stop: bool = False
    termination_reason: Optional[str] = None
    active_project: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["start_time"] = _iso(self.start_time)
        data["end_time"] = _iso(self.end_time)
        data["schema_version"] = SCHEMA_VERSION
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkSession":
        _check_version(data, "WorkSession")
        return cls(
            goal=_required(data, "goal", "WorkSession"),
            start_time=_ts(_required(data, "start_time", "WorkSession")),
            planned_duration_seconds=_int(
                data.get("planned_duration_seconds", 0), "planned_duration_seconds"
            ),
            status=_choice(data.get("status", "active"), ("active", "stopped"), "status"),
            end_time=_ts(data.get("end_time")),
            duration_seconds=_int(data.get("duration_seconds", 0), "duration_seconds"),
            pomodoro_count=_int(data.get("pomodoro_count", 0), "pomodoro_count"),
            early_stop=bool(data.get("early_stop", False)),
            termination_reason=data.get("termination_reason"),
            active_project=data.get("active_project") or None,
        )


@dataclass
class BreakSession:
    """One rest interval."""

    type: Literal["short", "long", "custom"]
    start_time: datetime
    planned_duration_seconds: int
    blocking_mode: bool = False
    status: Literal["active", "completed", "stopped"] = "active"
    end_time: Optional[datetime] = None
    duration_seconds: int = 0
    completed_fully: bool = False

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["start_time"] = _iso(self.start_time)
        data["end_time"] = _iso(self.end_time)
        data["schema_version"] = SCHEMA_VERSION
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BreakSession":
        _check_version(data, "BreakSession")
        return cls(
            type=_choice(data.get("type"), BREAK_TYPES, "break type"),
            start_time=_ts(_required(data, "start_time", "BreakSession")),
            planned_duration_seconds=_int(
                _required(data, "planned_duration_seconds", "BreakSession"),
                "planned_duration_seconds",
                minimum=1,
            ),
            blocking_mode=bool(data.get("blocking_mode", False)),
            status=_choice(
                data.get("status", "active"), ("active", "completed", "stopped"), "status"
            ),
            end_time=_ts(data.get("end_time")),
            duration_seconds=_int(data.get("duration_seconds", 0), "duration_seconds"),
            completed_fully=bool(data.get("completed_fully", False)),
        )


@dataclass
class EnforcementState:
    """Persisted policy bookkeeping, one document per home directory."""

    mode: Literal["off", "moderate", "coaching", "strict"] = "moderate"
    active_project: Optional[str] = None
    break_required: bool = False
    break_type_required: Optional[Literal["short", "long"]] = None
    violation_count: int = 0
    # Policy sub-flags
    block_project_switch: bool = False
    require_break: bool = False
    confirm_early_stop: bool = False
    track_breaks: bool = False
    last_session_end: Optional[datetime] = None
    last_break_end: Optional[datetime] = None
    updated: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("last_session_end", "last_break_end", "updated"):
            data[key] = _iso(getattr(self, key))
        data["schema_version"] = SCHEMA_VERSION
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EnforcementState":
        _check_version(data, "EnforcementState")
        break_type = data.get("break_type_required") or None
        if break_type is not None:
            _choice(break_type, ("short", "long"), "break_type_required")
        return cls(
            mode=_choice(data.get("mode", "moderate"), ENFORCEMENT_MODES, "mode"),
            active_project=data.get("active_project") or None,
            break_required=bool(data.get("break_required", False)),
            break_type_required=break_type,
            violation_count=_int(data.get("violation_count", 0), "violation_count"),
            block_project_switch=bool(data.get("block_project_switch", False)),
            require_break=bool(data.get("require_break", False)),
            confirm_early_stop=bool(data.get("confirm_early_stop", False)),
            track_breaks=bool(data.get("track_breaks", False)),
            last_session_end=_ts(data.get("last_session_end")),
            last_break_end=_ts(data.get("last_break_end")),
            updated=_ts(data.get("updated")),
        )


@dataclass
class TimerHandle:
    """A running background countdown."""

    owner_kind: Literal["work", "break", "scheduled"]
    pid: int
    end_time: datetime
    owner_token: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "owner_kind": self.owner_kind,
            "pid": self.pid,
            "end_time": _iso(self.end_time),
            "owner_token": self.owner_token,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimerHandle":
        _check_version(data, "TimerHandle")
        return cls(
            owner_kind=_choice(data.get("owner_kind"), TIMER_ROLES, "owner_kind"),
            pid=_int(_required(data, "pid", "TimerHandle"), "pid", minimum=1),
            end_time=_ts(_required(data, "end_time", "TimerHandle")),
            owner_token=data.get("owner_token", ""),
        )
