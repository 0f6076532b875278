"""Enforcement policy evaluation.

The policy functions are pure functions of an EnforcementState (plus the
event being checked); callers save the state they get back. load_state and
save_state are the only functions that touch the store.

Mode summary:

    mode      project switch        break after session      early-stop confirm
    off       ignored               never                    never
    moderate  violation, allowed    if require_break         if confirm_early_stop
    coaching  violation + warning   gentle (warn, allow)     if confirm_early_stop
    strict    blocked if flag set   always, blocks start     always
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from .errors import BreakRequired, ProjectSwitchBlocked, ValidationError
from .focus import record_violation
from .models import ENFORCEMENT_MODES, BreakSession, EnforcementState
from .storage import ENFORCEMENT, StateStore, load_model

logger = logging.getLogger("work_sergeant.enforcement")


@dataclass
class BreakPolicy:
    """What the current mode says about breaks between sessions."""

    required: bool = False
    blocking: bool = False


def default_state(config: Dict[str, Any]) -> EnforcementState:
    """Enforcement state used when nothing has been persisted yet."""
    enforcement = config.get("enforcement", {})
    mode = enforcement.get("mode", "moderate")
    if mode not in ENFORCEMENT_MODES:
        logger.warning(f"Unknown enforcement mode '{mode}' in config, using moderate")
        mode = "moderate"

    return EnforcementState(
        mode=mode,
        block_project_switch=bool(enforcement.get("block_project_switch", False)),
        require_break=bool(enforcement.get("require_break", False)),
        confirm_early_stop=bool(enforcement.get("confirm_early_stop", False)),
        track_breaks=bool(enforcement.get("track_breaks", False)),
    )


def normalize_project(name: Optional[str]) -> Optional[str]:
    """Trim whitespace and trailing separators; case is kept as-is."""
    if name is None:
        return None
    cleaned = name.strip().rstrip("/\\")
    return cleaned or None


def check_project_switch(
    state: EnforcementState,
    from_project: Optional[str],
    to_project: Optional[str],
    distraction_threshold: int = 3,
) -> Tuple[EnforcementState, Optional[str]]:
    """
    Evaluate a project switch.

    Args:
        state: Current enforcement state
        from_project: Project the session is bound to
        to_project: Project the user moved to
        distraction_threshold: Violations before the warning escalates

    Returns:
        (new_state, warning). ``warning`` is None when nothing happened.

    Raises:
        ProjectSwitchBlocked: strict mode with project-switch blocking on
    """
    source = normalize_project(from_project)
    target = normalize_project(to_project)

    if state.mode == "off" or not source or not target or source == target:
        return state, None

    if state.mode == "strict" and state.block_project_switch:
        logger.warning(f"Project switch blocked: from={source} to={target}")
        raise ProjectSwitchBlocked(source, target)

    new_state = record_violation(state)
    warning = (
        f"Context switch detected: active project '{source}', switched to '{target}' "
        f"(violations: {new_state.violation_count})"
    )
    if new_state.violation_count >= distraction_threshold:
        warning += f". Too many distractions, refocus on '{source}' or stop the session"

    logger.warning(
        f"Project switch violation: from={source} to={target} "
        f"violations={new_state.violation_count}"
    )
    return new_state, warning


def break_policy(state: EnforcementState) -> BreakPolicy:
    if state.mode == "strict":
        return BreakPolicy(required=True, blocking=True)
    if state.mode == "moderate" and state.require_break:
        return BreakPolicy(required=True, blocking=True)
    if state.mode == "coaching" and state.require_break:
        return BreakPolicy(required=True, blocking=False)
    return BreakPolicy()


def check_session_start_allowed(state: EnforcementState) -> Optional[str]:
    """
    Gate a new work session behind an outstanding break requirement.

    Returns:
        A gentle warning when coaching mode lets the start through anyway

    Raises:
        BreakRequired: the policy blocks new sessions until the break is taken
    """
    if not state.break_required:
        return None

    policy = break_policy(state)
    break_type = state.break_type_required or "short"
    if policy.blocking:
        raise BreakRequired(break_type)
    if policy.required:
        return f"A {break_type} break was recommended before this session"
    return None


def requires_early_stop_confirmation(state: EnforcementState) -> bool:
    if state.mode == "strict":
        return True
    if state.mode in ("moderate", "coaching"):
        return state.confirm_early_stop
    return False


def on_session_started(
    state: EnforcementState, project: Optional[str], now: datetime
) -> EnforcementState:
    return replace(state, active_project=normalize_project(project), updated=now)


def on_session_stopped(
    state: EnforcementState, suggested_break_type: str, now: datetime
) -> EnforcementState:
    """Unbind the project and set the break requirement if the mode wants one."""
    policy = break_policy(state)
    new_state = replace(
        state, active_project=None, last_session_end=now, updated=now
    )
    if policy.required:
        new_state = replace(
            new_state, break_required=True, break_type_required=suggested_break_type
        )
        logger.info(f"Break requirement set: {suggested_break_type}")
    return new_state


def break_satisfies(required: Optional[str], taken: str) -> bool:
    """A long break also covers a short-break requirement; custom covers nothing typed."""
    if required is None:
        return True
    if taken == required:
        return True
    return required == "short" and taken == "long"


def on_break_stopped(
    state: EnforcementState, brk: BreakSession, now: datetime
) -> Tuple[EnforcementState, bool]:
    """
    Clear the break requirement if this break pays it off.

    Returns:
        (new_state, requirement_cleared)
    """
    new_state = replace(state, last_break_end=now, updated=now)
    if (
        state.break_required
        and brk.completed_fully
        and break_satisfies(state.break_type_required, brk.type)
    ):
        logger.info(f"Break requirement cleared by {brk.type} break")
        return replace(new_state, break_required=False, break_type_required=None), True
    return new_state, False


def set_mode(state: EnforcementState, mode: str, now: datetime) -> EnforcementState:
    if mode not in ENFORCEMENT_MODES:
        raise ValidationError(
            f"Invalid enforcement mode '{mode}'. Options: {', '.join(ENFORCEMENT_MODES)}"
        )
    logger.info(f"Enforcement mode changed: {state.mode} -> {mode}")
    return replace(state, mode=mode, updated=now)


def toggle_strict_all(state: EnforcementState, on: bool, now: datetime) -> EnforcementState:
    """Flip every strict sub-flag together and move to strict/moderate."""
    logger.info(f"Strict mode {'enabled' if on else 'disabled'} (all sub-flags)")
    return replace(
        state,
        mode="strict" if on else "moderate",
        block_project_switch=on,
        require_break=on,
        confirm_early_stop=on,
        track_breaks=on,
        updated=now,
    )


def load_state(store: StateStore, config: Dict[str, Any]) -> EnforcementState:
    state = load_model(store, ENFORCEMENT, EnforcementState)
    return state if state is not None else default_state(config)


def save_state(store: StateStore, state: EnforcementState) -> None:
    store.write_document(ENFORCEMENT, state.to_dict())
