"""Command-line interface for Work Sergeant.

Every command runs through WorkController and produces a result dict that
is rendered as text or, with ``--format json``, as one JSON object.
"""
import argparse
import json
import logging
import math
import os
import sys
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from .breaks import resolve_mode
from .clock import Clock
from .config import get_home_dir
from .controller import WorkController
from .errors import EXIT_ERROR, EXIT_SUCCESS, ValidationError, WorkSergeantError
from .logging_utils import setup_logging
from .models import BREAK_TYPES, ENFORCEMENT_MODES
from .phrases import format_clock, format_duration, format_rate

logger = logging.getLogger("work_sergeant.cli")

Renderer = Callable[[Dict[str, Any]], List[str]]


def parse_seconds(value: Optional[str], what: str = "duration") -> Optional[int]:
    """Parse a positive whole number of seconds from the command line."""
    if value is None:
        return None
    try:
        seconds = int(value)
    except ValueError:
        raise ValidationError(f"Invalid {what} '{value}': expected whole seconds")
    if seconds <= 0:
        raise ValidationError(f"Invalid {what} '{value}': must be positive")
    return seconds


def is_interactive() -> bool:
    return sys.stdin.isatty() and sys.stdout.isatty()


def confirm_early_stop(session, elapsed: int) -> bool:
    """Ask before stopping a session early. Anything but yes keeps it running."""
    prompt = (
        f"You've worked {format_duration(elapsed)} of "
        f"{format_duration(session.planned_duration_seconds)} on '{session.goal}'. "
        "Stop early? [y/N] "
    )
    try:
        answer = input(prompt)
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def make_countdown(clock: Clock, stream=None) -> Callable[[int], None]:
    """Live ``MM:SS`` countdown for blocking breaks. Ctrl+C propagates to the caller."""
    out = stream or sys.stdout

    def countdown(seconds: int) -> None:
        end = clock.now() + timedelta(seconds=seconds)
        try:
            while True:
                remaining = (end - clock.now()).total_seconds()
                if remaining <= 0:
                    break
                out.write(
                    f"\r  ☕ Break: {format_clock(math.ceil(remaining))} remaining "
                    "(Ctrl+C to end early) "
                )
                out.flush()
                clock.sleep(min(1.0, remaining))
        finally:
            out.write("\n")
            out.flush()

    return countdown


# =============================================================================
# Text renderers
# =============================================================================


def _warnings(result: Dict[str, Any]) -> List[str]:
    return [f"⚠️  {w}" for w in result.get("warnings", [])]


def render_work_start(result):
    lines = [f"✅ Work session started: {result['goal']}"]
    lines.append(f"   Planned: {format_duration(result['planned_duration_seconds'])}")
    if result.get("project"):
        lines.append(f"   Project: {result['project']}")
    return lines + _warnings(result)


def render_work_stop(result):
    if result["status"] == "cancelled":
        return [f"Stop cancelled. Session continues: {result['goal']}"]

    lines = [
        f"⏹  Work session stopped: {result['goal']}",
        f"   Duration: {format_duration(result['duration_seconds'])} "
        f"(planned {format_duration(result['planned_duration_seconds'])})",
        f"   Pomodoros completed: {result['pomodoro_count']}",
    ]
    if result["early_stop"]:
        lines.append("   Stopped early (under 80% of planned time)")
    suggested = result["suggested_break"]
    lines.append(
        f"☕ Suggested: {suggested['type']} break ({format_duration(suggested['duration_seconds'])})"
    )
    if result.get("break_required"):
        lines.append("   A break is required before the next session: work-sergeant break start")
    auto_break = result.get("auto_break")
    if auto_break:
        lines.append(f"   {auto_break['type'].capitalize()} break started automatically")
    return lines + _warnings(result)


def render_work_status(result):
    enforcement = result.get("enforcement", {})
    if not result["active"]:
        lines = ["No active work session", f"   Pomodoros: {result['pomodoro_count']}"]
    else:
        lines = [
            f"🎯 Working on: {result['goal']}",
            f"   Elapsed: {format_duration(result['elapsed_seconds'])}",
            f"   Remaining: {format_duration(result['remaining_seconds'])}",
            f"   Pomodoros: {result['pomodoro_count']}",
        ]
        if result.get("project"):
            lines.append(f"   Project: {result['project']}")
    if enforcement:
        lines.append(
            f"   Enforcement: {enforcement['mode']} "
            f"(violations: {enforcement['violation_count']})"
        )
        if enforcement.get("break_required"):
            lines.append(f"   Break required: {enforcement['break_type_required'] or 'short'}")
    return lines


def render_violations(result):
    return [
        f"Violations: {result['violation_count']} "
        f"(threshold {result['distraction_threshold']}, mode: {result['mode']})"
    ]


def render_reset_violations(result):
    return [f"Violations reset (was {result['previous_count']})"]


def render_set_mode(result):
    return [f"Enforcement mode: {result['mode']}"]


def render_strict(result):
    state = "ON" if result["mode"] == "strict" else "OFF"
    return [
        f"Strict mode {state}",
        f"   Block project switch: {result['block_project_switch']}",
        f"   Require break: {result['require_break']}",
        f"   Confirm early stop: {result['confirm_early_stop']}",
        f"   Track breaks: {result['track_breaks']}",
    ]


def render_focus(result):
    lines = [f"🎯 Focus score: {result['score']}/10"]
    if result.get("goal"):
        lines.append(f"   Goal: {result['goal']}")
    lines.append(f"   Violations: {result['violations']}")
    lines += [f"   {r}" for r in result["recommendations"]]
    return lines


def render_stats(result):
    lines = []
    for key, title, label in (
        ("today", "Today", "date"),
        ("week", "This week, since", "week_start"),
        ("month", "This month", "month"),
    ):
        period = result[key]
        lines += [
            f"{title} ({period[label]})",
            f"   🍅 Pomodoros: {period['pomodoros']}",
            f"   📊 Sessions: {period['sessions']}",
            f"   ⏱  Work time: {format_duration(period['total_duration_seconds'])}",
        ]
    current = result["current"]
    lines.append(f"Current pomodoro count: {current['pomodoro_count']}")
    lines.append("Work session is ACTIVE" if current["session_active"] else "No active work session")
    return lines


def render_reset_pomodoros(result):
    return ["Pomodoro count reset"]


def render_cleanup_activity(result):
    if result["retention_days"] <= 0:
        return ["Activity retention disabled; nothing removed"]
    return [
        f"Removed {len(result['deleted'])} activity logs older than {result['retention_days']} days"
    ]


def render_check_switch(result):
    # Silent unless something happened; this runs on every directory change
    if result["status"] == "violation":
        return [f"⚠️  {result['warning']}"]
    return []


def render_break_start(result):
    if result.get("mode") == "blocking":
        return render_break_stop(result)
    lines = [
        f"☕ {result['type'].capitalize()} break started "
        f"({format_duration(result['planned_duration_seconds'])}) in the background"
    ]
    return lines + _warnings(result)


def render_break_stop(result):
    lines = [
        f"Break {result['status']}: {result['type']}, "
        f"{format_duration(result['duration_seconds'])} of "
        f"{format_duration(result['planned_duration_seconds'])}"
    ]
    if result.get("interrupted"):
        lines.append("   Ended early with Ctrl+C")
    lines.append("   Completed fully" if result["completed_fully"] else "   Stopped before 80% of the planned time")
    if result.get("break_requirement_cleared"):
        lines.append("✅ Break requirement satisfied, you can start working again")
    elif result.get("break_required"):
        lines.append("   Break requirement still pending")
    return lines


def render_break_status(result):
    if not result["active"]:
        return ["No active break"]
    return [
        f"☕ {result['type'].capitalize()} break ({result['mode']})",
        f"   Elapsed: {format_duration(result['elapsed_seconds'])}",
        f"   Remaining: {format_duration(result['remaining_seconds'])}",
    ]


def render_scheduled(result):
    status = result["status"]
    if status == "disabled":
        return ["Scheduled breaks: DISABLED", f"   Enable: {result['hint']}"]
    if status == "running":
        return [
            f"Scheduled breaks: RUNNING (pid {result['pid']})",
            f"   Interval: {result['interval_minutes']} minutes",
            f"   Next break: {result['next_break_at']}",
        ]
    if "was_running" in result:
        return ["Scheduled breaks stopped" if result["was_running"] else "Scheduled breaks were not running"]
    return [
        "Scheduled breaks: STOPPED",
        f"   Interval: {result['interval_minutes']} minutes (when running)",
        "   Start: work-sergeant break scheduled start",
    ]


def render_compliance(result):
    lines = [f"Break Compliance Report ({result['month']})"]
    if result["status"] == "no_data":
        lines.append(f"   {result['message']}")
    else:
        lines += [
            f"   📊 Work sessions: {result['sessions_count']}",
            f"   ☕ Breaks taken: {result['breaks_count']}",
            f"   ✅ Breaks completed fully: {result['breaks_completed_fully_count']}",
            f"   📈 Compliance rate: {format_rate(result['compliance_rate'])}",
            f"   📈 Completion rate: {format_rate(result['completion_rate'])}",
        ]
        if result.get("avg_planned_duration_seconds"):
            lines.append(
                f"   ⏱  Average break: {format_duration(result['avg_break_duration_seconds'])} "
                f"(target: {format_duration(result['avg_planned_duration_seconds'])})"
            )
        if result.get("feedback"):
            lines.append(f"   {result['feedback']}")
    if result.get("hint"):
        lines.append(f"   💡 {result['hint']}")
    return lines


# =============================================================================
# Command handlers
# =============================================================================


def cmd_work_start(controller: WorkController, args) -> Dict[str, Any]:
    return controller.start_work(
        args.goal, parse_seconds(args.planned, "planned duration"), directory=os.getcwd()
    )


def cmd_work_stop(controller: WorkController, args) -> Dict[str, Any]:
    confirm = confirm_early_stop if args.format == "text" and is_interactive() else None
    return controller.stop_work(reason=args.reason, confirm=confirm)


def cmd_break_start(controller: WorkController, args) -> Dict[str, Any]:
    duration_arg, break_type = args.duration, args.type
    # "break start long" reads naturally; accept a type in the duration slot
    if duration_arg in BREAK_TYPES and break_type is None:
        duration_arg, break_type = None, duration_arg

    explicit = "blocking" if args.blocking else ("background" if args.background else None)
    mode = resolve_mode(explicit, is_interactive(), args.format)
    return controller.start_break(
        duration=parse_seconds(duration_arg),
        break_type=break_type,
        mode=mode,
        countdown=make_countdown(controller.clock),
    )


def cmd_break_scheduled(controller: WorkController, args) -> Dict[str, Any]:
    if args.op == "start":
        return controller.scheduled_start()
    if args.op == "stop":
        return controller.scheduled_stop()
    return controller.scheduled_status()


COMMANDS = {
    ("work", "start"): (cmd_work_start, render_work_start),
    ("work", "stop"): (cmd_work_stop, render_work_stop),
    ("work", "status"): (lambda c, a: c.work_status(), render_work_status),
    ("work", "violations"): (lambda c, a: c.violations(), render_violations),
    ("work", "reset-violations"): (lambda c, a: c.reset_violations(), render_reset_violations),
    ("work", "set-mode"): (lambda c, a: c.set_mode(a.mode), render_set_mode),
    ("work", "strict"): (lambda c, a: c.set_strict(a.state == "on"), render_strict),
    ("work", "focus"): (lambda c, a: c.focus(), render_focus),
    ("work", "stats"): (lambda c, a: c.stats(), render_stats),
    ("work", "reset-pomodoros"): (lambda c, a: c.reset_pomodoros(), render_reset_pomodoros),
    ("work", "cleanup-activity"): (lambda c, a: c.cleanup_activity(), render_cleanup_activity),
    ("work", "check-switch"): (lambda c, a: c.check_switch(a.from_dir, a.to_dir), render_check_switch),
    ("break", "start"): (cmd_break_start, render_break_start),
    ("break", "stop"): (lambda c, a: c.stop_break(), render_break_stop),
    ("break", "status"): (lambda c, a: c.break_status(), render_break_status),
    ("break", "compliance"): (lambda c, a: c.break_compliance(a.month), render_compliance),
    ("break", "scheduled"): (cmd_break_scheduled, render_scheduled),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="work-sergeant",
        description="Work sessions, breaks and focus enforcement",
    )
    parser.add_argument(
        "--format",
        choices=["text", "json"],
        default=os.getenv("WORK_SERGEANT_FORMAT", "text"),
        help="Output format (default: text)",
    )
    parser.add_argument("--home", default=None, help="State directory (default: ~/.work_sergeant)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log INFO to the console")

    groups = parser.add_subparsers(dest="group", required=True)

    work = groups.add_parser("work", help="Work sessions and enforcement")
    work_cmds = work.add_subparsers(dest="action", required=True)

    start = work_cmds.add_parser("start", help="Start a work session")
    start.add_argument("goal", help="What you are working on")
    start.add_argument("planned", nargs="?", help="Planned duration in seconds")

    stop = work_cmds.add_parser("stop", help="Stop the active work session")
    stop.add_argument("reason", nargs="?", help="Why the session ended")

    work_cmds.add_parser("status", help="Show the active session")
    work_cmds.add_parser("violations", help="Show the violation count")
    work_cmds.add_parser("reset-violations", help="Reset the violation count")

    set_mode = work_cmds.add_parser("set-mode", help="Set the enforcement mode")
    set_mode.add_argument("mode", choices=ENFORCEMENT_MODES)

    strict = work_cmds.add_parser("strict", help="Toggle every strict-mode policy")
    strict.add_argument("state", choices=["on", "off"])

    work_cmds.add_parser("focus", help="Show the focus score")
    work_cmds.add_parser("stats", help="Show today/week/month statistics")
    work_cmds.add_parser("reset-pomodoros", help="Reset the pomodoro counter")
    work_cmds.add_parser("cleanup-activity", help="Delete activity logs past the retention period")

    switch = work_cmds.add_parser("check-switch", help="Shell hook for directory changes")
    switch.add_argument("from_dir")
    switch.add_argument("to_dir")

    brk = groups.add_parser("break", help="Breaks and break compliance")
    break_cmds = brk.add_subparsers(dest="action", required=True)

    break_start = break_cmds.add_parser("start", help="Start a break")
    run_mode = break_start.add_mutually_exclusive_group()
    run_mode.add_argument("--blocking", action="store_true", help="Show a live countdown")
    run_mode.add_argument("--background", action="store_true", help="Run detached")
    break_start.add_argument("duration", nargs="?", help="Break length in seconds")
    break_start.add_argument("type", nargs="?", help="short, long or custom")

    break_cmds.add_parser("stop", help="Stop the active break")
    break_cmds.add_parser("status", help="Show the active break")

    compliance = break_cmds.add_parser("compliance", help="Break compliance report")
    compliance.add_argument("--month", default=None, help="YYYY-MM (default: this month)")

    scheduled = break_cmds.add_parser("scheduled", help="Daemon that starts a break every interval")
    scheduled.add_argument("op", nargs="?", default="status", choices=["start", "stop", "status"])

    return parser


def emit(result: Dict[str, Any], renderer: Renderer, output_format: str) -> None:
    if output_format == "json":
        print(json.dumps(result, indent=2))
        return
    for line in renderer(result):
        print(line)


def emit_error(error: WorkSergeantError, output_format: str) -> None:
    if output_format == "json":
        print(json.dumps(error.to_dict(), indent=2))
        return
    print(f"❌ {error.message}", file=sys.stderr)
    if error.hint:
        print(f"   💡 {error.hint}", file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run one CLI command.

    Args:
        argv: Arguments (defaults to sys.argv[1:])

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)
    home = get_home_dir(args.home)
    setup_logging(home / "logs", console_level=logging.INFO if args.verbose else logging.WARNING)

    handler, renderer = COMMANDS[(args.group, args.action)]
    try:
        controller = WorkController(home=home)
        controller.record_activity(f"{args.group} {args.action}")
        result = handler(controller, args)
    except WorkSergeantError as e:
        logger.info(f"Command {args.group} {args.action} failed: {e.code}: {e.message}")
        emit_error(e, args.format)
        return e.exit_code
    except Exception as e:
        logger.error(f"Unexpected error in {args.group} {args.action}: {e}", exc_info=True)
        emit_error(WorkSergeantError(f"Unexpected error: {e}"), args.format)
        return EXIT_ERROR

    emit(result, renderer, args.format)
    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
