"""User-facing messages for Work Sergeant.

Notification titles, reminder nudges and completion messages live here so
the state machines stay free of copy text.
"""
import random
from typing import List, Optional

NOTIFY_TITLE = "Work Sergeant"
SCHEDULED_BREAK_TITLE = "⏰ Scheduled Break Time!"


def get_reminders() -> List[str]:
    """Get reminder phrases for periodic nudges during a work session."""
    return [
        "Still on it? Stay focused on your goal.",
        "Remember to drink some water.",
        "Take a moment to breathe, then keep going.",
        "How's your progress? Keep the session on track.",
    ]


def get_work_complete_phrases() -> List[str]:
    """Get phrases for when a work countdown runs out."""
    return [
        "Work period complete! Time for a break.",
        "Pomodoro done! You've earned a rest.",
        "Excellent focus! Take a breather.",
    ]


def get_break_complete_phrases() -> List[str]:
    """Get phrases for when a break countdown runs out."""
    return [
        "Break's over! Ready for another round?",
        "Time to get back to work!",
        "Recharged? Let's go!",
    ]


def reminder_message(goal: str, elapsed_seconds: int) -> str:
    return f"{random.choice(get_reminders())} ({format_duration(elapsed_seconds)} on: {goal})"


def work_complete_message(goal: str) -> str:
    return f"{random.choice(get_work_complete_phrases())} Goal: {goal}"


def break_complete_message(break_type: str) -> str:
    return f"{random.choice(get_break_complete_phrases())} ({break_type} break finished)"


def format_duration(seconds: Optional[int]) -> str:
    """
    Format a number of seconds for humans.

    Examples: ``45s``, ``5m 0s``, ``1h 2m``.
    """
    if seconds is None:
        return "-"
    seconds = max(0, int(seconds))
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def format_clock(seconds: int) -> str:
    """``MM:SS`` for the live countdown."""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes:02d}:{secs:02d}"


def format_rate(rate: Optional[float]) -> str:
    if rate is None:
        return "n/a"
    return f"{rate * 100:.0f}%"


def scheduled_break_message(interval_minutes: int) -> str:
    return f"It's been {interval_minutes} minutes. Time for a break!"
