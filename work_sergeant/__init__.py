"""Work Sergeant - work sessions, breaks and focus enforcement.

A command-line engine with:
- Work sessions with background countdown timers
- Short/long/custom breaks driven by a pomodoro counter
- Enforcement modes (off, moderate, coaching, strict)
- Violation tracking, focus score and break compliance reports
"""

__version__ = "1.0.0"

from .controller import WorkController
from .errors import WorkSergeantError
from .storage import JsonStateStore, MemoryStateStore

__all__ = [
    "WorkController",
    "WorkSergeantError",
    "JsonStateStore",
    "MemoryStateStore",
]
