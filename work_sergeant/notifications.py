"""Notification sinks: desktop popups and spoken alerts."""
import logging
from typing import Any, Dict, List, Optional

import pyttsx3
from plyer import notification

logger = logging.getLogger("work_sergeant.notifications")


class Notifier:
    """Interface for delivering a user-facing alert."""

    def notify(self, title: str, message: str) -> None:
        raise NotImplementedError


class NullNotifier(Notifier):
    """Drops every alert. Used when notifications are disabled."""

    def notify(self, title: str, message: str) -> None:
        logger.debug(f"Notification suppressed: {title}: {message}")


class DesktopNotifier(Notifier):
    """Desktop notification through plyer."""

    def __init__(self, app_name: str = "Work Sergeant", timeout: int = 10):
        self.app_name = app_name
        self.timeout = timeout

    def notify(self, title: str, message: str) -> None:
        try:
            notification.notify(
                title=title,
                message=message,
                app_name=self.app_name,
                timeout=self.timeout,
            )
            logger.debug(f"Desktop notification sent: {title}")
        except Exception as e:
            # plyer raises NotImplementedError or backend errors on headless hosts
            logger.warning(f"Desktop notification failed: {e}")


class SpeechNotifier(Notifier):
    """Speaks the alert with pyttsx3."""

    def __init__(self, rate: int = 150, volume: float = 0.8):
        self.rate = rate
        self.volume = volume
        self.engine = None
        self._init_engine()

    def _init_engine(self):
        try:
            self.engine = pyttsx3.init()
            self.engine.setProperty("rate", self.rate)
            self.engine.setProperty("volume", self.volume)
            logger.debug("pyttsx3 engine initialized")
        except Exception as e:
            logger.warning(f"Failed to initialize pyttsx3 engine: {e}")
            self.engine = None

    def notify(self, title: str, message: str) -> None:
        if not self.engine:
            logger.debug(f"TTS engine not available, would speak: {message[:50]}")
            return

        try:
            self.engine.say(message)
            self.engine.runAndWait()
            logger.debug(f"Spoke: {message[:50]}")
        except Exception as e:
            logger.warning(f"Error speaking alert: {e}")


class CompositeNotifier(Notifier):
    """Fans an alert out to several sinks."""

    def __init__(self, notifiers: List[Notifier]):
        self.notifiers = notifiers

    def notify(self, title: str, message: str) -> None:
        for notifier in self.notifiers:
            notifier.notify(title, message)


def create_notifier(config: Dict[str, Any]) -> Notifier:
    """
    Build the notification sink described by the config.

    Args:
        config: Configuration dictionary

    Returns:
        Notifier (a NullNotifier when notifications are disabled)
    """
    settings: Dict[str, Any] = config.get("notifications", {})
    if not settings.get("enabled", True):
        return NullNotifier()

    sinks: List[Notifier] = [DesktopNotifier(app_name=settings.get("app_name", "Work Sergeant"))]
    if settings.get("sound", False):
        sinks.append(
            SpeechNotifier(
                rate=int(settings.get("rate", 150)),
                volume=float(settings.get("volume", 0.8)),
            )
        )
    return CompositeNotifier(sinks) if len(sinks) > 1 else sinks[0]


def safe_notify(notifier: Optional[Notifier], title: str, message: str) -> None:
    """Deliver an alert; a failing sink never breaks the caller."""
    if notifier is None:
        return
    try:
        notifier.notify(title, message)
    except Exception as e:
        logger.warning(f"Notifier {type(notifier).__name__} failed: {e}")
