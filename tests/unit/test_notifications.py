"""
Unit tests for notification sinks.

Tests alert delivery:
- Sink selection from config
- Desktop and speech backends (mocked)
- Failure tolerance
"""

import os
import sys
from unittest.mock import MagicMock, patch

import pytest

sys.path.insert(
    0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
)

from work_sergeant.notifications import (  # noqa: E402
    CompositeNotifier,
    DesktopNotifier,
    Notifier,
    NullNotifier,
    SpeechNotifier,
    create_notifier,
    safe_notify,
)


@pytest.mark.unit
class TestCreateNotifier:
    """Tests for create_notifier."""

    def test_disabled(self):
        assert isinstance(create_notifier({"notifications": {"enabled": False}}), NullNotifier)

    def test_desktop_only(self):
        notifier = create_notifier({"notifications": {"enabled": True, "sound": False}})

        assert isinstance(notifier, DesktopNotifier)

    def test_desktop_and_speech(self):
        with patch("work_sergeant.notifications.pyttsx3") as mock_pyttsx3:
            mock_pyttsx3.init.return_value = MagicMock()

            notifier = create_notifier({"notifications": {"enabled": True, "sound": True, "rate": 170}})

        assert isinstance(notifier, CompositeNotifier)
        assert isinstance(notifier.notifiers[1], SpeechNotifier)
        assert notifier.notifiers[1].rate == 170

    def test_missing_section_defaults_to_desktop(self):
        assert isinstance(create_notifier({}), DesktopNotifier)


@pytest.mark.unit
class TestDesktopNotifier:
    """Tests for DesktopNotifier."""

    @patch("work_sergeant.notifications.notification")
    def test_notify_calls_plyer(self, mock_notification):
        DesktopNotifier(app_name="WS", timeout=5).notify("Title", "Body")

        mock_notification.notify.assert_called_once_with(
            title="Title", message="Body", app_name="WS", timeout=5
        )

    @patch("work_sergeant.notifications.notification")
    def test_backend_error_is_tolerated(self, mock_notification):
        mock_notification.notify.side_effect = NotImplementedError("no backend")

        DesktopNotifier().notify("Title", "Body")


@pytest.mark.unit
class TestSpeechNotifier:
    """Tests for SpeechNotifier."""

    def test_speaks_message(self):
        with patch("work_sergeant.notifications.pyttsx3") as mock_pyttsx3:
            engine = MagicMock()
            mock_pyttsx3.init.return_value = engine

            SpeechNotifier(rate=140, volume=0.5).notify("Title", "Take a break")

        engine.setProperty.assert_any_call("rate", 140)
        engine.setProperty.assert_any_call("volume", 0.5)
        engine.say.assert_called_once_with("Take a break")
        engine.runAndWait.assert_called_once()

    def test_engine_init_failure(self):
        with patch("work_sergeant.notifications.pyttsx3") as mock_pyttsx3:
            mock_pyttsx3.init.side_effect = RuntimeError("no driver")

            speaker = SpeechNotifier()

        assert speaker.engine is None
        speaker.notify("Title", "Body")


@pytest.mark.unit
class TestSafeNotify:
    """Tests for safe_notify."""

    def test_none_is_noop(self):
        safe_notify(None, "Title", "Body")

    def test_failing_sink_does_not_raise(self):
        class Broken(Notifier):
            def notify(self, title, message):
                raise RuntimeError("boom")

        safe_notify(Broken(), "Title", "Body")

    def test_composite_fans_out(self):
        first, second = MagicMock(spec=Notifier), MagicMock(spec=Notifier)

        safe_notify(CompositeNotifier([first, second]), "T", "M")

        first.notify.assert_called_once_with("T", "M")
        second.notify.assert_called_once_with("T", "M")
