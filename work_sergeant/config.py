"""Configuration management for Work Sergeant."""
import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger("work_sergeant.config")

HOME_ENV_VAR = "WORK_SERGEANT_HOME"
CONFIG_FILE_NAME = "config.json"


DEFAULT_CONFIG = {
    "work": {
        "duration_seconds": 1500,  # 25 minutes
        "reminder_interval_minutes": 30,  # 0 disables interval reminders
        "auto_start_break": False,
    },
    "breaks": {
        "short_seconds": 300,
        "long_seconds": 900,
        "pomodoros_until_long": 4,
        "completion_threshold": 0.8,
        # Background daemon that starts a short break every interval while idle
        "scheduled_enabled": False,
        "scheduled_interval_minutes": 120,
    },
    "enforcement": {
        # Defaults used until enforcement.json exists
        "mode": "moderate",
        "block_project_switch": False,
        "require_break": False,
        "confirm_early_stop": False,
        "track_breaks": False,
        "distraction_threshold": 3,
    },
    "notifications": {
        "enabled": True,
        "sound": False,
        "app_name": "Work Sergeant",
        "rate": 150,
        "volume": 0.8,
    },
    "focus": {
        "activity_window_minutes": 15,
        "activity_threshold": 10,
        "activity_retention_days": 90,  # 0 keeps activity logs forever
    },
    "timer": {
        "poll_interval_sec": 1.0,
    },
}


def get_home_dir(override: Optional[str] = None) -> Path:
    """
    Resolve the directory holding state, archives, config and logs.

    Args:
        override: Explicit directory (e.g. from --home)

    Returns:
        Path to the home directory (created if missing)
    """
    raw = override or os.getenv(HOME_ENV_VAR)
    home = Path(raw).expanduser() if raw else Path.home() / ".work_sergeant"
    home.mkdir(parents=True, exist_ok=True)
    return home


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge on top

    Returns:
        Merged dictionary
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    mode = os.getenv("WORK_SERGEANT_ENFORCEMENT")
    if mode:
        config["enforcement"]["mode"] = mode.strip().lower()

    notifications = os.getenv("WORK_SERGEANT_NOTIFICATIONS")
    if notifications is not None:
        config["notifications"]["enabled"] = notifications.strip().lower() in (
            "1", "true", "yes", "on"
        )
    return config


def load_config(config_path) -> Dict[str, Any]:
    """
    Load configuration from file, creating defaults if missing.

    Args:
        config_path: Path to config file

    Returns:
        Configuration dictionary
    """
    config_file = Path(config_path)

    if not config_file.exists():
        logger.info(f"Config file not found at {config_path}, creating defaults")
        save_config(DEFAULT_CONFIG, config_path)
        return _apply_env_overrides(copy.deepcopy(DEFAULT_CONFIG))

    try:
        with open(config_file, "r") as f:
            config = json.load(f)
        if not isinstance(config, dict):
            raise ValueError("top-level value must be an object")

        validated_config = deep_merge(copy.deepcopy(DEFAULT_CONFIG), config)
        logger.debug(f"Config loaded from {config_path}")
        return _apply_env_overrides(validated_config)

    except (json.JSONDecodeError, ValueError) as e:
        logger.warning(f"Invalid config file {config_path}: {e}. Using defaults.")
        return _apply_env_overrides(copy.deepcopy(DEFAULT_CONFIG))


def save_config(config: Dict[str, Any], config_path) -> None:
    """
    Save configuration to file.

    Args:
        config: Configuration dictionary
        config_path: Path to save config file
    """
    try:
        with open(config_path, "w") as f:
            json.dump(config, f, indent=2)
        logger.info(f"Config saved to {config_path}")
    except OSError as e:
        logger.error(f"Error saving config: {e}")
