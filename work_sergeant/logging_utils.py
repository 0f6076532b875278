"""Structured logging setup for Work Sergeant."""
import logging
from datetime import datetime
from pathlib import Path


def setup_logging(log_dir="logs", console_level: int = logging.WARNING) -> logging.Logger:
    """
    Set up structured logging to both file and console.

    Args:
        log_dir: Directory to store log files
        console_level: Level for the console handler. The CLI keeps this at
            WARNING so command output stays clean; the bridge uses INFO.

    Returns:
        Configured logger instance
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    # One log file per day; CLI invocations are short-lived
    log_file = log_path / f"work_sergeant_{datetime.now().strftime('%Y%m%d')}.log"

    logger = logging.getLogger("work_sergeant")
    logger.setLevel(logging.DEBUG)

    # Remove existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler.setFormatter(file_formatter)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_formatter = logging.Formatter("%(levelname)s - %(message)s")
    console_handler.setFormatter(console_formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    logger.debug(f"Logging initialized. Log file: {log_file}")

    return logger
