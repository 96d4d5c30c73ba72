"""Centralized log path management for coursesite."""

from pathlib import Path

import platformdirs


def get_log_dir() -> Path:
    """Get the system-appropriate log directory for coursesite.

    Returns:
        Path to the log directory (created if it doesn't exist)
        - Windows: %LOCALAPPDATA%/coursesite/Logs
        - macOS: ~/Library/Logs/coursesite
        - Linux: ~/.local/state/coursesite/log
    """
    log_dir = Path(platformdirs.user_log_dir("coursesite", appauthor=False))
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def get_main_log_path() -> Path:
    """Get the path to the build log file."""
    return get_log_dir() / "coursesite.log"
