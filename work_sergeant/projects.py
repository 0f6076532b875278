"""Project detection for context-switch enforcement."""
import logging
import os
import subprocess
from pathlib import Path
from typing import Optional

from .enforcement import normalize_project

logger = logging.getLogger("work_sergeant.projects")


class ProjectDetector:
    """Names the project a directory belongs to.

    The name is the basename of the enclosing git repository's toplevel, or
    of the directory itself when it is not inside a repository.
    """

    def __init__(self, git_binary: str = "git", timeout: float = 2.0):
        self.git_binary = git_binary
        self.timeout = timeout

    def _git_toplevel(self, directory: str) -> Optional[str]:
        try:
            result = subprocess.run(
                [self.git_binary, "rev-parse", "--show-toplevel"],
                cwd=directory,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"git lookup failed in {directory}: {e}")
            return None

        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def detect(self, directory: Optional[str] = None) -> Optional[str]:
        """
        Detect the project name for a directory.

        Args:
            directory: Directory to inspect (defaults to the current one)

        Returns:
            Project name, or None if it cannot be determined
        """
        directory = directory or os.getcwd()
        if not os.path.isdir(directory):
            logger.debug(f"Not a directory, using its name: {directory}")
            return normalize_project(Path(directory.rstrip("/\\")).name)

        toplevel = self._git_toplevel(directory)
        base = toplevel or os.path.abspath(directory)
        project = normalize_project(Path(base).name)
        logger.debug(f"Detected project '{project}' for {directory}")
        return project
