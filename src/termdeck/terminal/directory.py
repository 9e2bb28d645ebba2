"""Working-directory state shared by new terminal sessions."""

from __future__ import annotations

import logging as py_logging
import os
import threading
from pathlib import Path

logger = py_logging.getLogger(__name__)


def resolve_launch_directory(path: str | Path | None = None) -> str:
    """Startup directory for a path given on the command line.

    No path means the home directory, a file means its parent. Anything else
    is made absolute and taken as-is; the shell reports directories that do
    not exist.
    """
    if path is None or not str(path).strip():
        return str(Path.home())
    candidate = Path(str(path).strip()).expanduser()
    if not candidate.is_absolute():
        candidate = Path(os.path.normpath(Path.cwd() / candidate))
    if candidate.is_file():
        candidate = candidate.parent
    return str(candidate)


class DirectoryPropagation:
    """Holds the directory new sessions start in.

    Changes only affect sessions created afterwards; running sessions keep
    the directory they were launched with.
    """

    def __init__(self, initial_directory: str | Path | None = None) -> None:
        self._current = resolve_launch_directory(initial_directory)
        self._lock = threading.Lock()

    @property
    def current(self) -> str:
        with self._lock:
            return self._current

    def on_working_directory_changed(self, new_directory: str | Path) -> None:
        value = str(new_directory)
        with self._lock:
            previous, self._current = self._current, value
        if previous != value:
            logger.debug("Working directory changed from %s to %s", previous, value)
