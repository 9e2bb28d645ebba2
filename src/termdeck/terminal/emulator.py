"""pyte-backed screen buffers fed by session output."""

from __future__ import annotations

import threading

import pyte


class _TitleReportingScreen(pyte.Screen):
    def __init__(self, columns: int, lines: int) -> None:
        super().__init__(columns, lines)
        self.reported_titles: list[str] = []

    def set_title(self, param: str) -> None:
        super().set_title(param)
        self.reported_titles.append(param)


class TerminalScreen:
    """Screen buffer for one session.

    Output is fed from the session's pump thread while renderers read the
    display from the control thread, so both sides take the same lock.
    """

    def __init__(self, *, columns: int = 80, rows: int = 24) -> None:
        self._screen = _TitleReportingScreen(columns, rows)
        self._stream = pyte.ByteStream(self._screen)
        self._lock = threading.Lock()

    @property
    def size(self) -> tuple[int, int]:
        return self._screen.columns, self._screen.lines

    @property
    def title(self) -> str:
        return self._screen.title

    def feed(self, data: bytes) -> list[str]:
        """Render ``data``; returns the titles (OSC 0/2) it reported, in order."""
        with self._lock:
            self._stream.feed(data)
            titles = self._screen.reported_titles
            self._screen.reported_titles = []
        return titles

    def display(self) -> list[str]:
        with self._lock:
            return list(self._screen.display)

    def text(self) -> str:
        return "\n".join(line.rstrip() for line in self.display()).rstrip("\n")

    def resize(self, *, columns: int, rows: int) -> None:
        with self._lock:
            self._screen.resize(lines=rows, columns=columns)
