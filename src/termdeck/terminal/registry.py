"""Ordered tab collection with single selection."""

from __future__ import annotations

import logging as py_logging
import queue
import threading
from collections import deque
from dataclasses import dataclass

from termdeck.errors import ExitCode, TermDeckError
from termdeck.terminal.models import (
    FORM_FEED_BYTE,
    INTERRUPT_BYTE,
    SessionAction,
    SessionEvent,
    SessionEventKind,
    TerminalSession,
)
from termdeck.terminal.runner import SessionRunner

logger = py_logging.getLogger(__name__)

MAX_RECORDED_EVENTS = 500


@dataclass(frozen=True)
class TerminalEvent:
    terminal_id: str
    step: str
    message: str


class TabRegistry:
    """Owns every session, their tab order and the selected tab.

    Mutations and event application share one re-entrant lock, which is the
    single control path; pump and timer threads only enqueue events.
    """

    def __init__(self, runner: SessionRunner, *, max_tabs: int = 0) -> None:
        if max_tabs < 0:
            raise TermDeckError(
                f"Invalid max tab count: {max_tabs}",
                code=ExitCode.VALIDATION_ERROR,
                hint="Use 0 for no limit or a positive value.",
            )
        self.max_tabs = max_tabs
        self._runner = runner
        self._sessions: list[TerminalSession] = []
        self._selected_id: str | None = None
        self._lock = threading.RLock()
        self._inbox: queue.Queue[SessionEvent] = queue.Queue()
        self._events: deque[TerminalEvent] = deque(maxlen=MAX_RECORDED_EVENTS)
        runner.bind(self.post)

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def selected_id(self) -> str | None:
        with self._lock:
            return self._selected_id

    @property
    def selected(self) -> TerminalSession | None:
        with self._lock:
            return self._find(self._selected_id) if self._selected_id else None

    def sessions(self) -> list[TerminalSession]:
        with self._lock:
            return list(self._sessions)

    def ids(self) -> list[str]:
        with self._lock:
            return [session.session_id for session in self._sessions]

    def get(self, session_id: str) -> TerminalSession | None:
        with self._lock:
            return self._find(session_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def list_events(self) -> list[TerminalEvent]:
        with self._lock:
            return list(self._events)

    def clear_events(self) -> None:
        with self._lock:
            self._events.clear()

    def add_tab(self, directory: str, *, title: str | None = None) -> str:
        """Spawn a session in ``directory``, append it and select it.

        When the shell cannot be started the tab is kept as terminated so the
        user can restart it, and :class:`SessionSpawnError` propagates.
        """
        with self._lock:
            if self.max_tabs and len(self._sessions) >= self.max_tabs:
                raise TermDeckError(
                    f"Tab limit reached: {self.max_tabs}",
                    code=ExitCode.VALIDATION_ERROR,
                    hint="Close another tab before opening a new one.",
                )
            session = self._runner.create(
                directory,
                title=title or f"Terminal {len(self._sessions) + 1}",
            )
            self._sessions.append(session)
            self._selected_id = session.session_id
            self._record(session.session_id, "create", f"Created tab '{session.title}' in {directory}.")
            try:
                self._runner.launch(session)
            except TermDeckError as exc:
                self._record(session.session_id, "spawn-failed", exc.message)
                raise
            self._record(session.session_id, "start", "Shell is running.")
            return session.session_id

    def close_tab(self, session_id: str) -> bool:
        with self._lock:
            index = self._index_of(session_id)
            if index is None:
                logger.debug("Ignoring close for unknown tab %s", session_id)
                return False
            if len(self._sessions) <= 1:
                self._record(session_id, "close-refused", "Last tab cannot be closed.")
                return False

            session = self._sessions.pop(index)
            if self._selected_id == session_id:
                neighbour = index - 1 if index > 0 else len(self._sessions) - 1
                self._selected_id = self._sessions[neighbour].session_id
            self._runner.teardown(session)
            self._record(session_id, "close", f"Closed tab '{session.title}'.")
            return True

    def select_tab(self, session_id: str) -> bool:
        with self._lock:
            if self._find(session_id) is None:
                return False
            self._selected_id = session_id
            return True

    def select_relative(self, offset: int) -> str | None:
        with self._lock:
            if not self._sessions:
                return None
            index = self._index_of(self._selected_id) if self._selected_id else None
            start = 0 if index is None else index
            target = self._sessions[(start + offset) % len(self._sessions)]
            self._selected_id = target.session_id
            return self._selected_id

    def dispatch(self, action: SessionAction | str, session_id: str | None = None) -> bool:
        resolved = SessionAction(action)
        with self._lock:
            target_id = session_id if session_id is not None else self._selected_id
            session = self._find(target_id) if target_id else None
            if session is None:
                logger.debug("Ignoring %s for missing tab %s", resolved.value, target_id)
                return False

            if resolved == SessionAction.INTERRUPT:
                return session.send(INTERRUPT_BYTE)
            if resolved == SessionAction.CLEAR:
                return session.send(FORM_FEED_BYTE)

            self._record(session.session_id, "restart", "Restarting shell.")
            try:
                self._runner.restart(session)
            except TermDeckError as exc:
                self._record(session.session_id, "restart-failed", exc.message)
                raise
            self._record(session.session_id, "start", "Shell is running.")
            return True

    def send_input(self, session_id: str, data: bytes) -> bool:
        with self._lock:
            session = self._find(session_id)
            return session.send(data) if session is not None else False

    def resize(self, session_id: str, *, columns: int, rows: int) -> bool:
        with self._lock:
            session = self._find(session_id)
            if session is None:
                return False
            self._runner.resize(session, columns=columns, rows=rows)
            return True

    def post(self, event: SessionEvent) -> None:
        """Queue an event from any thread for the control path."""
        self._inbox.put(event)

    def process_events(self, *, timeout: float | None = None) -> int:
        """Apply queued events; returns how many changed a session.

        With a timeout the call waits that long for the first event.
        """
        applied = 0
        first = True
        while True:
            try:
                if first and timeout is not None:
                    event = self._inbox.get(timeout=timeout)
                else:
                    event = self._inbox.get_nowait()
            except queue.Empty:
                return applied
            first = False
            if self._apply(event):
                applied += 1

    def shutdown(self) -> None:
        with self._lock:
            for session in self._sessions:
                self._runner.teardown(session)
            self._record("*", "shutdown", f"Released {len(self._sessions)} session(s).")

    def _apply(self, event: SessionEvent) -> bool:
        with self._lock:
            session = self._find(event.session_id)
            if session is None or not session.apply_event(event):
                return False
            if event.kind == SessionEventKind.EXITED:
                self._record(session.session_id, "exit", f"Shell exited with code {event.exit_code}.")
            elif event.kind == SessionEventKind.TITLE:
                self._record(session.session_id, "title", f"Title set to '{session.title}'.")
            elif event.kind == SessionEventKind.INPUT:
                self._record(session.session_id, "cd", f"Changed directory to {session.launch_directory}.")
            return True

    def _find(self, session_id: str | None) -> TerminalSession | None:
        for session in self._sessions:
            if session.session_id == session_id:
                return session
        return None

    def _index_of(self, session_id: str | None) -> int | None:
        for index, session in enumerate(self._sessions):
            if session.session_id == session_id:
                return index
        return None

    def _record(self, terminal_id: str, step: str, message: str) -> None:
        self._events.append(TerminalEvent(terminal_id=terminal_id, step=step, message=message))
        logger.info("runtime-event terminal=%s step=%s message=%s", terminal_id, step, message)
