"""Command surface of the terminal panel."""

from __future__ import annotations

import logging as py_logging
import threading
from pathlib import Path
from types import TracebackType

from termdeck.config import AppConfig
from termdeck.terminal.directory import DirectoryPropagation
from termdeck.terminal.models import SessionAction, SessionView, TabSnapshot, TerminalSession
from termdeck.terminal.pty_backend import PtyBackend
from termdeck.terminal.registry import TabRegistry, TerminalEvent
from termdeck.terminal.runner import SessionRunner

logger = py_logging.getLogger(__name__)

DEFAULT_PUMP_INTERVAL = 0.05


class TerminalManager:
    """Multiplexes shell tabs for the UI and the directory-change source.

    Renderers address sessions by id only. Nothing returned from here keeps
    a process handle alive.
    """

    def __init__(
        self,
        *,
        config: AppConfig | None = None,
        runner: SessionRunner | None = None,
        backend: PtyBackend | None = None,
        initial_directory: str | Path | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self._runner = runner or SessionRunner(backend=backend, config=self.config)
        self.registry = TabRegistry(self._runner, max_tabs=self.config.max_tabs)
        self._directory = DirectoryPropagation(initial_directory or self.config.default_directory or None)
        self._pump_stop = threading.Event()
        self._pump_thread: threading.Thread | None = None

    def __enter__(self) -> TerminalManager:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.shutdown()

    @property
    def current_working_directory(self) -> str:
        return self._directory.current

    @property
    def selected_id(self) -> str | None:
        return self.registry.selected_id

    def initialize(self) -> str | None:
        """Open the first tab at startup; no-op when tabs already exist."""
        with self.registry.lock:
            if len(self.registry):
                return None
            return self.new_tab()

    def directory_changed(self, path: str | Path) -> None:
        with self.registry.lock:
            self._directory.on_working_directory_changed(path)

    def new_tab(self, directory: str | Path | None = None, *, title: str | None = None) -> str:
        with self.registry.lock:
            launch_directory = str(directory) if directory is not None else self._directory.current
            return self.registry.add_tab(launch_directory, title=title)

    def close_tab(self, session_id: str) -> bool:
        return self.registry.close_tab(session_id)

    def select_tab(self, session_id: str) -> bool:
        return self.registry.select_tab(session_id)

    def select_next(self) -> str | None:
        return self.registry.select_relative(1)

    def select_previous(self) -> str | None:
        return self.registry.select_relative(-1)

    def interrupt(self, session_id: str | None = None) -> bool:
        return self.registry.dispatch(SessionAction.INTERRUPT, session_id)

    def clear(self, session_id: str | None = None) -> bool:
        return self.registry.dispatch(SessionAction.CLEAR, session_id)

    def restart(self, session_id: str | None = None) -> bool:
        return self.registry.dispatch(SessionAction.RESTART, session_id)

    def send_input(self, session_id: str, data: bytes | str) -> bool:
        payload = data.encode("utf-8") if isinstance(data, str) else data
        return self.registry.send_input(session_id, payload)

    def resize(self, session_id: str, *, columns: int, rows: int) -> bool:
        return self.registry.resize(session_id, columns=columns, rows=rows)

    def view(self, session_id: str) -> SessionView | None:
        with self.registry.lock:
            session = self.registry.get(session_id)
            if session is None:
                return None
            return _view_of(session, selected=session_id == self.registry.selected_id)

    def views(self) -> list[SessionView]:
        with self.registry.lock:
            selected_id = self.registry.selected_id
            return [
                _view_of(session, selected=session.session_id == selected_id)
                for session in self.registry.sessions()
            ]

    def snapshot(self) -> list[TabSnapshot]:
        return [
            TabSnapshot(
                session_id=view.session_id,
                title=view.title,
                run_state=view.run_state.value,
                selected=view.selected,
                launch_directory=view.launch_directory,
            )
            for view in self.views()
        ]

    def screen_lines(self, session_id: str) -> list[str]:
        with self.registry.lock:
            session = self.registry.get(session_id)
            screen = session.screen if session is not None else None
        return screen.display() if screen is not None else []

    def list_events(self) -> list[TerminalEvent]:
        return self.registry.list_events()

    def process_events(self, *, timeout: float | None = None) -> int:
        return self.registry.process_events(timeout=timeout)

    def start_event_pump(self, interval: float = DEFAULT_PUMP_INTERVAL) -> None:
        if self._pump_thread is not None and self._pump_thread.is_alive():
            return
        self._pump_stop.clear()
        self._pump_thread = threading.Thread(
            target=self._run_event_pump,
            args=(interval,),
            name="termdeck-events",
            daemon=True,
        )
        self._pump_thread.start()

    def stop_event_pump(self, timeout: float | None = 1.0) -> None:
        self._pump_stop.set()
        thread, self._pump_thread = self._pump_thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def shutdown(self) -> None:
        self.stop_event_pump()
        self.registry.shutdown()

    def _run_event_pump(self, interval: float) -> None:
        while not self._pump_stop.is_set():
            try:
                self.registry.process_events(timeout=interval)
            except Exception:
                logger.exception("Event pump failed to apply a session event")


def _view_of(session: TerminalSession, *, selected: bool) -> SessionView:
    return SessionView(
        session_id=session.session_id,
        title=session.title,
        run_state=session.run_state,
        launch_directory=session.launch_directory,
        selected=selected,
        exit_code=session.exit_code,
        failure_reason=session.failure_reason,
    )
