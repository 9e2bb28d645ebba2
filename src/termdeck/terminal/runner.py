"""Spawn, restart and teardown of shell sessions."""

from __future__ import annotations

import itertools
import logging as py_logging
import os
import shlex
import sys
import threading
import weakref
from collections.abc import Callable, Mapping

from termdeck.config import DEFAULT_SHELL_ARGS, AppConfig
from termdeck.errors import SessionSpawnError, TermDeckError
from termdeck.logging import session_logger
from termdeck.terminal.emulator import TerminalScreen
from termdeck.terminal.models import (
    RunState,
    SessionEvent,
    SessionEventKind,
    SessionSpec,
    TerminalSession,
)
from termdeck.terminal.pty_backend import PtyBackend, build_environment, build_shell_command

logger = py_logging.getLogger(__name__)

EventSink = Callable[[SessionEvent], None]
TimerFactory = Callable[..., threading.Timer]
DirectoryCheck = Callable[[str], bool]


def directory_command(directory: str) -> bytes:
    return f"cd {shlex.quote(directory)} && clear\n".encode()


class SessionRunner:
    """Creates PTY-backed sessions from the app configuration.

    Asynchronous notifications (exit, title reports, the delayed ``cd``) are
    handed to ``post`` as :class:`SessionEvent` messages. Without a sink the
    runner applies them to the sessions it created itself.
    """

    def __init__(
        self,
        *,
        backend: PtyBackend | None = None,
        config: AppConfig | None = None,
        post: EventSink | None = None,
        environ: Mapping[str, str] | None = None,
        platform: str | None = None,
        timer_factory: TimerFactory = threading.Timer,
        is_directory: DirectoryCheck = os.path.isdir,
    ) -> None:
        self._backend = backend or PtyBackend()
        self._config = config or AppConfig()
        self._post = post or self._apply_locally
        self._environ = environ
        self._platform = platform
        self._timer_factory = timer_factory
        self._is_directory = is_directory
        self._ids = itertools.count(1)
        self._own_sessions: weakref.WeakValueDictionary[str, TerminalSession] = weakref.WeakValueDictionary()

    @property
    def config(self) -> AppConfig:
        return self._config

    def bind(self, post: EventSink) -> None:
        self._post = post

    def create(
        self,
        initial_directory: str,
        environment_overrides: Mapping[str, str] | None = None,
        *,
        title: str = "Terminal",
    ) -> TerminalSession:
        spec = SessionSpec(
            session_id=f"t{next(self._ids)}",
            launch_directory=str(initial_directory),
            environment=tuple(sorted((environment_overrides or {}).items())),
        )
        session = TerminalSession(spec=spec, title=title)
        self._own_sessions[spec.session_id] = session
        return session

    def spawn(
        self,
        initial_directory: str,
        environment_overrides: Mapping[str, str] | None = None,
        *,
        title: str = "Terminal",
    ) -> TerminalSession:
        session = self.create(initial_directory, environment_overrides, title=title)
        self.launch(session)
        return session

    def launch(self, session: TerminalSession) -> TerminalSession:
        log = session_logger(logger, session.session_id)
        session.generation += 1
        generation = session.generation
        session.run_state = RunState.STARTING
        session.exit_code = None
        session.failure_reason = ""
        if session.screen is None:
            session.screen = TerminalScreen(columns=self._config.columns, rows=self._config.rows)

        directory = session.launch_directory
        native = self._config.directory_mode in ("native", "both") and self._is_directory(directory)
        inject = self._config.directory_mode in ("inject", "both") or not native
        command = build_shell_command(
            self._config.shell,
            args=self._shell_args(),
            environ=self._environ,
            platform=self._platform,
        )
        overrides = dict(self._config.environment)
        overrides.update(dict(session.spec.environment))
        environment = build_environment(
            self._environ,
            term=self._config.term,
            colorterm=self._config.colorterm,
            overrides=overrides,
        )

        try:
            handle = self._backend.start(
                session.session_id,
                command=command,
                cwd=directory if native else None,
                env=environment,
                dimensions=(self._config.rows, self._config.columns),
                on_output=self._output_consumer(session, generation),
                on_exit=self._exit_reporter(session.session_id, generation),
            )
        except TermDeckError as exc:
            session.handle = None
            session.run_state = RunState.TERMINATED
            session.failure_reason = exc.hint or exc.message
            log.warning("spawn failed: %s", exc)
            if isinstance(exc, SessionSpawnError):
                exc.session_id = session.session_id
                raise
            raise SessionSpawnError(exc.message, hint=exc.hint, session_id=session.session_id) from exc

        session.handle = handle
        session.run_state = RunState.RUNNING
        log.info("shell started pid=%s cwd=%s native_cwd=%s", handle.pid, directory, native)
        if inject:
            self._schedule_directory_injection(session, generation)
        return session

    def restart(self, session: TerminalSession) -> TerminalSession:
        self.teardown(session)
        return self.launch(session)

    def teardown(self, session: TerminalSession) -> None:
        handle, session.handle = session.handle, None
        if handle is not None:
            self._backend.stop(handle)
            session_logger(logger, session.session_id).debug("process handle released")

    def resize(self, session: TerminalSession, *, columns: int, rows: int) -> None:
        if session.handle is not None:
            session.handle.resize(cols=columns, rows=rows)
        if session.screen is not None:
            session.screen.resize(columns=columns, rows=rows)

    def _shell_args(self) -> list[str] | None:
        # powershell has no --login; None selects its own default flags.
        if (self._platform or sys.platform) == "win32" and self._config.shell_args == DEFAULT_SHELL_ARGS:
            return None
        return self._config.shell_args

    def _schedule_directory_injection(self, session: TerminalSession, generation: int) -> None:
        event = SessionEvent(
            session_id=session.session_id,
            generation=generation,
            kind=SessionEventKind.INPUT,
            payload=directory_command(session.launch_directory),
        )
        delay = self._config.settle_delay
        if delay <= 0:
            self._post(event)
            return
        timer = self._timer_factory(delay, self._post, args=(event,))
        timer.daemon = True
        timer.start()

    def _output_consumer(self, session: TerminalSession, generation: int) -> Callable[[bytes], None]:
        def consume(data: bytes) -> None:
            # Output still draining from a replaced process is dropped.
            if session.generation != generation or session.screen is None:
                return
            for title in session.screen.feed(data):
                # Tagged with the generation the output was read under.
                self._post(
                    SessionEvent(
                        session_id=session.session_id,
                        generation=generation,
                        kind=SessionEventKind.TITLE,
                        title=title,
                    )
                )

        return consume

    def _exit_reporter(self, session_id: str, generation: int) -> Callable[[int | None], None]:
        def report(exit_code: int | None) -> None:
            self._post(
                SessionEvent(
                    session_id=session_id,
                    generation=generation,
                    kind=SessionEventKind.EXITED,
                    exit_code=exit_code,
                )
            )

        return report

    def _apply_locally(self, event: SessionEvent) -> None:
        session = self._own_sessions.get(event.session_id)
        if session is not None:
            session.apply_event(event)
