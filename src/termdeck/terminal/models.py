"""Terminal session domain models."""

from __future__ import annotations

import logging as py_logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from typing_extensions import TypedDict

from termdeck.errors import TermDeckError

if TYPE_CHECKING:
    from termdeck.terminal.emulator import TerminalScreen
    from termdeck.terminal.pty_backend import PtyHandle

logger = py_logging.getLogger(__name__)


class RunState(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    TERMINATED = "terminated"


class SessionAction(str, Enum):
    INTERRUPT = "interrupt"
    CLEAR = "clear"
    RESTART = "restart"


class SessionEventKind(str, Enum):
    TITLE = "title"
    EXITED = "exited"
    INPUT = "input"


INTERRUPT_BYTE = b"\x03"
FORM_FEED_BYTE = b"\x0c"


@dataclass(frozen=True)
class SessionSpec:
    session_id: str
    launch_directory: str
    environment: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class SessionEvent:
    """Message posted from a pump/timer thread onto the control path."""

    session_id: str
    generation: int
    kind: SessionEventKind
    title: str = ""
    exit_code: int | None = None
    payload: bytes = b""


@dataclass
class TerminalSession:
    spec: SessionSpec
    title: str
    run_state: RunState = RunState.STARTING
    handle: PtyHandle | None = None
    screen: TerminalScreen | None = None
    generation: int = 0
    exit_code: int | None = None
    failure_reason: str = ""

    @property
    def session_id(self) -> str:
        return self.spec.session_id

    @property
    def launch_directory(self) -> str:
        return self.spec.launch_directory

    @property
    def is_running(self) -> bool:
        return self.run_state == RunState.RUNNING

    def mark_terminated(self, exit_code: int | None = None) -> bool:
        """Record process exit; returns False when it was already recorded."""
        if self.run_state == RunState.TERMINATED:
            return False
        self.run_state = RunState.TERMINATED
        self.exit_code = exit_code
        return True

    def send(self, data: bytes) -> bool:
        """Write raw input; a no-op unless the shell is running."""
        if self.run_state != RunState.RUNNING or self.handle is None:
            return False
        try:
            self.handle.write(data)
        except TermDeckError as exc:
            logger.debug("Dropped input for %s: %s", self.session_id, exc.message)
            return False
        return True

    def apply_title(self, title: str) -> bool:
        if not title.strip():
            return False
        self.title = title
        return True

    def apply_event(self, event: SessionEvent) -> bool:
        """Apply a posted event; stale generations are ignored."""
        if event.session_id != self.session_id or event.generation != self.generation:
            return False
        if event.kind == SessionEventKind.EXITED:
            return self.mark_terminated(event.exit_code)
        if event.kind == SessionEventKind.TITLE:
            return self.apply_title(event.title)
        if event.kind == SessionEventKind.INPUT:
            return self.send(event.payload)
        return False


@dataclass(frozen=True)
class SessionView:
    """Read-only view handed to renderers; holds no process resources."""

    session_id: str
    title: str
    run_state: RunState
    launch_directory: str
    selected: bool
    exit_code: int | None = None
    failure_reason: str = ""


class TabSnapshot(TypedDict):
    session_id: str
    title: str
    run_state: str
    selected: bool
    launch_directory: str
