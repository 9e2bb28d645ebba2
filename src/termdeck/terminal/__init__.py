"""Multi-session terminal management."""

from .directory import DirectoryPropagation, resolve_launch_directory
from .emulator import TerminalScreen
from .manager import TerminalManager
from .models import (
    RunState,
    SessionAction,
    SessionEvent,
    SessionEventKind,
    SessionSpec,
    SessionView,
    TabSnapshot,
    TerminalSession,
)
from .pty_backend import PtyBackend, PtyHandle, build_environment, build_shell_command, default_shell
from .registry import TabRegistry, TerminalEvent
from .runner import SessionRunner, directory_command

__all__ = [
    "build_environment",
    "build_shell_command",
    "default_shell",
    "directory_command",
    "DirectoryPropagation",
    "PtyBackend",
    "PtyHandle",
    "resolve_launch_directory",
    "RunState",
    "SessionAction",
    "SessionEvent",
    "SessionEventKind",
    "SessionRunner",
    "SessionSpec",
    "SessionView",
    "TabRegistry",
    "TabSnapshot",
    "TerminalEvent",
    "TerminalManager",
    "TerminalScreen",
    "TerminalSession",
]
