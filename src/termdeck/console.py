"""Line-oriented command surface for the terminal manager."""

from __future__ import annotations

import logging as py_logging
import shlex
import sys
from collections.abc import Callable
from typing import TextIO

from termdeck.errors import TermDeckError, user_facing_error
from termdeck.terminal.directory import resolve_launch_directory
from termdeck.terminal.manager import TerminalManager
from termdeck.terminal.models import RunState, SessionView

logger = py_logging.getLogger(__name__)

HELP_TEXT = """\
Commands:
  new [DIR]       open a tab (in DIR or the current directory)
  close [ID]      close a tab (default: selected)
  select ID       show another tab
  next | prev     cycle through tabs
  interrupt       send Ctrl+C to the selected tab
  clear           send Ctrl+L to the selected tab
  restart         restart the selected tab's shell
  cd DIR          change the directory used for new tabs
  send TEXT       type TEXT followed by Enter into the selected tab
  list            list tabs
  show [ID]       print the screen of a tab (default: selected)
  help            show this help
  quit            close every tab and exit"""

_STATE_MARKS = {
    RunState.STARTING: "starting",
    RunState.RUNNING: "running",
    RunState.TERMINATED: "terminated",
}


class TerminalConsole:
    def __init__(
        self,
        manager: TerminalManager,
        *,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        prompt: str = "termdeck> ",
    ) -> None:
        self.manager = manager
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.prompt = prompt
        self._commands: dict[str, Callable[[list[str], str], None]] = {
            "new": self._new,
            "close": self._close,
            "select": self._select,
            "next": lambda _args, _raw: self._report_selection(self.manager.select_next()),
            "prev": lambda _args, _raw: self._report_selection(self.manager.select_previous()),
            "interrupt": lambda _args, _raw: self.manager.interrupt(),
            "clear": lambda _args, _raw: self.manager.clear(),
            "restart": self._restart,
            "cd": self._cd,
            "send": self._send,
            "list": lambda _args, _raw: self._list(),
            "show": self._show,
            "help": lambda _args, _raw: self._write(HELP_TEXT),
        }

    def run(self) -> int:
        while True:
            self.stdout.write(self.prompt)
            self.stdout.flush()
            line = self.stdin.readline()
            if not line:
                self._write("")
                return 0
            if not self.execute(line):
                return 0

    def execute(self, line: str) -> bool:
        """Run one command line; returns False when the console should stop."""
        self.manager.process_events()
        stripped = line.strip()
        if not stripped:
            return True
        name, _, raw = stripped.partition(" ")
        name = name.lower()
        if name in {"quit", "exit"}:
            return False

        handler = self._commands.get(name)
        if handler is None:
            self._write(f"Unknown command: {name} (try 'help')")
            return True
        try:
            args = shlex.split(raw)
        except ValueError as exc:
            self._write(user_facing_error(f"Could not parse arguments: {exc}"))
            return True

        try:
            handler(args, raw)
        except TermDeckError as exc:
            logger.warning("Command %s failed: %s", name, exc)
            self._write(user_facing_error(exc.message, hint=exc.hint))
        return True

    def _new(self, args: list[str], _raw: str) -> None:
        session_id = self.manager.new_tab(resolve_launch_directory(args[0]) if args else None)
        self._write(f"Opened {session_id}")

    def _close(self, args: list[str], _raw: str) -> None:
        target = args[0] if args else self.manager.selected_id
        if target is None or not self.manager.close_tab(target):
            self._write("Tab not closed (unknown tab or last remaining tab).")
            return
        self._write(f"Closed {target}")

    def _select(self, args: list[str], _raw: str) -> None:
        if not args:
            self._write("Usage: select ID")
            return
        if not self.manager.select_tab(args[0]):
            self._write(f"No such tab: {args[0]}")
            return
        self._report_selection(args[0])

    def _restart(self, _args: list[str], _raw: str) -> None:
        if self.manager.restart():
            self._write(f"Restarted {self.manager.selected_id}")

    def _cd(self, args: list[str], _raw: str) -> None:
        if not args:
            self._write(self.manager.current_working_directory)
            return
        self.manager.directory_changed(resolve_launch_directory(args[0]))
        self._write(f"New tabs will start in {self.manager.current_working_directory}")

    def _send(self, _args: list[str], raw: str) -> None:
        target = self.manager.selected_id
        if target is not None:
            self.manager.send_input(target, raw + "\n")

    def _show(self, args: list[str], _raw: str) -> None:
        target = args[0] if args else self.manager.selected_id
        if target is None or self.manager.view(target) is None:
            self._write("No such tab.")
            return
        lines = self.manager.screen_lines(target)
        while lines and not lines[-1].strip():
            lines.pop()
        for line in lines:
            self._write(line.rstrip())

    def _list(self) -> None:
        for view in self.manager.views():
            self._write(format_view(view))

    def _report_selection(self, session_id: str | None) -> None:
        if session_id is not None:
            self._write(f"Selected {session_id}")

    def _write(self, text: str) -> None:
        self.stdout.write(text + "\n")
        self.stdout.flush()


def format_view(view: SessionView) -> str:
    marker = "*" if view.selected else " "
    state = _STATE_MARKS[view.run_state]
    line = f"{marker} {view.session_id} [{state}] {view.title} ({view.launch_directory})"
    if view.run_state == RunState.TERMINATED and view.failure_reason:
        line += f" - {view.failure_reason}"
    elif view.run_state == RunState.TERMINATED and view.exit_code is not None:
        line += f" - exit {view.exit_code}"
    return line
