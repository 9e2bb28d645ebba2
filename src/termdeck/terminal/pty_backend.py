"""PTY lifecycle for terminal sessions.

Shells run under ``ptyprocess`` on POSIX hosts and ``pywinpty`` on Windows.
Each started process gets a daemon pump thread that reads its output until
EOF, reaps the child and reports the exit exactly once.
"""

from __future__ import annotations

import atexit
import logging as py_logging
import os
import subprocess
import sys
import threading
import weakref
from collections.abc import Callable, Mapping, Sequence
from contextlib import suppress

from termdeck.errors import ExitCode, SessionSpawnError, TermDeckError

logger = py_logging.getLogger(__name__)

PtySpawn = Callable[[list[str], str | None, dict[str, str] | None, tuple[int, int]], object]
OutputCallback = Callable[[bytes], None]
ExitCallback = Callable[[int | None], None]

DEFAULT_READ_SIZE = 4096
DEFAULT_DIMENSIONS = (24, 80)
_POSIX_LOGIN_ARGS = ("--login",)


def default_shell(environ: Mapping[str, str] | None = None, *, platform: str | None = None) -> str:
    env = os.environ if environ is None else environ
    shell = env.get("SHELL", "").strip()
    if shell:
        return shell
    current = platform or sys.platform
    if current == "win32":
        return "powershell.exe"
    if current == "darwin":
        return "/bin/zsh"
    return "/bin/bash"


def build_shell_command(
    shell: str = "",
    *,
    args: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
    platform: str | None = None,
) -> list[str]:
    executable = shell.strip() or default_shell(environ, platform=platform)
    if args is None:
        current = platform or sys.platform
        args = ("-NoLogo",) if current == "win32" else _POSIX_LOGIN_ARGS
    return [executable, *args]


def build_environment(
    base: Mapping[str, str] | None = None,
    *,
    term: str = "xterm-256color",
    colorterm: str = "truecolor",
    overrides: Mapping[str, str] | None = None,
) -> dict[str, str]:
    environment = dict(os.environ if base is None else base)
    environment["TERM"] = term
    environment["COLORTERM"] = colorterm
    if overrides:
        environment.update(overrides)
    return environment


def _spawn_with_ptyprocess(
    command: list[str],
    cwd: str | None,
    env: dict[str, str] | None,
    dimensions: tuple[int, int],
) -> object:
    try:
        from ptyprocess import PtyProcess
    except ImportError as exc:
        raise TermDeckError(
            "ptyprocess backend is unavailable.",
            code=ExitCode.RUNTIME_ERROR,
            hint="Install the ptyprocess package.",
        ) from exc
    return PtyProcess.spawn(command, cwd=cwd, env=env, dimensions=dimensions)


class _WinptyProcess:
    """Byte-oriented facade over pywinpty's text I/O."""

    def __init__(self, process: object) -> None:
        self._process = process

    def read(self, size: int = DEFAULT_READ_SIZE) -> bytes:
        chunk = self._process.read(size)
        if isinstance(chunk, str):
            return chunk.encode("utf-8", errors="replace")
        return chunk

    def write(self, payload: bytes) -> object:
        return self._process.write(payload.decode("utf-8", errors="replace"))

    def __getattr__(self, name: str) -> object:
        return getattr(self._process, name)


def _spawn_with_pywinpty(
    command: list[str],
    cwd: str | None,
    env: dict[str, str] | None,
    dimensions: tuple[int, int],
) -> object:
    try:
        from winpty import PtyProcess
    except Exception as exc:
        raise TermDeckError(
            "pywinpty backend is unavailable.",
            code=ExitCode.RUNTIME_ERROR,
            hint="Install pywinpty on Windows hosts.",
        ) from exc

    kwargs: dict[str, object] = {"dimensions": dimensions}
    if cwd:
        kwargs["cwd"] = cwd
    if env:
        kwargs["env"] = env
    return _WinptyProcess(PtyProcess.spawn(subprocess.list2cmdline(command), **kwargs))


def default_spawn(platform: str | None = None) -> PtySpawn:
    if (platform or sys.platform) == "win32":
        return _spawn_with_pywinpty
    return _spawn_with_ptyprocess


class PtyHandle:
    """Live process attached to a pseudo-terminal.

    The owning session holds the only strong reference outside the pump
    thread; the backend tracks handles weakly.
    """

    def __init__(self, terminal_id: str, command: Sequence[str], process: object) -> None:
        self.terminal_id = terminal_id
        self.command = tuple(command)
        self._process = process
        self._closed = False
        self._lock = threading.Lock()
        self._pump_thread: threading.Thread | None = None

    @property
    def pid(self) -> int | None:
        value = getattr(self._process, "pid", None)
        return value if isinstance(value, int) else None

    @property
    def closed(self) -> bool:
        return self._closed

    def is_alive(self) -> bool:
        return not self._closed and _is_alive(self._process)

    def write(self, payload: bytes) -> None:
        with self._lock:
            if self._closed:
                raise TermDeckError(
                    f"Terminal closed: {self.terminal_id}",
                    code=ExitCode.VALIDATION_ERROR,
                    hint="Restart the session before sending input.",
                )
            try:
                self._process.write(payload)
            except Exception as exc:
                raise TermDeckError(
                    f"Failed to write to terminal {self.terminal_id}.",
                    code=ExitCode.RUNTIME_ERROR,
                    hint=str(exc) or "Verify terminal process health.",
                ) from exc

    def resize(self, *, cols: int, rows: int) -> None:
        if cols <= 0 or rows <= 0:
            raise TermDeckError(
                f"Invalid PTY size: {cols}x{rows}",
                code=ExitCode.VALIDATION_ERROR,
                hint="Use positive terminal row/column values.",
            )
        if self._closed:
            return
        try:
            self._process.setwinsize(rows, cols)
        except Exception as exc:
            raise TermDeckError(
                f"Failed to resize terminal {self.terminal_id}.",
                code=ExitCode.RUNTIME_ERROR,
                hint=str(exc) or "Verify PTY backend supports resizing.",
            ) from exc

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        _close_process(self._process)

    def start_pump(
        self,
        *,
        on_output: OutputCallback | None = None,
        on_exit: ExitCallback | None = None,
        read_size: int = DEFAULT_READ_SIZE,
    ) -> threading.Thread:
        thread = threading.Thread(
            target=self._pump,
            args=(on_output, on_exit, read_size),
            name=f"pty-pump-{self.terminal_id}",
            daemon=True,
        )
        self._pump_thread = thread
        thread.start()
        return thread

    def join(self, timeout: float | None = None) -> None:
        if self._pump_thread is not None:
            self._pump_thread.join(timeout)

    def _pump(
        self,
        on_output: OutputCallback | None,
        on_exit: ExitCallback | None,
        read_size: int,
    ) -> None:
        while True:
            try:
                chunk = self._process.read(read_size)
            except (EOFError, OSError):
                break
            if not chunk:
                break
            if on_output is None:
                continue
            data = chunk if isinstance(chunk, bytes) else str(chunk).encode("utf-8", errors="replace")
            try:
                on_output(data)
            except Exception:
                logger.exception("Output consumer failed for terminal %s", self.terminal_id)

        exit_code = _exit_code(self._process)
        logger.debug("PTY pump finished terminal=%s exit_code=%s", self.terminal_id, exit_code)
        if on_exit is not None:
            on_exit(exit_code)


class PtyBackend:
    def __init__(
        self,
        spawn: PtySpawn | None = None,
        *,
        read_size: int = DEFAULT_READ_SIZE,
    ) -> None:
        self._spawn = spawn or default_spawn()
        self._read_size = read_size
        self._handles: weakref.WeakValueDictionary[str, PtyHandle] = weakref.WeakValueDictionary()
        self._lock = threading.Lock()
        atexit.register(self.stop_all)

    def start(
        self,
        terminal_id: str,
        *,
        command: list[str],
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        dimensions: tuple[int, int] = DEFAULT_DIMENSIONS,
        on_output: OutputCallback | None = None,
        on_exit: ExitCallback | None = None,
    ) -> PtyHandle:
        if not command:
            raise TermDeckError(
                "PTY command cannot be empty.",
                code=ExitCode.VALIDATION_ERROR,
                hint="Configure a shell executable.",
            )
        with self._lock:
            existing = self._handles.get(terminal_id)
            if existing is not None and not existing.closed:
                raise TermDeckError(
                    f"Terminal already started: {terminal_id}",
                    code=ExitCode.VALIDATION_ERROR,
                    hint="Stop the current PTY session before starting a new one.",
                )

            try:
                process = self._spawn(list(command), cwd, env, dimensions)
            except TermDeckError:
                raise
            except Exception as exc:
                raise SessionSpawnError(
                    f"Failed to start shell '{command[0]}'.",
                    hint=str(exc) or "Check the configured shell executable.",
                    session_id=terminal_id,
                ) from exc

            handle = PtyHandle(terminal_id, command, process)
            self._handles[terminal_id] = handle

        handle.start_pump(on_output=on_output, on_exit=on_exit, read_size=self._read_size)
        logger.debug("PTY started terminal=%s pid=%s command=%s", terminal_id, handle.pid, command)
        return handle

    def stop(self, handle: PtyHandle) -> None:
        with self._lock:
            if self._handles.get(handle.terminal_id) is handle:
                del self._handles[handle.terminal_id]
        handle.close()

    def stop_all(self) -> None:
        with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()
        for handle in handles:
            handle.close()

    def list_handles(self) -> list[PtyHandle]:
        with self._lock:
            return [self._handles[key] for key in sorted(self._handles) if key in self._handles]


def _close_process(process: object) -> None:
    alive = _is_alive(process)
    if hasattr(process, "close"):
        try:
            process.close()
        except TypeError:
            with suppress(Exception):
                process.close(True)
        except Exception:
            logger.debug("PTY close raised; falling back to terminate", exc_info=True)
    if alive and _is_alive(process):
        if hasattr(process, "terminate"):
            with suppress(Exception):
                process.terminate()
        elif hasattr(process, "kill"):
            with suppress(Exception):
                process.kill()


def _is_alive(process: object) -> bool:
    if hasattr(process, "isalive"):
        try:
            return bool(process.isalive())
        except Exception:
            return True
    return True


def _exit_code(process: object) -> int | None:
    status = getattr(process, "exitstatus", None)
    if status is None and hasattr(process, "wait"):
        with suppress(Exception):
            status = process.wait()
    if status is None:
        signal_status = getattr(process, "signalstatus", None)
        if isinstance(signal_status, int):
            return -signal_status
    return status if isinstance(status, int) else None
