from __future__ import annotations

import queue
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from termdeck.config import AppConfig
from termdeck.terminal import PtyBackend, SessionRunner, TerminalManager

_TEST_ENVIRON = {"SHELL": "/bin/zsh", "PATH": "/usr/bin:/bin", "LANG": "C.UTF-8"}


@pytest.hookimpl(trylast=True)
def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    del config
    for item in items:
        path = Path(str(getattr(item, "path", item.fspath)))
        if "integration" in path.parts:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)


class FakePty:
    """Stand-in for a ptyprocess child; output and exit are driven by the test."""

    def __init__(
        self,
        command: list[str],
        cwd: str | None,
        env: dict[str, str] | None,
        dimensions: tuple[int, int],
    ) -> None:
        self.command = command
        self.cwd = cwd
        self.env = env or {}
        self.dimensions = dimensions
        self.pid = 4000
        self.writes: list[bytes] = []
        self.size: tuple[int, int] | None = None
        self.closed = False
        self.exitstatus: int | None = None
        self._chunks: queue.Queue[bytes | None] = queue.Queue()

    def read(self, _size: int = 4096) -> bytes:
        chunk = self._chunks.get()
        if chunk is None:
            raise EOFError("pty closed")
        return chunk

    def write(self, payload: bytes) -> int:
        if self.closed or self.exitstatus is not None:
            raise OSError("write to a dead pty")
        self.writes.append(payload)
        return len(payload)

    def emit(self, payload: bytes) -> None:
        self._chunks.put(payload)

    def exit(self, code: int = 0) -> None:
        self.exitstatus = code
        self._chunks.put(None)

    def setwinsize(self, rows: int, cols: int) -> None:
        self.size = (rows, cols)

    def isalive(self) -> bool:
        return not self.closed and self.exitstatus is None

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._chunks.put(None)

    def terminate(self) -> None:
        self.closed = True


class FakeSpawner:
    def __init__(self) -> None:
        self.processes: list[FakePty] = []
        self.failure: Exception | None = None

    def __call__(
        self,
        command: list[str],
        cwd: str | None,
        env: dict[str, str] | None,
        dimensions: tuple[int, int],
    ) -> FakePty:
        if self.failure is not None:
            raise self.failure
        process = FakePty(command, cwd, env, dimensions)
        self.processes.append(process)
        return process

    @property
    def last(self) -> FakePty:
        return self.processes[-1]


@pytest.fixture
def spawner() -> FakeSpawner:
    return FakeSpawner()


@pytest.fixture
def test_config() -> AppConfig:
    return AppConfig(settle_delay=0.0)


@pytest.fixture
def make_runner(spawner: FakeSpawner, test_config: AppConfig) -> Callable[..., SessionRunner]:
    def factory(**kwargs: object) -> SessionRunner:
        kwargs.setdefault("backend", PtyBackend(spawn=spawner))
        kwargs.setdefault("config", test_config)
        kwargs.setdefault("environ", dict(_TEST_ENVIRON))
        kwargs.setdefault("platform", "linux")
        kwargs.setdefault("is_directory", lambda _path: True)
        return SessionRunner(**kwargs)

    return factory


@pytest.fixture
def manager(make_runner: Callable[..., SessionRunner], test_config: AppConfig) -> Iterator[TerminalManager]:
    terminal_manager = TerminalManager(
        config=test_config,
        runner=make_runner(),
        initial_directory="/home/u",
    )
    yield terminal_manager
    terminal_manager.shutdown()
