from __future__ import annotations

import gc

import pytest

from termdeck.errors import ExitCode, SessionSpawnError, TermDeckError
from termdeck.terminal import PtyBackend, build_environment, build_shell_command, default_shell


def test_default_shell_prefers_shell_variable() -> None:
    assert default_shell({"SHELL": "/usr/local/bin/fish"}) == "/usr/local/bin/fish"
    assert default_shell({}, platform="darwin") == "/bin/zsh"
    assert default_shell({}, platform="linux") == "/bin/bash"
    assert default_shell({"SHELL": "  "}, platform="win32") == "powershell.exe"


def test_build_shell_command_defaults_to_login_shell() -> None:
    assert build_shell_command(environ={"SHELL": "/bin/zsh"}, platform="linux") == ["/bin/zsh", "--login"]
    assert build_shell_command("/bin/bash", args=["-i"]) == ["/bin/bash", "-i"]
    assert build_shell_command(environ={}, platform="win32") == ["powershell.exe", "-NoLogo"]


def test_build_environment_keeps_inherited_variables() -> None:
    env = build_environment({"HOME": "/home/u", "TERM": "dumb"}, overrides={"LESS": "-R"})

    assert env == {
        "HOME": "/home/u",
        "TERM": "xterm-256color",
        "COLORTERM": "truecolor",
        "LESS": "-R",
    }


def test_backend_start_passes_spawn_arguments(spawner) -> None:
    backend = PtyBackend(spawn=spawner)

    handle = backend.start(
        "t1",
        command=["/bin/zsh", "--login"],
        cwd="/repo",
        env={"TERM": "xterm-256color"},
        dimensions=(30, 100),
    )

    process = spawner.last
    assert process.command == ["/bin/zsh", "--login"]
    assert process.cwd == "/repo"
    assert process.dimensions == (30, 100)
    assert handle.pid == 4000
    assert handle.command == ("/bin/zsh", "--login")
    assert [item.terminal_id for item in backend.list_handles()] == ["t1"]
    backend.stop(handle)


def test_pump_delivers_output_then_exit_once(spawner) -> None:
    backend = PtyBackend(spawn=spawner)
    output: list[bytes] = []
    exits: list[int | None] = []
    handle = backend.start("t1", command=["sh"], on_output=output.append, on_exit=exits.append)

    spawner.last.emit(b"hello ")
    spawner.last.emit(b"world")
    spawner.last.exit(7)
    handle.join(timeout=2.0)

    assert b"".join(output) == b"hello world"
    assert exits == [7]


def test_pump_survives_failing_output_consumer(spawner) -> None:
    backend = PtyBackend(spawn=spawner)
    exits: list[int | None] = []

    def broken(_data: bytes) -> None:
        raise RuntimeError("renderer crashed")

    handle = backend.start("t1", command=["sh"], on_output=broken, on_exit=exits.append)
    spawner.last.emit(b"x")
    spawner.last.exit(0)
    handle.join(timeout=2.0)

    assert exits == [0]


def test_write_and_resize_reach_process(spawner) -> None:
    backend = PtyBackend(spawn=spawner)
    handle = backend.start("t1", command=["sh"])

    handle.write(b"echo test\n")
    handle.resize(cols=120, rows=40)

    assert spawner.last.writes == [b"echo test\n"]
    assert spawner.last.size == (40, 120)
    with pytest.raises(TermDeckError) as exc:
        handle.resize(cols=0, rows=20)
    assert exc.value.code == ExitCode.VALIDATION_ERROR
    backend.stop(handle)


def test_write_after_close_raises_runtime_error(spawner) -> None:
    backend = PtyBackend(spawn=spawner)
    handle = backend.start("t1", command=["sh"])
    backend.stop(handle)

    with pytest.raises(TermDeckError):
        handle.write(b"ls\n")
    assert spawner.last.closed is True


def test_backend_rejects_duplicate_live_terminal(spawner) -> None:
    backend = PtyBackend(spawn=spawner)
    handle = backend.start("t1", command=["sh"])

    with pytest.raises(TermDeckError):
        backend.start("t1", command=["sh"])

    backend.stop(handle)
    replacement = backend.start("t1", command=["sh"])
    backend.stop(replacement)


def test_backend_rejects_empty_command(spawner) -> None:
    backend = PtyBackend(spawn=spawner)

    with pytest.raises(TermDeckError) as exc:
        backend.start("t1", command=[])

    assert exc.value.code == ExitCode.VALIDATION_ERROR


def test_spawn_errors_become_session_spawn_errors(spawner) -> None:
    backend = PtyBackend(spawn=spawner)
    spawner.failure = FileNotFoundError("The command was not found or was not executable: nosuchsh.")

    with pytest.raises(SessionSpawnError) as exc:
        backend.start("t9", command=["nosuchsh"])

    assert exc.value.session_id == "t9"
    assert "nosuchsh" in exc.value.hint


def test_stop_all_closes_live_handles(spawner) -> None:
    backend = PtyBackend(spawn=spawner)
    first = backend.start("t1", command=["sh"])
    second = backend.start("t2", command=["sh"])

    backend.stop_all()

    assert first.closed and second.closed
    assert all(process.closed for process in spawner.processes)
    assert backend.list_handles() == []


def test_backend_does_not_keep_closed_handles_alive(spawner) -> None:
    backend = PtyBackend(spawn=spawner)
    handle = backend.start("t1", command=["sh"])
    handle.close()
    handle.join(timeout=2.0)

    del handle
    gc.collect()

    assert backend.list_handles() == []
