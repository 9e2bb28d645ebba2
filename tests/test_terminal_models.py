from __future__ import annotations

import dataclasses

import pytest

from termdeck.terminal import RunState, SessionEvent, SessionEventKind, SessionSpec, TerminalSession


class _RecordingHandle:
    def __init__(self) -> None:
        self.writes: list[bytes] = []

    def write(self, payload: bytes) -> None:
        self.writes.append(payload)


def _session(state: RunState = RunState.RUNNING) -> TerminalSession:
    session = TerminalSession(spec=SessionSpec(session_id="t1", launch_directory="/home/u"), title="Terminal 1")
    session.run_state = state
    session.handle = _RecordingHandle()
    session.generation = 1
    return session


def test_launch_directory_is_immutable() -> None:
    session = _session()

    with pytest.raises(dataclasses.FrozenInstanceError):
        session.spec.launch_directory = "/elsewhere"  # type: ignore[misc]


def test_send_only_writes_while_running() -> None:
    running = _session()
    terminated = _session(RunState.TERMINATED)

    assert running.send(b"ls\n") is True
    assert terminated.send(b"ls\n") is False
    assert running.handle.writes == [b"ls\n"]
    assert terminated.handle.writes == []


def test_mark_terminated_is_idempotent() -> None:
    session = _session()

    assert session.mark_terminated(1) is True
    assert session.mark_terminated(2) is False
    assert session.exit_code == 1


def test_apply_title_ignores_blank_reports() -> None:
    session = _session()

    assert session.apply_title("") is False
    assert session.apply_title("  ") is False
    assert session.apply_title("htop") is True
    assert session.title == "htop"


def test_apply_event_ignores_stale_generations() -> None:
    session = _session()
    session.generation = 2

    stale = SessionEvent(session_id="t1", generation=1, kind=SessionEventKind.EXITED, exit_code=0)
    current = SessionEvent(session_id="t1", generation=2, kind=SessionEventKind.INPUT, payload=b"cd /x\n")

    assert session.apply_event(stale) is False
    assert session.run_state == RunState.RUNNING
    assert session.apply_event(current) is True
    assert session.handle.writes == [b"cd /x\n"]


def test_session_carries_only_lifecycle_state() -> None:
    assert [item.name for item in dataclasses.fields(TerminalSession)] == [
        "spec",
        "title",
        "run_state",
        "handle",
        "screen",
        "generation",
        "exit_code",
        "failure_reason",
    ]
