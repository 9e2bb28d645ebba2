from __future__ import annotations

from termdeck.terminal import TerminalScreen


def test_screen_renders_fed_output() -> None:
    screen = TerminalScreen(columns=20, rows=3)

    screen.feed(b"hello\r\nworld")

    assert screen.display()[0].rstrip() == "hello"
    assert screen.display()[1].rstrip() == "world"
    assert screen.text() == "hello\nworld"


def test_feed_returns_title_reports_of_that_chunk() -> None:
    screen = TerminalScreen()

    assert screen.feed(b"\x1b]0;~/projects\x07\x1b]2;make test\x07") == ["~/projects", "make test"]
    assert screen.feed(b"plain output") == []
    assert screen.title == "make test"


def test_resize_changes_screen_geometry() -> None:
    screen = TerminalScreen(columns=80, rows=24)

    screen.resize(columns=100, rows=30)

    assert screen.size == (100, 30)
    assert len(screen.display()) == 30
