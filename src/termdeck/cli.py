"""Public CLI contract and entrypoint."""

from __future__ import annotations

import argparse
import logging as py_logging
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

from .config import AppConfig, load_config
from .errors import ExitCode, SessionSpawnError, TermDeckError, user_facing_error
from .logging import configure_logging, default_log_path
from .terminal.directory import resolve_launch_directory
from .terminal.manager import TerminalManager

_VALID_DIRECTORY_MODES = ("native", "inject", "both")
_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")

ConsoleRunner = Callable[[TerminalManager], int]


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def _max_tabs_type(value: str) -> int:
    try:
        count = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("--max-tabs must be an integer") from exc
    if count < 0:
        raise argparse.ArgumentTypeError("--max-tabs must be 0 (no limit) or positive")
    return count


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="termdeck",
        description="Run several shell sessions side by side in tabs.",
    )
    parser.add_argument("path", nargs="?", default=None, help="Start directory (a file means its folder)")
    parser.add_argument("--shell", default=None, help="Shell executable (default: $SHELL)")
    parser.add_argument("--config", type=Path, default=None, help="Config file path")
    parser.add_argument("--directory-mode", choices=_VALID_DIRECTORY_MODES, default=None)
    parser.add_argument("--max-tabs", type=_max_tabs_type, default=None)
    parser.add_argument("--log-level", type=_log_level_type, default=None)
    parser.add_argument("--log-file", type=Path, default=None)
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(argv)


def build_config(namespace: argparse.Namespace) -> AppConfig:
    config = load_config(namespace.config)
    try:
        if namespace.shell is not None:
            config.shell = namespace.shell
        if namespace.directory_mode is not None:
            config.directory_mode = namespace.directory_mode
        if namespace.max_tabs is not None:
            config.max_tabs = namespace.max_tabs
        if namespace.log_level is not None:
            config.log_level = namespace.log_level
    except ValueError as exc:
        raise TermDeckError(
            "Invalid configuration override.",
            code=ExitCode.CONFIG_ERROR,
            hint=str(exc),
        ) from exc
    return config


def run_console(manager: TerminalManager) -> int:
    from termdeck.console import TerminalConsole

    manager.start_event_pump()
    return TerminalConsole(manager).run()


def main(
    argv: Sequence[str] | None = None,
    *,
    console_runner: ConsoleRunner | None = None,
    manager_factory: Callable[..., TerminalManager] = TerminalManager,
) -> int:
    log_path = default_log_path()
    logger = configure_logging(log_file=log_path)
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    if namespace.log_file is not None:
        log_path = namespace.log_file.expanduser()

    try:
        config = build_config(namespace)
        logger = configure_logging(level=config.log_level, log_file=log_path)
        directory = resolve_launch_directory(namespace.path or config.default_directory or None)
        logger.debug("Starting terminal manager in %s", directory)
        with manager_factory(config=config, initial_directory=directory) as manager:
            try:
                manager.initialize()
            except SessionSpawnError as exc:
                # The tab stays open as terminated; `restart` retries the spawn.
                logger.warning("Initial shell failed to start: %s", exc)
                print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
            runner = console_runner or run_console
            result = runner(manager)
        return int(result) if isinstance(result, int) else int(ExitCode.SUCCESS)
    except TermDeckError as exc:
        logger.error(
            "Handled TermDeckError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=logger.isEnabledFor(py_logging.DEBUG),
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except KeyboardInterrupt:
        return int(ExitCode.SUCCESS)
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        try:
            hint = f"Inspect logs: {log_path}"
            print(user_facing_error("Unexpected runtime failure", hint=hint), file=sys.stderr)
        except Exception:
            pass
        return int(ExitCode.RUNTIME_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
