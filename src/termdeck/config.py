"""XDG config loading/saving."""

from __future__ import annotations

import os
import sys
from contextlib import suppress
from pathlib import Path
from typing import Literal, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

DEFAULT_CONFIG_PATH = Path("~/.config/termdeck/config.toml").expanduser()
DEFAULT_SHELL_ARGS = ["--login"]
DEFAULT_TERM = "xterm-256color"
DEFAULT_COLORTERM = "truecolor"
DEFAULT_DIRECTORY_MODE: Literal["native", "inject", "both"] = "native"
DEFAULT_SETTLE_DELAY = 0.3
DEFAULT_COLUMNS = 80
DEFAULT_ROWS = 24
SHELL_ENV = "TERMDECK_SHELL"

DirectoryMode = Literal["native", "inject", "both"]

_VALID_DIRECTORY_MODES = {"native", "inject", "both"}
_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARN", "WARNING", "ERROR"}
_MAX_SETTLE_DELAY = 5.0


class AppConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    shell: str = ""
    shell_args: list[str] = Field(default_factory=lambda: list(DEFAULT_SHELL_ARGS))
    term: str = DEFAULT_TERM
    colorterm: str = DEFAULT_COLORTERM
    environment: dict[str, str] = Field(default_factory=dict)
    directory_mode: DirectoryMode = DEFAULT_DIRECTORY_MODE
    settle_delay: float = Field(default=DEFAULT_SETTLE_DELAY, ge=0.0, le=_MAX_SETTLE_DELAY)
    columns: int = Field(default=DEFAULT_COLUMNS, ge=10, le=1000)
    rows: int = Field(default=DEFAULT_ROWS, ge=2, le=500)
    max_tabs: int = Field(default=0, ge=0)
    default_directory: str = ""
    log_level: str = "INFO"

    @field_validator("directory_mode")
    @classmethod
    def _validate_directory_mode(cls, value: str) -> str:
        if value not in _VALID_DIRECTORY_MODES:
            raise ValueError(f"Invalid directory mode: {value}")
        return value

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in _VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {value}")
        return normalized

    @field_validator("environment")
    @classmethod
    def _validate_environment(cls, value: dict[str, str]) -> dict[str, str]:
        for key in value:
            if not key or "=" in key:
                raise ValueError(f"Invalid environment variable name: {key!r}")
        return value


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _toml_scalar(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return f'"{_escape(value)}"'
    if isinstance(value, list):
        return "[" + ", ".join(_toml_scalar(item) for item in value) + "]"
    raise TypeError(f"Unsupported TOML scalar type: {type(value)!r}")


def _normalize_environment(value: object) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    normalized: dict[str, str] = {}
    for name, item in value.items():
        if not isinstance(name, str) or not isinstance(item, str):
            continue
        key = name.strip()
        if not key or "=" in key:
            continue
        normalized[key] = item
    return normalized


def _normalize_shell_args(value: object) -> list[str] | None:
    if not isinstance(value, list):
        return None
    if not all(isinstance(item, str) for item in value):
        return None
    return list(value)


def _sanitize(raw: dict[str, object]) -> AppConfig:
    cfg = AppConfig()

    shell = raw.get("shell", cfg.shell)
    if isinstance(shell, str):
        cfg.shell = shell.strip()
    env_shell = os.getenv(SHELL_ENV, "").strip()
    if env_shell:
        cfg.shell = env_shell

    shell_args = _normalize_shell_args(raw.get("shell_args"))
    if shell_args is not None:
        cfg.shell_args = shell_args

    term = raw.get("term", cfg.term)
    if isinstance(term, str) and term.strip():
        cfg.term = term.strip()

    colorterm = raw.get("colorterm", cfg.colorterm)
    if isinstance(colorterm, str) and colorterm.strip():
        cfg.colorterm = colorterm.strip()

    cfg.environment = _normalize_environment(raw.get("environment", {}))

    directory_mode = raw.get("directory_mode", cfg.directory_mode)
    if isinstance(directory_mode, str) and directory_mode in _VALID_DIRECTORY_MODES:
        cfg.directory_mode = cast(DirectoryMode, directory_mode)

    settle_delay = raw.get("settle_delay", cfg.settle_delay)
    if (
        isinstance(settle_delay, (int, float))
        and not isinstance(settle_delay, bool)
        and 0 <= settle_delay <= _MAX_SETTLE_DELAY
    ):
        cfg.settle_delay = float(settle_delay)

    columns = raw.get("columns", cfg.columns)
    if isinstance(columns, int) and not isinstance(columns, bool) and 10 <= columns <= 1000:
        cfg.columns = columns

    rows = raw.get("rows", cfg.rows)
    if isinstance(rows, int) and not isinstance(rows, bool) and 2 <= rows <= 500:
        cfg.rows = rows

    max_tabs = raw.get("max_tabs", cfg.max_tabs)
    if isinstance(max_tabs, int) and not isinstance(max_tabs, bool) and max_tabs >= 0:
        cfg.max_tabs = max_tabs

    default_directory = raw.get("default_directory", cfg.default_directory)
    if isinstance(default_directory, str):
        cfg.default_directory = default_directory

    log_level = raw.get("log_level", cfg.log_level)
    if isinstance(log_level, str) and log_level.strip().upper() in _VALID_LOG_LEVELS:
        cfg.log_level = log_level

    return cfg


def load_config(path: str | Path | None = None) -> AppConfig:
    resolved = get_config_path(path)
    if not resolved.exists():
        return _sanitize({})
    try:
        with resolved.open("rb") as handle:
            raw = tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError):
        return _sanitize({})
    if not isinstance(raw, dict):
        return _sanitize({})
    return _sanitize(raw)


def save_config(config: AppConfig, path: str | Path | None = None) -> Path:
    resolved = get_config_path(path)
    resolved.parent.mkdir(parents=True, exist_ok=True)

    lines = [
        f"shell = {_toml_scalar(config.shell)}",
        f"shell_args = {_toml_scalar(list(config.shell_args))}",
        f"term = {_toml_scalar(config.term)}",
        f"colorterm = {_toml_scalar(config.colorterm)}",
        f"directory_mode = {_toml_scalar(config.directory_mode)}",
        f"settle_delay = {_toml_scalar(float(config.settle_delay))}",
        f"columns = {_toml_scalar(config.columns)}",
        f"rows = {_toml_scalar(config.rows)}",
        f"max_tabs = {_toml_scalar(config.max_tabs)}",
        f"default_directory = {_toml_scalar(config.default_directory)}",
        f"log_level = {_toml_scalar(config.log_level)}",
    ]

    environment = _normalize_environment(config.environment)
    if environment:
        lines.append("")
        lines.append("[environment]")
        for name, value in sorted(environment.items()):
            lines.append(f'"{_escape(name)}" = {_toml_scalar(value)}')

    resolved.write_text("\n".join(lines) + "\n", encoding="utf-8")
    with suppress(OSError):
        resolved.chmod(0o600)
    return resolved
