"""structlog setup for the runtime and the CLI.

Read from the environment when `setup_logging()` runs:

* `TGBOT_LOG_LEVEL`: debug, info (default), warning or error
* `TGBOT_LOG_FORMAT`: console (default) or json
* `TGBOT_LOG_COLOR`: force console colours on or off
* `TGBOT_LOG_FILE`: also append every event as a JSON line here

Every event goes through `redact.redact_data` before it is rendered or
written, so registered secrets and token-shaped strings never leave the
process.
"""

from __future__ import annotations

import errno
import io
import os
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, TextIO

import structlog
from structlog.types import EventDict, Processor

from .redact import redact_data

__all__ = [
    "LogOptions",
    "get_logger",
    "setup_logging",
    "suppress_logs",
]

_LEVELS: dict[str, int] = {
    "debug": 10,
    "info": 20,
    "warning": 30,
    "warn": 30,
    "error": 40,
    "exception": 40,
    "critical": 50,
}

_floor: ContextVar[int] = ContextVar("tgbot_log_floor", default=0)
_sink: _JsonLinesSink | None = None


def _level(name: str | None, default: str) -> int:
    if name is None:
        return _LEVELS[default]
    return _LEVELS.get(name.strip().lower(), _LEVELS[default])


@dataclass(frozen=True, slots=True)
class LogOptions:
    level: int
    json: bool
    color: bool
    file: str | None

    @classmethod
    def from_env(
        cls, *, debug: bool = False, environ: Mapping[str, str] | None = None
    ) -> LogOptions:
        env = os.environ if environ is None else environ
        color = env.get("TGBOT_LOG_COLOR")
        return cls(
            level=_LEVELS["debug"] if debug else _level(env.get("TGBOT_LOG_LEVEL"), "info"),
            json=env.get("TGBOT_LOG_FORMAT", "").strip().lower() == "json",
            color=(
                sys.stdout.isatty()
                if color is None
                else color.strip().lower() in {"1", "true", "yes", "on"}
            ),
            file=env.get("TGBOT_LOG_FILE") or None,
        )


def _drop_suppressed(_logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    if _LEVELS.get(method_name, 0) < _floor.get():
        raise structlog.DropEvent
    return event_dict


def _name_logger(logger: Any, _method_name: str, event_dict: EventDict) -> EventDict:
    name = event_dict.pop("logger_name", None) or getattr(logger, "name", None)
    if name and "logger" not in event_dict:
        event_dict["logger"] = name
    return event_dict


def _redact(_logger: Any, _method_name: str, event_dict: EventDict) -> EventDict:
    return redact_data(event_dict)


class _JsonLinesSink:
    """Appends each (already redacted) event to a file as one JSON line."""

    def __init__(self, path: str) -> None:
        self._handle = open(path, "a", encoding="utf-8")
        self._render = structlog.processors.JSONRenderer(default=str)

    def __call__(self, logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        line = self._render(logger, method_name, dict(event_dict))
        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")
        try:
            self._handle.write(line + "\n")
            self._handle.flush()
        except (OSError, ValueError):
            pass
        return event_dict

    def close(self) -> None:
        self._handle.close()


class _PipeSafeStream(io.TextIOBase):
    """stdout wrapper that goes quiet once the reading end is gone."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._gone = False

    def _guard(self, action: Any, fallback: Any) -> Any:
        if self._gone:
            return fallback
        try:
            return action()
        except (BrokenPipeError, ValueError):
            pass
        except OSError as exc:
            if exc.errno != errno.EPIPE:
                raise
        self._gone = True
        return fallback

    def write(self, text: str) -> int:
        return self._guard(lambda: self._stream.write(text), 0)

    def flush(self) -> None:
        self._guard(self._stream.flush, None)

    def isatty(self) -> bool:
        return self._guard(self._stream.isatty, False)


def _replace_sink(path: str | None) -> _JsonLinesSink | None:
    global _sink
    if _sink is not None:
        _sink.close()
        _sink = None
    if path:
        try:
            _sink = _JsonLinesSink(path)
        except OSError:
            _sink = None
    return _sink


def setup_logging(
    *, debug: bool = False, cache_logger_on_first_use: bool = True
) -> None:
    options = LogOptions.from_env(debug=debug)
    renderer: Processor = (
        structlog.processors.JSONRenderer(default=str)
        if options.json
        else structlog.dev.ConsoleRenderer(colors=options.color)
    )
    processors: list[Processor] = [
        _drop_suppressed,
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.add_log_level,
        _name_logger,
    ]
    if options.json:
        processors.append(structlog.processors.format_exc_info)
    processors.append(_redact)
    sink = _replace_sink(options.file)
    if sink is not None:
        processors.append(sink)
    processors.append(renderer)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(options.level),
        logger_factory=structlog.PrintLoggerFactory(file=_PipeSafeStream(sys.stdout)),
        cache_logger_on_first_use=cache_logger_on_first_use,
    )


def get_logger(name: str | None = None) -> Any:
    if name:
        return structlog.get_logger(logger_name=name)
    return structlog.get_logger()


@contextmanager
def suppress_logs(level: str = "warning") -> Iterator[None]:
    """Drop events below `level` inside the block, on top of the global level."""
    token = _floor.set(_level(level, "warning"))
    try:
        yield
    finally:
        _floor.reset(token)
