"""Structured JSON line logging with chained events."""

from __future__ import annotations

import datetime as _dt
import enum
import json
import sys
import threading
from collections.abc import Mapping
from typing import Any, TextIO

from pbench.marshal import Marshaller


class Level(enum.IntEnum):
    """Severity of a log event."""

    TRACE = -1
    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3
    FATAL = 4
    PANIC = 5

    @property
    def label(self) -> str:
        return self.name.lower()

    def __str__(self) -> str:
        return self.label


def _plain(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, BaseException):
        return str(value)
    if isinstance(value, (_dt.datetime, _dt.date, _dt.time)):
        return value.isoformat()
    if isinstance(value, _dt.timedelta):
        return value // _dt.timedelta(milliseconds=1)
    if isinstance(value, Mapping):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return str(value)


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


class Event:
    """A log record under construction; it is written by msg() or send()."""

    def __init__(
        self,
        logger: "Logger",
        level: Level | None,
        enabled: bool = True,
        exit_on_send: bool = False,
    ) -> None:
        self._logger = logger
        self.level = level
        self._enabled = enabled
        self._exit_on_send = exit_on_send
        self._fields: list[tuple[str, Any]] = []
        self._sent = False

    @property
    def enabled(self) -> bool:
        return self._enabled and not self._sent

    def _add(self, key: str, value: Any) -> "Event":
        if self.enabled:
            self._fields.append((key, value))
        return self

    def field(self, key: str, value: Any) -> "Event":
        """Add a key with a plain value."""
        return self._add(key, _plain(value))

    def err(self, error: BaseException | None) -> "Event":
        """Add the error under "error"; a None error adds nothing."""
        if error is None:
            return self
        return self._add("error", str(error))

    def array(self, key: str, marshaller: Marshaller) -> "Event":
        return self._add(key, marshaller.as_array())

    def object(self, key: str, marshaller: Marshaller) -> "Event":
        return self._add(key, marshaller.as_object())

    def msg(self, message: str, *args: Any) -> None:
        """Write the event with a message formatted %-style from args."""
        if self._sent:
            return
        if self._enabled:
            text = message % args if args else message
            self._logger._write(self.level, self._fields, text)
        self._sent = True
        if self._exit_on_send:
            raise SystemExit(1)

    def send(self) -> None:
        """Write the event without a message."""
        self.msg("")


class Logger:
    """Writes one JSON object per line to a text stream."""

    def __init__(
        self,
        stream: TextIO | None = None,
        level: Level = Level.TRACE,
        override_fatal: bool = False,
    ) -> None:
        self.stream = stream
        self.level = Level(level)
        self.override_fatal = override_fatal
        self.timestamp = False
        self._lock = threading.Lock()

    def output(self, stream: TextIO) -> "Logger":
        """Return a copy of this logger that writes to stream."""
        clone = Logger(stream, self.level, self.override_fatal)
        clone.timestamp = self.timestamp
        return clone

    def event(self, level: Level) -> Event:
        level = Level(level)
        return Event(self, level, enabled=level >= self.level)

    def log(self) -> Event:
        """Start an event without a level."""
        return Event(self, None)

    def trace(self) -> Event:
        return self.event(Level.TRACE)

    def debug(self) -> Event:
        return self.event(Level.DEBUG)

    def info(self) -> Event:
        return self.event(Level.INFO)

    def warn(self) -> Event:
        return self.event(Level.WARN)

    def error(self) -> Event:
        return self.event(Level.ERROR)

    def fatal(self) -> Event:
        """Start a fatal event; sending it exits unless fatal is overridden."""
        return Event(
            self,
            Level.FATAL,
            enabled=Level.FATAL >= self.level,
            exit_on_send=not self.override_fatal,
        )

    def _write(self, level: Level | None, fields: list[tuple[str, Any]], message: str) -> None:
        parts: list[tuple[str, Any]] = []
        if level is not None:
            parts.append(("level", level.label))
        parts.extend(fields)
        if self.timestamp:
            now = _dt.datetime.now(_dt.timezone.utc).astimezone()
            parts.append(("time", now.isoformat(timespec="seconds")))
        if message:
            parts.append(("message", message))
        line = "{" + ",".join(f"{_dump(key)}:{_dump(value)}" for key, value in parts) + "}\n"
        stream = self.stream if self.stream is not None else sys.stderr
        with self._lock:
            stream.write(line)
            flush = getattr(stream, "flush", None)
            if flush is not None:
                flush()


def _default_logger() -> Logger:
    logger = Logger()
    logger.timestamp = True
    return logger


class _Global:
    """Holds the process-wide logger."""

    logger: Logger = _default_logger()


def set_global_logger(logger: Logger) -> None:
    """Replace the process-wide logger."""
    if not isinstance(logger, Logger):
        raise TypeError(f"expected a Logger, got {type(logger).__name__}")
    _Global.logger = logger


def get_logger() -> Logger:
    return _Global.logger


def log() -> Event:
    return _Global.logger.log()


def debug() -> Event:
    return _Global.logger.debug()


def info() -> Event:
    return _Global.logger.info()


def warn() -> Event:
    return _Global.logger.warn()


def error() -> Event:
    return _Global.logger.error()


def fatal() -> Event:
    return _Global.logger.fatal()