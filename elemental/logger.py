"""Leveled logger producing logfmt-style text lines."""

from __future__ import annotations

import copy as _copy
import re
import sys
from datetime import datetime
from enum import IntEnum
from typing import IO, Any, Iterable


class Level(IntEnum):
    """Log levels; a higher value means more verbose output."""

    PANIC = 0
    FATAL = 1
    ERROR = 2
    WARNING = 3
    INFO = 4
    DEBUG = 5
    TRACE = 6

    @property
    def label(self) -> str:
        return self.name.lower()


# Matches ":word: " emoji markers at the start of human readable messages.
_EMOJI = re.compile(r":\w+:\s", re.ASCII)
_SAFE_VALUE = re.compile(r"[A-Za-z0-9\-._/@^+]*")


def join_message(args: Iterable[Any]) -> str:
    """Join arguments into one phrase, dropping emoji markers and outer spaces."""
    return " ".join(_EMOJI.sub("", str(arg)).strip(" ") for arg in args)


def _quote(value: str) -> str:
    if _SAFE_VALUE.fullmatch(value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


class Logger:
    """A small leveled logger writing one text line per record."""

    def __init__(
        self,
        stream: IO[str] | None = None,
        level: Level = Level.INFO,
        input_stream: IO[str] | None = None,
    ) -> None:
        self.stream = stream
        self.level = Level(level)
        self.input_stream = input_stream

    def _log(self, level: Level, args: tuple[Any, ...]) -> None:
        if self.stream is None or level > self.level:
            return
        timestamp = datetime.now().astimezone().isoformat(timespec="seconds")
        message = join_message(args)
        self.stream.write(
            f'time="{timestamp}" level={level.label} msg={_quote(message)}\n'
        )
        self.stream.flush()

    def trace(self, *args: Any) -> None:
        self._log(Level.TRACE, args)

    def debug(self, *args: Any) -> None:
        self._log(Level.DEBUG, args)

    def info(self, *args: Any) -> None:
        self._log(Level.INFO, args)

    def success(self, *args: Any) -> None:
        self.info(*args)

    def warn(self, *args: Any) -> None:
        self._log(Level.WARNING, args)

    def warning(self, *args: Any) -> None:
        self.warn(*args)

    def error(self, *args: Any) -> None:
        self._log(Level.ERROR, args)

    def fatal(self, *args: Any) -> None:
        """Log at fatal level and terminate with exit status 1."""
        self._log(Level.FATAL, args)
        raise SystemExit(1)

    def set_level(self, level: Level) -> None:
        self.level = Level(level)

    def get_level(self) -> Level:
        return self.level

    def ask(self) -> bool:
        """Ask for confirmation; only a single 'y' or 'yes' answer confirms."""
        self.info("Do you want to continue with this operation? [y/N]: ")
        source = self.input_stream if self.input_stream is not None else sys.stdin
        words = source.readline().split()
        if len(words) != 1:
            return False
        return words[0].lower() in ("y", "yes")

    def copy(self) -> "Logger":
        return _copy.copy(self)


def debug_level() -> Level:
    return Level.DEBUG


def is_debug_level(logger: Logger) -> bool:
    return logger.get_level() == debug_level()


def new_logger() -> Logger:
    """Logger writing to standard error at info level."""
    return Logger(stream=sys.stderr)


def new_null_logger() -> Logger:
    """Logger that discards every record."""
    return Logger(stream=None)


def new_buffer_logger(buffer: IO[str]) -> Logger:
    """Logger writing into the given text buffer."""
    return Logger(stream=buffer)