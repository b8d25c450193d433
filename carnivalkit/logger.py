"""Coloured console logging with key/value attributes."""

from __future__ import annotations

import os
import sys
from enum import IntEnum
from typing import Any, Iterable, TextIO

_RESET = "\033[0m"
_RED = "\033[31m"
_YELLOW = "\033[33m"
_BLUE = "\033[34m"
_GRAY = "\033[90m"

_BAD_KEY = "!BADKEY"


class Level(IntEnum):
    """Logging threshold; a message is shown when its level is at least this."""

    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3


_STYLES = {
    Level.DEBUG: (_GRAY, "DEBUG"),
    Level.INFO: (_BLUE, "INFO"),
    Level.WARN: (_YELLOW, "WARN"),
    Level.ERROR: (_RED, "ERROR"),
}


def _pair_args(args: Iterable[Any]) -> list[tuple[str, Any]]:
    """Turn alternating key/value arguments into attribute pairs."""
    attrs: list[tuple[str, Any]] = []
    items = iter(args)
    for item in items:
        if isinstance(item, str):
            try:
                value = next(items)
            except StopIteration:
                attrs.append((_BAD_KEY, item))
                break
            attrs.append((item, value))
        else:
            attrs.append((_BAD_KEY, item))
    return attrs


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "<nil>"
    return str(value)


def _caller_filename(depth: int) -> str:
    try:
        frame = sys._getframe(depth + 1)
    except ValueError:
        return ""
    return os.path.basename(frame.f_code.co_filename)


class ConsoleLogger:
    """Writes coloured ``[LEVEL] file: message k=v`` lines to a stream."""

    def __init__(
        self,
        level: Level = Level.INFO,
        output: TextIO | None = None,
        attrs: Iterable[tuple[str, Any]] = (),
    ) -> None:
        self.level = Level(level)
        self.output = output
        self.attrs = tuple(attrs)

    def enabled(self, level: Level) -> bool:
        return level >= self.level

    def _log(self, level: Level, msg: str, args: tuple[Any, ...]) -> None:
        if not self.enabled(level):
            return
        # Frame 0 is this method, 1 the public logging call, 2 its caller.
        filename = _caller_filename(2)
        colour, label = _STYLES.get(level, (_RESET, "UNKNOWN"))

        attrs = [*self.attrs, *_pair_args(args)]
        text = msg
        if attrs:
            text += " " + " ".join(f"{key}={_format_value(value)}" for key, value in attrs)

        if filename:
            line = f"{colour}[{label}]{_RESET} {filename}: {text}\n"
        else:
            line = f"{colour}[{label}]{_RESET} {text}\n"

        stream = self.output if self.output is not None else sys.stderr
        stream.write(line)
        flush = getattr(stream, "flush", None)
        if flush is not None:
            flush()

    def debug(self, msg: str, *args: Any) -> None:
        self._log(Level.DEBUG, msg, args)

    def info(self, msg: str, *args: Any) -> None:
        self._log(Level.INFO, msg, args)

    def warn(self, msg: str, *args: Any) -> None:
        self._log(Level.WARN, msg, args)

    def error(self, msg: str, *args: Any) -> None:
        self._log(Level.ERROR, msg, args)

    def with_attrs(self, *args: Any) -> "ConsoleLogger":
        """Return a logger that adds these key/value attributes to every line."""
        return ConsoleLogger(self.level, self.output, [*self.attrs, *_pair_args(args)])


_current_level = Level.INFO
_current_output: TextIO | None = None
_default = ConsoleLogger(_current_level, _current_output)


def _rebuild() -> None:
    global _default
    _default = ConsoleLogger(_current_level, _current_output)


def set_level(level: Any) -> None:
    """Set the global threshold; unknown values fall back to INFO."""
    global _current_level
    try:
        _current_level = Level(level)
    except ValueError:
        _current_level = Level.INFO
    _rebuild()


def set_output(stream: TextIO | None) -> None:
    """Send log lines to ``stream``; ``None`` means standard error."""
    global _current_output
    _current_output = stream
    _rebuild()


def debug(msg: str, *args: Any) -> None:
    _default._log(Level.DEBUG, msg, args)


def info(msg: str, *args: Any) -> None:
    _default._log(Level.INFO, msg, args)


def warn(msg: str, *args: Any) -> None:
    _default._log(Level.WARN, msg, args)


def error(msg: str, *args: Any) -> None:
    _default._log(Level.ERROR, msg, args)


def printf(fmt: str, *args: Any) -> None:
    """Log at INFO level; extra arguments are attached as attributes."""
    _default._log(Level.INFO, fmt, args)


def println(msg: str) -> None:
    _default._log(Level.INFO, msg, ())


def with_attrs(*args: Any) -> ConsoleLogger:
    return _default.with_attrs(*args)


def get_logger() -> ConsoleLogger:
    return _default