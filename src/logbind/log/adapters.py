"""
The Log contract and the adapters shipped with logbind.

Every binding factory hands out objects implementing ``Log``. A backend is
plugged in by subclassing ``Log`` and implementing two methods:
``is_level_enabled()`` and ``emit()``. The leveled calls (trace, debug,
info, warn, error, fatal) and the ``is_<level>_enabled()`` queries are
derived from those two.

Shipped adapters:
    NoOpLog    — discards everything
    StdlibLog  — bridges onto the standard ``logging`` module (default)
    SimpleLog  — self-contained writer to stderr, configured by properties
    MemoryLog  — bounded in-memory buffer, for tests and inspection
"""

import logging
import sys
import threading
from abc import ABC, abstractmethod
from collections import deque
from typing import TextIO

from logbind.config import SIMPLELOG_PREFIX, Settings
from logbind.context import BASE_CONTEXT
from logbind.properties import read_properties
from logbind.log.formatters import (
    DEFAULT_DATE_TIME_FORMAT,
    LogFormatter,
    SimpleFormatter,
)
from logbind.log.records import LogLevel, LogRecord


class Log(ABC):
    """Adapter contract. One instance per logger name, cached by its factory."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def is_level_enabled(self, level: int) -> bool:
        """True if a record at ``level`` would be emitted."""
        ...

    @abstractmethod
    def emit(self, level: int, message: object, exc: BaseException | None = None) -> None:
        """Write one record. Called only after the level check passed."""
        ...

    # ── Leveled calls ─────────────────────────────────────────────

    def trace(self, message: object, exc: BaseException | None = None) -> None:
        if self.is_level_enabled(LogLevel.TRACE):
            self._guarded_emit(LogLevel.TRACE, message, exc)

    def debug(self, message: object, exc: BaseException | None = None) -> None:
        if self.is_level_enabled(LogLevel.DEBUG):
            self._guarded_emit(LogLevel.DEBUG, message, exc)

    def info(self, message: object, exc: BaseException | None = None) -> None:
        if self.is_level_enabled(LogLevel.INFO):
            self._guarded_emit(LogLevel.INFO, message, exc)

    def warn(self, message: object, exc: BaseException | None = None) -> None:
        if self.is_level_enabled(LogLevel.WARN):
            self._guarded_emit(LogLevel.WARN, message, exc)

    def error(self, message: object, exc: BaseException | None = None) -> None:
        if self.is_level_enabled(LogLevel.ERROR):
            self._guarded_emit(LogLevel.ERROR, message, exc)

    def fatal(self, message: object, exc: BaseException | None = None) -> None:
        if self.is_level_enabled(LogLevel.FATAL):
            self._guarded_emit(LogLevel.FATAL, message, exc)

    # ── Enablement queries ────────────────────────────────────────

    def is_trace_enabled(self) -> bool:
        return self.is_level_enabled(LogLevel.TRACE)

    def is_debug_enabled(self) -> bool:
        return self.is_level_enabled(LogLevel.DEBUG)

    def is_info_enabled(self) -> bool:
        return self.is_level_enabled(LogLevel.INFO)

    def is_warn_enabled(self) -> bool:
        return self.is_level_enabled(LogLevel.WARN)

    def is_error_enabled(self) -> bool:
        return self.is_level_enabled(LogLevel.ERROR)

    def is_fatal_enabled(self) -> bool:
        return self.is_level_enabled(LogLevel.FATAL)

    def _guarded_emit(self, level: int, message: object, exc: BaseException | None) -> None:
        try:
            self.emit(level, message, exc)
        except Exception:
            # Never let adapter failure crash the caller
            pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class NoOpLog(Log):
    """Discards all records."""

    def __init__(self, name: str = "noop"):
        super().__init__(name)

    def is_level_enabled(self, level: int) -> bool:
        return False

    def emit(self, level: int, message: object, exc: BaseException | None = None) -> None:
        pass


class StdlibLog(Log):
    """
    Bridges onto ``logging.getLogger(name)``.

    Level values are already stdlib-compatible; TRACE (5) is registered
    with the logging module on import, FATAL maps to CRITICAL.
    """

    # user frame → info() → _guarded_emit() → emit() → Logger.log()
    _STACKLEVEL = 4

    def __init__(self, name: str):
        super().__init__(name)
        self._logger = logging.getLogger(name)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def is_level_enabled(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    def emit(self, level: int, message: object, exc: BaseException | None = None) -> None:
        self._logger.log(
            level,
            message,
            exc_info=exc if exc is not None else None,
            stacklevel=self._STACKLEVEL,
        )


logging.addLevelName(LogLevel.TRACE, "TRACE")


# ── SimpleLog configuration ─────────────────────────────────────────

SIMPLELOG_PROPERTIES = "simplelog.properties"

_simplelog_props: dict[str, str] | None = None
_simplelog_lock = threading.Lock()


def _simplelog_properties() -> dict[str, str]:
    """Load ``simplelog.properties`` from the base context once."""
    global _simplelog_props
    if _simplelog_props is None:
        with _simplelog_lock:
            if _simplelog_props is None:
                props: dict[str, str] = {}
                path = BASE_CONTEXT.get_resource(SIMPLELOG_PROPERTIES)
                if path is not None:
                    props = read_properties(path) or {}
                _simplelog_props = props
    return _simplelog_props


def reload_simplelog_configuration() -> None:
    """Forget the cached ``simplelog.properties`` contents."""
    global _simplelog_props
    with _simplelog_lock:
        _simplelog_props = None


def _simplelog_property(name: str, default: str | None = None) -> str | None:
    key = SIMPLELOG_PREFIX + name
    value = Settings.instance().get_property(key)
    if value is None:
        value = _simplelog_properties().get(key)
    return default if value is None else value


def _simplelog_flag(name: str, default: bool) -> bool:
    value = _simplelog_property(name)
    if value is None:
        return default
    return value.strip().lower() == "true"


class SimpleLog(Log):
    """
    Minimal self-contained logger writing to stderr.

    Level lookup: ``logbind.simplelog.log.<name>``, walking up the dotted
    parents of ``name``, then ``logbind.simplelog.defaultlog``, then INFO.
    """

    def __init__(self, name: str, stream: TextIO | None = None):
        super().__init__(name)
        self._stream = stream
        self._lock = threading.Lock()
        self.level = self._configured_level(name)
        self.formatter: LogFormatter = SimpleFormatter(
            show_log_name=_simplelog_flag("showlogname", False),
            show_short_name=_simplelog_flag("showShortLogname", True),
            show_date_time=_simplelog_flag("showdatetime", False),
            date_time_format=_simplelog_property("dateTimeFormat", DEFAULT_DATE_TIME_FORMAT),
        )

    @staticmethod
    def _configured_level(name: str) -> int:
        lvl = _simplelog_property(f"log.{name}")
        candidate = name
        while lvl is None and "." in candidate:
            candidate = candidate.rsplit(".", 1)[0]
            lvl = _simplelog_property(f"log.{candidate}")
        if lvl is None:
            lvl = _simplelog_property("defaultlog")
        if lvl is None:
            return LogLevel.INFO
        try:
            return LogLevel.from_name(lvl)
        except ValueError:
            return LogLevel.INFO

    def set_level(self, level: int | str) -> None:
        self.level = LogLevel.from_value(level)

    def get_level(self) -> int:
        return self.level

    def is_level_enabled(self, level: int) -> bool:
        return level >= self.level

    def emit(self, level: int, message: object, exc: BaseException | None = None) -> None:
        record = LogRecord.create(level, self.name, message, exc)
        line = self.formatter.format(record)
        stream = self._stream or sys.stderr
        with self._lock:
            stream.write(line + "\n")
            stream.flush()


class MemoryLog(Log):
    """
    Ring buffer of the last N records. Does not grow unbounded.
    """

    def __init__(self, name: str, capacity: int = 1000, level: int = LogLevel.ALL):
        super().__init__(name)
        self.level = level
        self._buffer: deque[LogRecord] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self.factory = None

    def set_log_factory(self, factory) -> None:
        """Called by LogFactoryImpl right after construction."""
        self.factory = factory

    def is_level_enabled(self, level: int) -> bool:
        return level >= self.level

    def emit(self, level: int, message: object, exc: BaseException | None = None) -> None:
        with self._lock:
            self._buffer.append(LogRecord.create(level, self.name, message, exc))

    @property
    def records(self) -> list[LogRecord]:
        with self._lock:
            return list(self._buffer)

    def get_recent(self, n: int = 100, min_level: int = LogLevel.ALL) -> list[LogRecord]:
        records = [r for r in self.records if r.level >= min_level]
        return records[-n:]

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()

    @property
    def count(self) -> int:
        return len(self._buffer)
