"""
Line formatters used by the shipped adapters.

  - simple:   "[{level_name}] {logger} - {message}", with optional date/name
  - detailed: "{timestamp} [{level_name}] {logger}: {message}"
"""

import traceback
from abc import ABC, abstractmethod

from logbind.log.records import LogRecord


DEFAULT_DATE_TIME_FORMAT = "%Y/%m/%d %H:%M:%S:%f %Z"


class LogFormatter(ABC):
    """Base formatter. Transforms LogRecord → string."""

    @abstractmethod
    def format(self, record: LogRecord) -> str: ...


class SimpleFormatter(LogFormatter):
    """
    Format written by SimpleLog.
    Example: 2026/10/19 14:32:05:123456 UTC [INFO] Pool - started
    """

    def __init__(
        self,
        show_log_name: bool = False,
        show_short_name: bool = True,
        show_date_time: bool = False,
        date_time_format: str = DEFAULT_DATE_TIME_FORMAT,
    ):
        self.show_log_name = show_log_name
        self.show_short_name = show_short_name
        self.show_date_time = show_date_time
        self.date_time_format = date_time_format

    def format(self, record: LogRecord) -> str:
        parts = []
        if self.show_date_time:
            try:
                parts.append(record.timestamp.strftime(self.date_time_format))
            except ValueError:
                parts.append(record.timestamp.strftime(DEFAULT_DATE_TIME_FORMAT))
        parts.append(f"[{record.level_name}]")
        if self.show_log_name:
            parts.append(f"{record.logger} -")
        elif self.show_short_name:
            parts.append(f"{record.logger.rsplit('.', 1)[-1]} -")
        parts.append(record.message)
        return _with_exc(" ".join(parts), record)


class DetailedFormatter(LogFormatter):
    """
    Detailed format for diagnostics and files.
    Example: 2026-10-19 14:32:05.123456 [ INFO] logbind.discovery: [LOOKUP] ...
    """

    def format(self, record: LogRecord) -> str:
        ts = record.timestamp.strftime("%Y-%m-%d %H:%M:%S.%f")
        line = f"{ts} [{record.level_name:>5}] {record.logger}: {record.message}"
        return _with_exc(line, record)


def _with_exc(line: str, record: LogRecord) -> str:
    """Append the formatted exception (if any) below the line."""
    if record.exc is None:
        return line
    tb = "".join(
        traceback.format_exception(type(record.exc), record.exc, record.exc.__traceback__)
    )
    return f"{line}\n{tb.rstrip()}"
