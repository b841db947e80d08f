"""
The Log contract and the shipped adapters.

A binding factory hands out ``Log`` objects; everything here is what those
objects are built from.
"""

from logbind.log.records import LogRecord, LogLevel, level_name
from logbind.log.formatters import (
    LogFormatter,
    SimpleFormatter,
    DetailedFormatter,
)
from logbind.log.adapters import Log, NoOpLog, StdlibLog, SimpleLog, MemoryLog

__all__ = [
    "LogRecord",
    "LogLevel",
    "level_name",
    "LogFormatter",
    "SimpleFormatter",
    "DetailedFormatter",
    "Log",
    "NoOpLog",
    "StdlibLog",
    "SimpleLog",
    "MemoryLog",
]
