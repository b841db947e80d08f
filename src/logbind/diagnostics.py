"""
Internal diagnostics.

Discovery is hard to debug from the outside, so every decision it makes is
reported here. Output is off unless ``logging.diagnostics.dest`` is set to
STDOUT, STDERR, or a file path (opened in append mode).

Each line is prefixed with "[LogFactory from <base context>]" so output
from several copies of the package in one process can be told apart.
"""

from __future__ import annotations

import sys
import threading
from typing import Callable, TextIO

from logbind.config import DIAGNOSTICS_DEST_PROPERTY, Settings
from logbind.context import BASE_CONTEXT, object_id
from logbind.log.formatters import DetailedFormatter, LogFormatter
from logbind.log.records import LogLevel, LogRecord


class DiagnosticChannel:
    """Writes diagnostic lines to one destination."""

    def __init__(self, dest: str | None, formatter: LogFormatter | None = None):
        self.dest = dest
        self.prefix = f"[LogFactory from {BASE_CONTEXT.name}@{id(BASE_CONTEXT):x}] "
        self._formatter = formatter or DetailedFormatter()
        self._file: TextIO | None = None
        self._lock = threading.Lock()
        if dest and dest not in ("STDOUT", "STDERR"):
            try:
                self._file = open(dest, "a", encoding="utf-8")
            except OSError:
                # Unwritable destination: diagnostics stay off
                self.dest = None

    @property
    def enabled(self) -> bool:
        return bool(self.dest)

    def _stream(self) -> TextIO | None:
        if self.dest == "STDOUT":
            return sys.stdout
        if self.dest == "STDERR":
            return sys.stderr
        return self._file

    def log(self, message: str, level: int = LogLevel.DEBUG) -> None:
        stream = self._stream()
        if stream is None:
            return
        record = LogRecord.create(level, "logbind", self.prefix + message)
        line = self._formatter.format(record)
        with self._lock:
            stream.write(line + "\n")
            stream.flush()

    def close(self) -> None:
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None


_channel: DiagnosticChannel | None = None
_channel_lock = threading.Lock()


def get_channel() -> DiagnosticChannel:
    global _channel
    if _channel is None:
        with _channel_lock:
            if _channel is None:
                dest = Settings.instance().get_property(DIAGNOSTICS_DEST_PROPERTY)
                _channel = DiagnosticChannel(dest)
    return _channel


def reset_diagnostics() -> None:
    """Close the channel; the next call re-reads the destination setting."""
    global _channel
    with _channel_lock:
        if _channel is not None:
            _channel.close()
        _channel = None


def is_diagnostics_enabled() -> bool:
    return get_channel().enabled


def log_diagnostic(message: str | Callable[[], str]) -> None:
    """Emit a diagnostic. A callable is only evaluated when enabled."""
    channel = get_channel()
    if not channel.enabled:
        return
    if callable(message):
        message = message()
    channel.log(message)


def log_error(message: str) -> None:
    """
    Emit a diagnostic the operator must see: to the channel when enabled,
    otherwise straight to stderr.
    """
    channel = get_channel()
    if channel.enabled:
        channel.log(message, LogLevel.ERROR)
    else:
        print(f"[ERROR] logbind: {message}", file=sys.stderr)


def log_hierarchy(prefix: str, context: object) -> None:
    """Describe a context and its ancestors."""
    if not is_diagnostics_enabled():
        return
    chain = []
    current = context
    while current is not None:
        chain.append(object_id(current) if not hasattr(current, "name") else repr(current))
        current = getattr(current, "parent", None)
    log_diagnostic(f"{prefix}context tree: {' --> '.join(chain) or 'null'}")
