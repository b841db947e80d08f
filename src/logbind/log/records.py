"""
Log records and level definitions.

Levels only carry ordering. Values are spaced like the standard library's
so that adapters bridging onto ``logging`` can pass them straight through.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import IntEnum


class LogLevel(IntEnum):
    """Ordered log levels. ALL and OFF are thresholds, never emitted."""
    ALL = 0
    TRACE = 5
    DEBUG = 10
    INFO = 20
    WARN = 30
    ERROR = 40
    FATAL = 50
    OFF = 60

    @classmethod
    def from_name(cls, name: str) -> "LogLevel":
        """Resolve level from string name, case-insensitive."""
        name_upper = name.strip().upper()
        if name_upper == "WARNING":
            name_upper = "WARN"
        try:
            return cls[name_upper]
        except KeyError:
            raise ValueError(
                f"Unknown log level '{name}'. "
                f"Valid levels: {', '.join(m.name.lower() for m in cls)}"
            )

    @classmethod
    def from_value(cls, value: int | str) -> "LogLevel":
        """Resolve level from int or string."""
        if isinstance(value, str):
            return cls.from_name(value)
        if isinstance(value, int):
            for member in cls:
                if member.value == value:
                    return member
            raise ValueError(
                f"No level with value {value}. "
                f"Valid values: {', '.join(f'{m.name}={m.value}' for m in cls)}"
            )
        raise TypeError(f"Expected int or str, got {type(value).__name__}")


LEVEL_NAMES: dict[int, str] = {member.value: member.name for member in LogLevel}


def level_name(level: int) -> str:
    """Get display name for a level value. Falls back to numeric string."""
    return LEVEL_NAMES.get(level, str(level))


@dataclass(frozen=True)
class LogRecord:
    """
    Immutable record produced by the shipped adapters and by the
    diagnostics channel.
    """
    timestamp: datetime
    level: int
    level_name: str
    logger: str
    message: str
    exc: BaseException | None = None

    @classmethod
    def create(
        cls,
        level: int,
        logger: str,
        message: object,
        exc: BaseException | None = None,
    ) -> "LogRecord":
        """Factory method with auto-timestamp and level name resolution."""
        return cls(
            timestamp=datetime.now(timezone.utc),
            level=level,
            level_name=level_name(level),
            logger=logger,
            message=str(message),
            exc=exc,
        )
