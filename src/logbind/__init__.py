"""
logbind: logging binding discovery with a context-scoped cache.

Library code asks for a Log by name and never names a backend:

    from logbind import get_log

    log = get_log(__name__)
    log.info("started")

Which backend answers is decided once per isolation context by discovery
(setting, service descriptor, properties file, built-in default) and the
resulting factory is cached without keeping the context alive.
"""

from logbind.errors import LogConfigurationException
from logbind.context import (
    BASE_CONTEXT,
    IsolationContext,
    current_context,
    use_context,
)
from logbind.log import Log, LogLevel, NoOpLog, StdlibLog, SimpleLog, MemoryLog
from logbind.factory import LogFactory, LogFactoryImpl
from logbind.cache import WeakScopedCache
from logbind.registry import (
    BindingRegistry,
    get_factory,
    get_log,
    release,
    release_all,
)

__version__ = "0.1.0"

__all__ = [
    "LogConfigurationException",
    "BASE_CONTEXT",
    "IsolationContext",
    "current_context",
    "use_context",
    "Log",
    "LogLevel",
    "NoOpLog",
    "StdlibLog",
    "SimpleLog",
    "MemoryLog",
    "LogFactory",
    "LogFactoryImpl",
    "WeakScopedCache",
    "BindingRegistry",
    "get_factory",
    "get_log",
    "release",
    "release_all",
]
