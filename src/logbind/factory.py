"""
Binding factories.

A LogFactory produces and caches named Log instances for one isolation
context and carries a string-keyed attribute mapping. The registry applies
every pair from a discovered ``commons-logging.properties`` file as an
attribute, so factories read their configuration from ``get_attribute()``.

LogFactoryImpl is the built-in default. It picks its Log class from:
    1. the ``logging.log`` attribute
    2. the ``logging.log`` setting
    3. StdlibLog
"""

from __future__ import annotations

import threading
import types
from abc import ABC, abstractmethod
from typing import Any

from logbind.config import LOG_PROPERTY, Settings
from logbind.context import BASE_CONTEXT, as_isolation_context, current_context
from logbind.diagnostics import log_diagnostic
from logbind.errors import ClassNotFoundError, LogConfigurationException
from logbind.log.adapters import Log


LOG_DEFAULT = "logbind.log.adapters.StdlibLog"


def log_name(obj: Any) -> str:
    """Logger name for a string, class, module, or instance."""
    if isinstance(obj, str):
        return obj
    if isinstance(obj, types.ModuleType):
        return obj.__name__
    if isinstance(obj, type):
        return f"{obj.__module__}.{obj.__qualname__}"
    cls = type(obj)
    return f"{cls.__module__}.{cls.__qualname__}"


class LogFactory(ABC):
    """Contract every binding factory implements."""

    @abstractmethod
    def get_attribute(self, name: str) -> Any:
        """Attribute value, or None if unset."""
        ...

    @abstractmethod
    def get_attribute_names(self) -> list[str]:
        ...

    @abstractmethod
    def set_attribute(self, name: str, value: Any) -> None:
        """Set an attribute. A ``None`` value removes it."""
        ...

    @abstractmethod
    def remove_attribute(self, name: str) -> None:
        ...

    @abstractmethod
    def get_instance(self, name: Any) -> Log:
        """
        Construct (if necessary) and return the Log for ``name``.

        Raises:
            LogConfigurationException: if no Log can be built.
        """
        ...

    @abstractmethod
    def release(self) -> None:
        """
        Drop every cached Log instance.

        The registry always calls this with no argument, both on explicit
        release and when the factory's context is collected. A factory
        that keeps per-context state (ContextLocalFactory) may accept an
        optional context to release one entry, but called with no
        argument it must release everything, as release_all() does.
        """
        ...

    def release_all(self) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"{type(self).__name__}@{id(self):x}"


class LogFactoryImpl(LogFactory):
    """Default factory: one Log class for all names, instances cached by name."""

    def __init__(self) -> None:
        self._attributes: dict[str, Any] = {}
        self._instances: dict[str, Log] = {}
        self._log_class: type | None = None
        self._lock = threading.RLock()

    # ── Attributes ────────────────────────────────────────────────

    def get_attribute(self, name: str) -> Any:
        with self._lock:
            return self._attributes.get(name)

    def get_attribute_names(self) -> list[str]:
        with self._lock:
            return list(self._attributes)

    def set_attribute(self, name: str, value: Any) -> None:
        with self._lock:
            if value is None:
                self._attributes.pop(name, None)
            else:
                self._attributes[name] = value
            if name == LOG_PROPERTY:
                self._log_class = None

    def remove_attribute(self, name: str) -> None:
        self.set_attribute(name, None)

    # ── Instances ─────────────────────────────────────────────────

    def get_instance(self, name: Any) -> Log:
        key = log_name(name)
        with self._lock:
            instance = self._instances.get(key)
            if instance is None:
                instance = self.new_instance(key)
                self._instances[key] = instance
            return instance

    def release(self) -> None:
        with self._lock:
            self._instances.clear()

    @property
    def instance_count(self) -> int:
        with self._lock:
            return len(self._instances)

    def new_instance(self, name: str) -> Log:
        log_class = self.get_log_class()
        try:
            instance = log_class(name)
        except Exception as exc:
            raise LogConfigurationException(
                f"Unable to construct {log_class.__qualname__} for '{name}': {exc}",
                class_name=log_class.__qualname__,
            ) from exc
        hook = getattr(instance, "set_log_factory", None)
        if callable(hook):
            hook(self)
        return instance

    # ── Log class discovery ───────────────────────────────────────

    def get_log_class_name(self) -> str:
        name = self.get_attribute(LOG_PROPERTY)
        if name is None:
            name = Settings.instance().get_property(LOG_PROPERTY)
        return str(name) if name is not None else LOG_DEFAULT

    def get_log_class(self) -> type:
        with self._lock:
            if self._log_class is not None:
                return self._log_class
            class_name = self.get_log_class_name()
            log_class = _load_class(class_name)
            if not (isinstance(log_class, type) and issubclass(log_class, Log)):
                raise LogConfigurationException(
                    f"Class {class_name} does not implement Log",
                    class_name=class_name,
                )
            log_diagnostic(lambda: f"Log implementation '{class_name}' selected by {self!r}")
            self._log_class = log_class
            return log_class


def _load_class(name: str) -> Any:
    """Caller's context first, then the base context."""
    context = as_isolation_context(current_context())
    try:
        return context.load_class(name)
    except ClassNotFoundError as exc:
        if context is BASE_CONTEXT:
            raise LogConfigurationException(
                f"Log class {name} cannot be found", class_name=name
            ) from exc
    try:
        return BASE_CONTEXT.load_class(name)
    except ClassNotFoundError as exc:
        raise LogConfigurationException(
            f"Log class {name} cannot be found", class_name=name
        ) from exc
