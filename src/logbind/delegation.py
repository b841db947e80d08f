"""
Context-local delegation.

ContextLocalFactory is a LogFactory that does not build Logs itself. It
keeps a private context→factory table and forwards ``get_instance()`` to
the factory belonging to the caller's current context. A context supplies
its factory by defining a provider callable under
``logbind.LogFactory.get_factory`` in its class namespace.

The default factory serves the caller when:
    - the caller is in the context that defined the default factory class
    - the context has no provider, or the provider fails
    - the provider returns something that is not a LogFactory
    - the provider returns this delegator (a parent-first lookup reached
      the delegator's own context)

Usage:
    Settings.instance().set_property("logging.factory", "ContextLocalFactory")

    plugin = IsolationContext("plugin", parent_first=False)
    plugin.define("logbind.LogFactory.get_factory", lambda: plugin_factory)
    with use_context(plugin):
        get_log("plugin.task")      # served by plugin_factory
"""

from __future__ import annotations

import threading
import weakref
from typing import Any

from logbind.cache import WeakScopedCache
from logbind.config import CONTEXT_DEFAULT_FACTORY_PROPERTY, Settings
from logbind.context import BASE_CONTEXT, as_isolation_context, current_context, object_id
from logbind.diagnostics import log_diagnostic, log_error
from logbind.errors import ClassNotFoundError, LogConfigurationException
from logbind.factory import LogFactory
from logbind.log.adapters import Log
from logbind.registry import PROVIDER_NAME, check_context


DEFAULT_FACTORY = "logbind.factory.LogFactoryImpl"

_ALL = object()


class ContextLocalFactory(LogFactory):
    """Forwards each lookup to the caller's context's own factory."""

    def __init__(self, default_factory: str | type | None = None) -> None:
        self._factories = WeakScopedCache()
        self._finalizers: dict[int, weakref.finalize] = {}
        self._null_factory: LogFactory | None = None
        self._lock = threading.RLock()

        if default_factory is None:
            default_factory = (
                Settings.instance().get_property(CONTEXT_DEFAULT_FACTORY_PROPERTY)
                or DEFAULT_FACTORY
            )
        self._default_class, self._default_context = _load_factory_class(default_factory)
        try:
            self._default = self._default_class()
        except Exception as exc:
            raise LogConfigurationException(
                f"Unable to construct default factory {self._default_class.__qualname__}: {exc}",
                class_name=self._default_class.__qualname__,
            ) from exc

    @property
    def default_factory(self) -> LogFactory:
        return self._default

    # ── Attributes (forwarded to the default factory) ─────────────

    def get_attribute(self, name: str) -> Any:
        return self._default.get_attribute(name)

    def get_attribute_names(self) -> list[str]:
        return self._default.get_attribute_names()

    def set_attribute(self, name: str, value: Any) -> None:
        self._default.set_attribute(name, value)

    def remove_attribute(self, name: str) -> None:
        self._default.remove_attribute(name)

    # ── Instances ─────────────────────────────────────────────────

    def get_instance(self, name: Any) -> Log:
        return self.factory_for_current().get_instance(name)

    def factory_for_current(self) -> LogFactory:
        """
        The factory serving the caller's current context.

        The provider runs outside every lock; a racing lookup for the same
        new context may call it twice, and the first factory stored wins.
        """
        context = current_context()
        if context is self._default_context:
            return self._default
        if context is None:
            factory = self._null_factory
            if factory is not None:
                return factory
            found = self._new_factory(None)
            with self._lock:
                if self._null_factory is None:
                    self._null_factory = found
                return self._null_factory

        factory = self._factories.get(context)
        if factory is not None:
            return factory
        check_context(context)
        found = self._new_factory(context)
        with self._factories.lock:
            factory = self._factories.get(context)
            if factory is None:
                factory = found
                self._factories.put(context, factory)
                self._pin(context, factory)
            return factory

    def _pin(self, context: Any, factory: LogFactory) -> None:
        # The table holds values weakly; the finalizer holds the factory
        # until the context is collected or released.
        key = id(context)
        previous = self._finalizers.pop(key, None)
        if previous is not None:
            previous.detach()
        if factory is self._default:
            return
        self._finalizers[key] = weakref.finalize(
            context, _context_collected, self._finalizers, key, factory
        )

    def _new_factory(self, context: Any) -> LogFactory:
        search = as_isolation_context(context)
        try:
            provider = search.load_class(PROVIDER_NAME)
        except ClassNotFoundError:
            log_diagnostic(f"No factory provider in {search!r}; using the default factory")
            return self._default
        try:
            found = provider()
        except Exception as exc:
            log_error(f"Unable to obtain a factory from {search!r}: {exc}")
            return self._default
        if found is self:
            log_diagnostic(
                f"Provider in {search!r} returned {object_id(self)} itself; "
                "using the default factory"
            )
            return self._default
        if not isinstance(found, LogFactory):
            log_error(
                f"Provider in {search!r} returned {object_id(found)}, "
                "which is not a LogFactory; using the default factory"
            )
            return self._default
        log_diagnostic(lambda: f"Delegating {search!r} to {object_id(found)}")
        return found

    # ── Release ───────────────────────────────────────────────────

    def release(self, context: Any = _ALL) -> None:
        """
        Release and forget the nested factory for ``context``. With no
        argument, behaves as release_all().
        """
        if context is _ALL:
            self.release_all()
            return
        if context is None:
            with self._lock:
                factory, self._null_factory = self._null_factory, None
        else:
            with self._factories.lock:
                factory = self._factories.remove(context)
                finalizer = self._finalizers.pop(id(context), None)
                if finalizer is not None:
                    finalizer.detach()
        if factory is not None and factory is not self._default:
            factory.release()

    def release_all(self) -> None:
        """Release every nested factory, then the default factory."""
        with self._factories.lock:
            factories = self._factories.values()
            self._factories.clear()
            for finalizer in list(self._finalizers.values()):
                finalizer.detach()
            self._finalizers.clear()
        with self._lock:
            if self._null_factory is not None:
                factories.append(self._null_factory)
                self._null_factory = None
        released: set[int] = set()
        for factory in factories:
            if id(factory) not in released and factory is not self._default:
                released.add(id(factory))
                factory.release_all()
        self._default.release_all()

    @property
    def count(self) -> int:
        return self._factories.size()


def _context_collected(finalizers: dict, key: int, factory: LogFactory) -> None:
    # Runs from the collector; must not take the table lock.
    finalizers.pop(key, None)
    factory.release()


def _load_factory_class(name: str | type) -> tuple[type, Any]:
    """Resolve the default factory class and the context that defines it."""
    if isinstance(name, type):
        factory_class, owner = name, BASE_CONTEXT
    else:
        owner = BASE_CONTEXT.find_owner(name)
        if owner is None:
            raise LogConfigurationException(
                f"Default factory class {name} cannot be found", class_name=name
            )
        try:
            factory_class = owner.load_class(name)
        except ClassNotFoundError as exc:
            raise LogConfigurationException(
                f"Default factory class {name} cannot be found", class_name=name
            ) from exc
    if not (isinstance(factory_class, type) and issubclass(factory_class, LogFactory)):
        raise LogConfigurationException(
            f"Default factory class {name} does not extend LogFactory",
            class_name=str(name),
        )
    return factory_class, owner
