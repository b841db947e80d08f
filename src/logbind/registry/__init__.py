"""
Binding Registry.

Hands out one binding factory per isolation context and never keeps a
context alive. Factories are found by discovery on the first lookup for a
context and cached in a WeakScopedCache keyed by the context.

Usage:
    registry = BindingRegistry.instance()
    log = registry.get_log("myapp.worker")
    factory = registry.get_factory()

    with use_context(plugin):
        registry.get_log("plugin.task")   # plugin's own factory

    registry.release(plugin)              # drop the plugin's factory

A cached factory is pinned to its context with ``weakref.finalize``: it
lives exactly as long as the context, and is released when the context is
collected. The ``None`` context has its own strong slot.
"""

from __future__ import annotations

import threading
import weakref
from typing import Any, Optional

from logbind.cache import WeakScopedCache
from logbind.config import TABLE_PROPERTY, Settings
from logbind.context import BASE_CONTEXT, current_context, object_id
from logbind.diagnostics import log_diagnostic, log_error
from logbind.discovery import DiscoveryResolver, Resolution
from logbind.errors import ClassNotFoundError, LogConfigurationException
from logbind.factory import LogFactory
from logbind.log.adapters import Log


# Name under which a context publishes its own factory provider
PROVIDER_NAME = "logbind.LogFactory.get_factory"


class BindingRegistry:
    """
    Process-wide context→factory registry. Singleton.

    Thread-safe: get-or-create runs under the cache's own lock, so racing
    threads asking for the same new context observe one factory.
    """

    _instance: Optional["BindingRegistry"] = None
    _lock = threading.Lock()

    def __init__(self, resolver: DiscoveryResolver | None = None) -> None:
        self._resolver = resolver or DiscoveryResolver()
        self._cache = create_table()
        self._null_factory: LogFactory | None = None
        self._finalizers: dict[int, weakref.finalize] = {}

    @classmethod
    def instance(cls) -> "BindingRegistry":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    from logbind.registry.defaults import register_defaults

                    registry = cls()
                    register_defaults()
                    cls._instance = registry
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Release every factory and drop the singleton. For testing only."""
        with cls._lock:
            if cls._instance is not None:
                cls._instance.release_all()
            cls._instance = None

    @property
    def cache(self) -> WeakScopedCache:
        return self._cache

    # ── Lookup ────────────────────────────────────────────────────

    def get_factory(self) -> LogFactory:
        """
        The factory for the caller's current context, created on first use.

        Raises:
            LogConfigurationException: if no usable factory can be built.
        """
        context = current_context()
        if context is None:
            return self._get_null_factory()
        check_context(context)

        factory = self._cache.get(context)
        if factory is not None:
            return factory

        with self._cache.lock:
            factory = self._cache.get(context)
            if factory is not None:
                return factory
            resolution = self._resolver.resolve(context)
            self._install(context, resolution)
            return resolution.factory

    def get_log(self, name: Any) -> Log:
        """Named Log from the current context's factory."""
        return self.get_factory().get_instance(name)

    def factory_for(self, context: Any) -> LogFactory | None:
        """Cached factory for ``context`` without creating one."""
        if context is None:
            return self._null_factory
        return self._cache.get(context)

    def _get_null_factory(self) -> LogFactory:
        with self._cache.lock:
            if self._null_factory is None:
                resolution = self._resolver.resolve(None)
                _apply_properties(resolution)
                self._null_factory = resolution.factory
            return self._null_factory

    def _install(self, context: Any, resolution: Resolution) -> None:
        """Cache the factory, pin it to its context, apply attributes."""
        factory = resolution.factory
        self._cache.put(context, factory)
        key = id(context)
        previous = self._finalizers.pop(key, None)
        if previous is not None:
            previous.detach()
        self._finalizers[key] = weakref.finalize(
            context, _context_collected, self._finalizers, key, factory
        )
        _apply_properties(resolution)
        log_diagnostic(
            lambda: f"Cached {object_id(factory)} for context {object_id(context)}"
        )

    # ── Release ───────────────────────────────────────────────────

    def release(self, context: Any) -> None:
        """Release and forget the factory cached for ``context``."""
        log_diagnostic(lambda: f"Releasing factory for context {object_id(context)}")
        with self._cache.lock:
            if context is None:
                factory, self._null_factory = self._null_factory, None
            else:
                factory = self._cache.remove(context)
                finalizer = self._finalizers.pop(id(context), None)
                if finalizer is not None:
                    finalizer.detach()
        if factory is not None:
            factory.release()

    def release_all(self) -> None:
        """Release every cached factory, including the ``None`` slot."""
        log_diagnostic("Releasing factory for all contexts")
        with self._cache.lock:
            factories = self._cache.values()
            self._cache.clear()
            for finalizer in list(self._finalizers.values()):
                finalizer.detach()
            self._finalizers.clear()
            if self._null_factory is not None:
                factories.append(self._null_factory)
                self._null_factory = None
        for factory in factories:
            factory.release()

    @property
    def count(self) -> int:
        """Live cached factories, not counting the ``None`` slot."""
        return self._cache.size()


def check_context(context: Any) -> None:
    """Reject a context that cannot be held weakly."""
    try:
        weakref.ref(context)
    except TypeError as exc:
        raise LogConfigurationException(
            f"Context {object_id(context)} cannot be weakly referenced; "
            "use an IsolationContext or another weak-referenceable object"
        ) from exc


def _context_collected(finalizers: dict, key: int, factory: LogFactory) -> None:
    # Runs from the collector; must not take the cache lock.
    finalizers.pop(key, None)
    factory.release()


def _apply_properties(resolution: Resolution) -> None:
    for name, value in resolution.properties.items():
        resolution.factory.set_attribute(name, value)


def create_table() -> WeakScopedCache:
    """
    A new table: the class named by ``logging.factory.table`` when set and
    usable, otherwise a plain WeakScopedCache.
    """
    name = Settings.instance().get_property(TABLE_PROPERTY)
    if not name:
        return WeakScopedCache()
    try:
        table_class = BASE_CONTEXT.load_class(name)
    except ClassNotFoundError:
        log_error(
            f"Unable to load alternate table '{name}' named by {TABLE_PROPERTY}; "
            "using the default table"
        )
        return WeakScopedCache()
    if not (isinstance(table_class, type) and issubclass(table_class, WeakScopedCache)):
        log_error(
            f"Alternate table '{name}' named by {TABLE_PROPERTY} is not a "
            "WeakScopedCache; using the default table"
        )
        return WeakScopedCache()
    log_diagnostic(f"Using alternate table '{name}'")
    return table_class()


# ── Module-level conveniences ───────────────────────────────────────

def get_factory() -> LogFactory:
    return BindingRegistry.instance().get_factory()


def get_log(name: Any) -> Log:
    return BindingRegistry.instance().get_log(name)


def release(context: Any) -> None:
    BindingRegistry.instance().release(context)


def release_all() -> None:
    BindingRegistry.instance().release_all()
