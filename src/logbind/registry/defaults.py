"""
Built-in names for the base context.

Registers short names for the shipped factories and adapters, so settings
and properties files may say ``SimpleLog`` instead of
``logbind.log.adapters.SimpleLog``, and publishes the base context's
factory provider.

Usage:
    from logbind.registry.defaults import register_defaults
    register_defaults()
"""

from __future__ import annotations

import importlib

from logbind.context import BASE_CONTEXT, IsolationContext, use_context
from logbind.registry import PROVIDER_NAME, BindingRegistry


BUILTIN_NAMES = {
    "LogFactoryImpl": {"module": "logbind.factory", "class": "LogFactoryImpl"},
    "ContextLocalFactory": {"module": "logbind.delegation", "class": "ContextLocalFactory"},
    "NoOpLog": {"module": "logbind.log.adapters", "class": "NoOpLog"},
    "StdlibLog": {"module": "logbind.log.adapters", "class": "StdlibLog"},
    "SimpleLog": {"module": "logbind.log.adapters", "class": "SimpleLog"},
    "MemoryLog": {"module": "logbind.log.adapters", "class": "MemoryLog"},
}


def base_factory_provider():
    """The base context's own factory, as a nested context would see it."""
    with use_context(BASE_CONTEXT):
        return BindingRegistry.instance().get_factory()


def register_defaults(context: IsolationContext | None = None) -> int:
    """
    Define every built-in name, plus the factory provider, in ``context``.

    Args:
        context: Context to populate. Defaults to the base context.

    Returns count of names defined.
    """
    if context is None:
        context = BASE_CONTEXT
    count = 0
    for short_name, entry in BUILTIN_NAMES.items():
        module = importlib.import_module(entry["module"])
        context.define(short_name, getattr(module, entry["class"]))
        count += 1
    if context is BASE_CONTEXT:
        context.define(PROVIDER_NAME, base_factory_provider)
        count += 1
    return count
