"""
Binding factory discovery.

Decides which LogFactory class serves an isolation context. Sources are
consulted in a fixed order and the first usable candidate wins:

    1. the ``logging.factory`` setting
    2. the service descriptor ``META-INF/services/logbind.LogFactory``
    3. the ``logging.factory`` key of ``commons-logging.properties``
    4. the built-in default, ``logbind.factory.LogFactoryImpl``

Every pair in the chosen properties file travels with the result and is
applied to the factory as attributes, whichever source won.

Usage:
    resolution = DiscoveryResolver().resolve(context)
    resolution.factory      # constructed LogFactory
    resolution.tier         # "setting" | "service" | "properties" | "default"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from logbind.config import FACTORY_PROPERTY, Settings
from logbind.context import BASE_CONTEXT, IsolationContext, as_isolation_context
from logbind.diagnostics import log_diagnostic, log_hierarchy
from logbind.errors import ClassNotFoundError, LogConfigurationException
from logbind.factory import LogFactory
from logbind.properties import read_properties


SERVICE_ID = "META-INF/services/logbind.LogFactory"
FACTORY_PROPERTIES = "commons-logging.properties"
FACTORY_DEFAULT = "logbind.factory.LogFactoryImpl"
PRIORITY_KEY = "priority"
USE_CONTEXT_KEY = "use_context"

# Broken service descriptor entries skipped before the tier gives up
MAX_BROKEN_SERVICES = 3


@dataclass
class Resolution:
    """Outcome of one discovery run."""

    class_name: str
    factory: LogFactory
    tier: str
    properties: dict[str, str] = field(default_factory=dict)


class DiscoveryResolver:
    """Runs the four discovery tiers for one context at a time."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings or Settings.instance()

    # ── Entry point ───────────────────────────────────────────────

    def resolve(self, context: Any) -> Resolution:
        """
        Pick and construct the factory for ``context``.

        Raises:
            LogConfigurationException: if a candidate fails while resolving
                against the base context.
        """
        search = as_isolation_context(context)
        log_hierarchy("[LOOKUP] ", context)

        props = self.get_configuration_file(search, FACTORY_PROPERTIES) or {}
        loader: IsolationContext = search
        if _is_false(props.get(USE_CONTEXT_KEY)):
            log_diagnostic(
                f"[LOOKUP] {USE_CONTEXT_KEY}=false; loading factory classes "
                f"from the base context instead of {search!r}"
            )
            loader = BASE_CONTEXT

        found = (
            self._from_setting(loader)
            or self._from_service(loader)
            or self._from_properties(props, loader)
        )
        if found is None:
            log_diagnostic(
                f"[LOOKUP] Loading the default factory '{FACTORY_DEFAULT}' "
                "from the base context"
            )
            found = (FACTORY_DEFAULT, self.create_factory(FACTORY_DEFAULT, BASE_CONTEXT), "default")

        class_name, factory, tier = found
        log_diagnostic(lambda: f"Created {factory!r} ({tier}) to manage {search!r}")
        return Resolution(class_name, factory, tier, dict(props))

    # ── Tiers ─────────────────────────────────────────────────────

    def _from_setting(self, loader: IsolationContext) -> Optional[tuple]:
        log_diagnostic(f"[LOOKUP] Looking for setting [{FACTORY_PROPERTY}]...")
        name = self.settings.get_property(FACTORY_PROPERTY)
        if not name:
            log_diagnostic(f"[LOOKUP] No setting [{FACTORY_PROPERTY}] defined.")
            return None
        log_diagnostic(f"[LOOKUP] Setting {FACTORY_PROPERTY} names '{name}'")
        factory = self.create_factory(name, loader)
        return (name, factory, "setting") if factory is not None else None

    def _from_service(self, loader: IsolationContext) -> Optional[tuple]:
        log_diagnostic(f"[LOOKUP] Looking for service descriptor {SERVICE_ID}...")
        broken = 0
        for name in self.service_names(loader):
            try:
                factory = self.create_factory(name, loader)
            except LogConfigurationException as exc:
                factory = None
                log_diagnostic(f"[LOOKUP] Service entry '{name}' failed: {exc}")
            if factory is not None:
                return name, factory, "service"
            broken += 1
            if broken >= MAX_BROKEN_SERVICES:
                log_diagnostic("[LOOKUP] Too many broken service entries; giving up.")
                break
        return None

    def _from_properties(self, props: dict[str, str], loader: IsolationContext) -> Optional[tuple]:
        if not props:
            log_diagnostic("[LOOKUP] No properties file available.")
            return None
        name = props.get(FACTORY_PROPERTY)
        if not name:
            log_diagnostic(f"[LOOKUP] Properties file has no {FACTORY_PROPERTY} entry.")
            return None
        log_diagnostic(f"[LOOKUP] Properties file names '{name}'")
        factory = self.create_factory(name, loader)
        return (name, factory, "properties") if factory is not None else None

    # ── Sources ───────────────────────────────────────────────────

    def service_names(self, context: IsolationContext) -> list[str]:
        """Class names listed by every service descriptor, in search order."""
        names: list[str] = []
        for resource in context.get_resources(SERVICE_ID):
            try:
                text = resource.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                log_diagnostic(f"[LOOKUP] Unable to read {resource}: {exc}")
                continue
            for line in text.splitlines():
                entry = line.split("#", 1)[0].strip()
                if entry and entry not in names:
                    names.append(entry)
        return names

    def get_configuration_file(self, context: IsolationContext, file_name: str) -> dict[str, str] | None:
        """
        Properties from the highest-``priority`` file named ``file_name``.

        Ties go to the first file found. Files that cannot be read are
        skipped. Returns None if no file was usable.
        """
        best: dict[str, str] | None = None
        best_priority = 0.0
        best_path: Path | None = None
        for path in context.get_resources(file_name):
            props = read_properties(path)
            if props is None:
                log_diagnostic(f"[LOOKUP] Unable to read {path}; skipped")
                continue
            priority = _priority(props)
            if best is None or priority > best_priority:
                best, best_priority, best_path = props, priority, path
                log_diagnostic(f"[LOOKUP] Properties file {path} with priority {priority} selected")
            else:
                log_diagnostic(
                    f"[LOOKUP] Properties file {path} with priority {priority} "
                    f"does not override {best_path}"
                )
        return best

    # ── Construction ──────────────────────────────────────────────

    def create_factory(self, name: str, context: Any) -> LogFactory | None:
        """
        Construct factory ``name`` through ``context``.

        A failure in any context other than the base context is retried in
        the base context; if that fails too the candidate is unusable and
        None is returned. A failure in the base context itself is raised.
        """
        target = as_isolation_context(context)
        try:
            return self._construct(name, target)
        except LogConfigurationException as exc:
            if target is BASE_CONTEXT:
                log_diagnostic(f"Unable to create factory '{name}': {exc}")
                raise
            log_diagnostic(f"Unable to create '{name}' via {target!r}: {exc}; trying the base context")
        try:
            return self._construct(name, BASE_CONTEXT)
        except LogConfigurationException as exc:
            log_diagnostic(f"Factory '{name}' is unusable: {exc}")
            return None

    @staticmethod
    def _construct(name: str, context: IsolationContext) -> LogFactory:
        try:
            target = context.load_class(name)
        except ClassNotFoundError as exc:
            raise LogConfigurationException(
                f"Factory class {name} cannot be found", class_name=name
            ) from exc
        if isinstance(target, type) and not issubclass(target, LogFactory):
            raise LogConfigurationException(
                f"The chosen factory class '{name}' does not extend LogFactory",
                class_name=name,
            )
        try:
            factory = target()
        except Exception as exc:
            raise LogConfigurationException(
                f"Unable to construct factory {name}: {exc}", class_name=name
            ) from exc
        if not isinstance(factory, LogFactory):
            raise LogConfigurationException(
                f"The chosen factory class '{name}' does not extend LogFactory",
                class_name=name,
            )
        log_diagnostic(lambda: f"Loaded factory '{name}' from {context!r}")
        return factory


def _priority(props: dict[str, str]) -> float:
    raw = props.get(PRIORITY_KEY)
    if raw is None:
        return 0.0
    try:
        return float(raw)
    except ValueError:
        return 0.0


def _is_false(value: str | None) -> bool:
    return value is not None and value.strip().lower() == "false"
