"""
Process-wide settings and YAML configuration for logbind.

Settings is the property store every discovery tier consults first. A key
is looked up in explicit overrides, then in the environment, where the key
is upper-cased with dots turned into underscores:

    logging.factory        → LOGGING_FACTORY
    logging.factory.table  → LOGGING_FACTORY_TABLE

BindingConfig is the validated YAML form of the same keys:

    factory: logbind.factory.LogFactoryImpl
    log: logbind.log.adapters.SimpleLog
    diagnostics_dest: STDERR
    simplelog:
      defaultlog: debug
      showdatetime: true
      levels:
        myapp.db: warn

Usage:
    config = BindingConfig.from_yaml("logbind.yaml")
    Settings.instance().apply(config)
    Settings.instance().get_property("logging.factory")

If LOGBIND_CONFIG names a YAML file, it is applied when the Settings
singleton is first created.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, field_validator


# ═══════════════════════════════════════════════════════════════════
#  Property keys
# ═══════════════════════════════════════════════════════════════════

FACTORY_PROPERTY = "logging.factory"
TABLE_PROPERTY = "logging.factory.table"
LOG_PROPERTY = "logging.log"
CONTEXT_DEFAULT_FACTORY_PROPERTY = "logging.context.default_factory"
DIAGNOSTICS_DEST_PROPERTY = "logging.diagnostics.dest"
SIMPLELOG_PREFIX = "logbind.simplelog."

CONFIG_FILE_ENV = "LOGBIND_CONFIG"

_LEVEL_NAMES = {"all", "trace", "debug", "info", "warn", "warning", "error", "fatal", "off"}


def env_name(key: str) -> str:
    """Environment variable consulted for a property key."""
    return key.upper().replace(".", "_")


# ═══════════════════════════════════════════════════════════════════
#  YAML config
# ═══════════════════════════════════════════════════════════════════

class SimpleLogConfig(BaseModel):
    defaultlog: Optional[str] = None
    showlogname: Optional[bool] = None
    showShortLogname: Optional[bool] = None
    showdatetime: Optional[bool] = None
    dateTimeFormat: Optional[str] = None
    levels: Optional[dict[str, str]] = None   # logger name → level

    @field_validator("defaultlog")
    @classmethod
    def _check_default_level(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value.lower() not in _LEVEL_NAMES:
            raise ValueError(f"Unknown log level '{value}'")
        return value

    @field_validator("levels")
    @classmethod
    def _check_levels(cls, value: Optional[dict[str, str]]) -> Optional[dict[str, str]]:
        for name, level in (value or {}).items():
            if level.lower() not in _LEVEL_NAMES:
                raise ValueError(f"Unknown log level '{level}' for logger '{name}'")
        return value

    def to_properties(self) -> dict[str, str]:
        props: dict[str, str] = {}
        for key in ("defaultlog", "dateTimeFormat"):
            value = getattr(self, key)
            if value is not None:
                props[SIMPLELOG_PREFIX + key] = value
        for key in ("showlogname", "showShortLogname", "showdatetime"):
            value = getattr(self, key)
            if value is not None:
                props[SIMPLELOG_PREFIX + key] = "true" if value else "false"
        for name, level in (self.levels or {}).items():
            props[f"{SIMPLELOG_PREFIX}log.{name}"] = level
        return props


class BindingConfig(BaseModel):
    """
    Validated configuration for the binding registry.

    Every field is optional; an empty document is valid and changes nothing.
    """
    factory: Optional[str] = None
    table: Optional[str] = None
    log: Optional[str] = None
    context_default_factory: Optional[str] = None
    diagnostics_dest: Optional[str] = None
    simplelog: Optional[SimpleLogConfig] = None
    properties: Optional[dict[str, str]] = None   # raw extra properties

    source_yaml: Optional[str] = Field(None, exclude=True)

    @field_validator("factory", "table", "log", "context_default_factory")
    @classmethod
    def _check_class_name(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            raise ValueError("class name must not be blank")
        return value.strip() if value else value

    def to_properties(self) -> dict[str, str]:
        """Flatten into property keys understood by Settings."""
        props: dict[str, str] = {}
        mapping = {
            FACTORY_PROPERTY: self.factory,
            TABLE_PROPERTY: self.table,
            LOG_PROPERTY: self.log,
            CONTEXT_DEFAULT_FACTORY_PROPERTY: self.context_default_factory,
            DIAGNOSTICS_DEST_PROPERTY: self.diagnostics_dest,
        }
        for key, value in mapping.items():
            if value is not None:
                props[key] = value
        if self.simplelog is not None:
            props.update(self.simplelog.to_properties())
        if self.properties:
            props.update({str(k): str(v) for k, v in self.properties.items()})
        return props

    @classmethod
    def from_yaml(cls, path: str | Path) -> "BindingConfig":
        """Load and validate from a YAML file."""
        path = Path(path)
        raw = path.read_text(encoding="utf-8")
        data = yaml.safe_load(raw) or {}
        config = cls.model_validate(data)
        config.source_yaml = raw
        return config

    @classmethod
    def from_yaml_string(cls, yaml_string: str) -> "BindingConfig":
        """Load and validate from a YAML string."""
        data = yaml.safe_load(yaml_string) or {}
        config = cls.model_validate(data)
        config.source_yaml = yaml_string
        return config

    @classmethod
    def from_dict(cls, data: dict) -> "BindingConfig":
        """Load and validate from a dict."""
        return cls.model_validate(data)

    def to_dict(self, exclude_none: bool = True) -> dict:
        return self.model_dump(exclude_none=exclude_none)


# ═══════════════════════════════════════════════════════════════════
#  Settings store
# ═══════════════════════════════════════════════════════════════════

class Settings:
    """
    Process-wide property store. Singleton.

    Explicit overrides win over the environment; ``None`` means unset.
    """

    _instance: Optional["Settings"] = None
    _lock = threading.Lock()

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._overrides: dict[str, str] = {}
        self._environ = environ  # None → os.environ, read at lookup time
        self._props_lock = threading.Lock()

    @classmethod
    def instance(cls) -> "Settings":
        """Get or create the singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    settings = cls()
                    config_path = os.environ.get(CONFIG_FILE_ENV)
                    if config_path:
                        settings.apply(BindingConfig.from_yaml(config_path))
                    cls._instance = settings
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset singleton. For testing only."""
        with cls._lock:
            cls._instance = None

    # ── Lookup ────────────────────────────────────────────────────

    def get_property(self, key: str, default: str | None = None) -> str | None:
        with self._props_lock:
            if key in self._overrides:
                return self._overrides[key]
        environ = self._environ if self._environ is not None else os.environ
        value = environ.get(env_name(key))
        return default if value is None else value

    def has_property(self, key: str) -> bool:
        return self.get_property(key) is not None

    # ── Mutation ──────────────────────────────────────────────────

    def set_property(self, key: str, value: Any) -> None:
        """Set an override. ``None`` removes it."""
        with self._props_lock:
            if value is None:
                self._overrides.pop(key, None)
            else:
                self._overrides[key] = str(value)

    def clear_property(self, key: str) -> None:
        self.set_property(key, None)

    def apply(self, config: BindingConfig) -> int:
        """Apply a BindingConfig as overrides. Returns count of keys set."""
        props = config.to_properties()
        for key, value in props.items():
            self.set_property(key, value)
        return len(props)

    def overrides(self) -> dict[str, str]:
        """Snapshot of the explicit overrides."""
        with self._props_lock:
            return dict(self._overrides)
