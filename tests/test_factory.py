"""
Tests for the default binding factory.

Covers:
- Log naming from strings, classes, modules and instances
- Instance caching and release
- Log class selection: attribute > setting > default
- Bad Log class configuration
- The set_log_factory hook
"""

import logging

import pytest

from logbind.config import LOG_PROPERTY, Settings, env_name
from logbind.errors import LogConfigurationException
from logbind.factory import LOG_DEFAULT, LogFactoryImpl, log_name
from logbind.log.adapters import MemoryLog, NoOpLog, SimpleLog, StdlibLog
from logbind.registry import BindingRegistry


@pytest.fixture(autouse=True)
def reset_singletons(monkeypatch):
    monkeypatch.delenv(env_name(LOG_PROPERTY), raising=False)
    monkeypatch.delenv("LOGBIND_CONFIG", raising=False)
    Settings.reset()
    yield
    BindingRegistry.reset()
    Settings.reset()


@pytest.fixture
def factory():
    return LogFactoryImpl()


class Widget:
    pass


# ═══════════════════════════════════════════════════════════════════
#  Naming
# ═══════════════════════════════════════════════════════════════════

class TestLogName:
    def test_string(self):
        assert log_name("a.b") == "a.b"

    def test_class(self):
        assert log_name(Widget) == f"{__name__}.Widget"

    def test_instance(self):
        assert log_name(Widget()) == f"{__name__}.Widget"

    def test_module(self):
        assert log_name(logging) == "logging"


# ═══════════════════════════════════════════════════════════════════
#  Instances
# ═══════════════════════════════════════════════════════════════════

class TestInstances:
    def test_default_log_class(self, factory):
        assert LOG_DEFAULT == "logbind.log.adapters.StdlibLog"
        assert isinstance(factory.get_instance("x"), StdlibLog)

    def test_cached_by_name(self, factory):
        log = factory.get_instance("x")
        assert factory.get_instance("x") is log
        assert factory.get_instance(Widget) is factory.get_instance(f"{__name__}.Widget")
        assert factory.instance_count == 2

    def test_release_drops_instances(self, factory):
        log = factory.get_instance("x")
        factory.release()
        assert factory.instance_count == 0
        assert factory.get_instance("x") is not log

    def test_release_all(self, factory):
        factory.get_instance("x")
        factory.release_all()
        assert factory.instance_count == 0

    def test_repr(self, factory):
        assert repr(factory).startswith("LogFactoryImpl@")


# ═══════════════════════════════════════════════════════════════════
#  Attributes and Log class selection
# ═══════════════════════════════════════════════════════════════════

class TestLogClass:
    def test_attributes(self, factory):
        factory.set_attribute("a", "1")
        assert factory.get_attribute("a") == "1"
        assert factory.get_attribute_names() == ["a"]
        factory.set_attribute("a", None)
        assert factory.get_attribute("a") is None
        factory.set_attribute("b", "2")
        factory.remove_attribute("b")
        assert factory.get_attribute_names() == []

    def test_attribute_wins(self, factory):
        Settings.instance().set_property(LOG_PROPERTY, "logbind.log.adapters.NoOpLog")
        factory.set_attribute(LOG_PROPERTY, "logbind.log.adapters.SimpleLog")
        assert isinstance(factory.get_instance("x"), SimpleLog)

    def test_setting_used_without_attribute(self, factory):
        Settings.instance().set_property(LOG_PROPERTY, "logbind.log.adapters.NoOpLog")
        assert isinstance(factory.get_instance("x"), NoOpLog)
        assert factory.get_log_class_name() == "logbind.log.adapters.NoOpLog"

    def test_changing_attribute_resets_class(self, factory):
        assert factory.get_log_class() is StdlibLog
        factory.set_attribute(LOG_PROPERTY, "logbind.log.adapters.NoOpLog")
        assert factory.get_log_class() is NoOpLog

    def test_short_name_after_defaults(self, factory):
        BindingRegistry.instance()
        factory.set_attribute(LOG_PROPERTY, "MemoryLog")
        assert isinstance(factory.get_instance("x"), MemoryLog)

    def test_missing_class(self, factory):
        factory.set_attribute(LOG_PROPERTY, "no.such.Log")
        with pytest.raises(LogConfigurationException, match="cannot be found") as info:
            factory.get_instance("x")
        assert info.value.class_name == "no.such.Log"

    def test_not_a_log(self, factory):
        factory.set_attribute(LOG_PROPERTY, "logbind.factory.LogFactoryImpl")
        with pytest.raises(LogConfigurationException, match="does not implement Log"):
            factory.get_instance("x")

    def test_set_log_factory_hook(self, factory):
        factory.set_attribute(LOG_PROPERTY, "logbind.log.adapters.MemoryLog")
        log = factory.get_instance("x")
        assert log.factory is factory
