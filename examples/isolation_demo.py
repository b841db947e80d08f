"""
Isolation demo.

Shows the binding registry end to end:
1. Default binding in the base context → StdlibLog
2. A plugin context configured by its own commons-logging.properties
3. One factory per context, stable across lookups
4. Context collected → its factory released and forgotten
5. Context-local delegation with a plugin-supplied factory

Run:
    python examples/isolation_demo.py
"""

import gc
import tempfile
from pathlib import Path

from logbind import IsolationContext, LogFactoryImpl, get_factory, get_log, use_context
from logbind.config import FACTORY_PROPERTY, Settings
from logbind.delegation import ContextLocalFactory
from logbind.log.adapters import MemoryLog
from logbind.registry import PROVIDER_NAME, BindingRegistry


def main():
    print("=" * 60)
    print("  logbind — isolation demo")
    print("=" * 60)

    # ── 1. Base context ───────────────────────────────────────
    print("\n[1/5] Base context...")
    log = get_log("demo.main")
    print(f"  ✓ {log!r} from {get_factory()!r}")

    # ── 2. Plugin configured by properties file ───────────────
    print("\n[2/5] Plugin context with its own properties file...")
    with tempfile.TemporaryDirectory() as tmp:
        (Path(tmp) / "commons-logging.properties").write_text(
            "logging.log=logbind.log.adapters.MemoryLog\nowner=plugin-a\n"
        )
        plugin = IsolationContext("plugin-a", search_path=[tmp])
        with use_context(plugin):
            plugin_log = get_log("plugin.worker")
            plugin_log.info("hello from the plugin")
            factory = get_factory()
        assert isinstance(plugin_log, MemoryLog)
        print(f"  ✓ {plugin_log!r} holds {plugin_log.count} record(s)")
        print(f"  ✓ attribute owner={factory.get_attribute('owner')}")

    # ── 3. Identity stability ─────────────────────────────────
    print("\n[3/5] One factory per context...")
    with use_context(plugin):
        assert get_factory() is factory
    assert get_factory() is not factory
    print(f"  ✓ {BindingRegistry.instance().count} live context(s) cached")

    # ── 4. Reclamation ────────────────────────────────────────
    print("\n[4/5] Dropping the plugin context...")
    del plugin
    gc.collect()
    print(f"  ✓ factory released: {factory.instance_count} cached Log(s) left")
    print(f"  ✓ {BindingRegistry.instance().count} live context(s) cached")

    # ── 5. Delegation ─────────────────────────────────────────
    print("\n[5/5] Context-local delegation...")
    Settings.instance().set_property(FACTORY_PROPERTY, "ContextLocalFactory")
    BindingRegistry.reset()
    delegator = get_factory()
    assert isinstance(delegator, ContextLocalFactory)

    own = LogFactoryImpl()
    tenant = IsolationContext("tenant", parent_first=False)
    tenant.define(PROVIDER_NAME, lambda: own)
    with use_context(tenant):
        tenant_log = get_log("tenant.job")
    assert own.get_instance("tenant.job") is tenant_log
    print(f"  ✓ tenant served by {own!r}")
    print(f"  ✓ base served by {delegator.factory_for_current()!r}")

    Settings.instance().clear_property(FACTORY_PROPERTY)
    BindingRegistry.reset()

    print("\n" + "=" * 60)
    print("  Done")
    print("=" * 60)


if __name__ == "__main__":
    main()
