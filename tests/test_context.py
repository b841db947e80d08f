"""
Tests for isolation contexts.

Covers:
- Resource search (own path, parents, sys.path for the base context)
- Class namespace: define / undefine, parent-first and child-first lookup
- Dotted import fallback in the base context
- Current-context tracking with use_context()
"""

import pytest

from logbind.context import (
    BASE_CONTEXT,
    IsolationContext,
    as_isolation_context,
    current_context,
    object_id,
    use_context,
)
from logbind.errors import ClassNotFoundError


class ParentThing:
    pass


class ChildThing:
    pass


# ═══════════════════════════════════════════════════════════════════
#  Resources
# ═══════════════════════════════════════════════════════════════════

class TestResources:
    def test_own_search_path(self, tmp_path):
        (tmp_path / "a.txt").write_text("x")
        ctx = IsolationContext("r", search_path=[tmp_path])
        assert ctx.get_resource("a.txt") == tmp_path / "a.txt"
        assert ctx.get_resource("missing.txt") is None

    def test_parent_resources_first(self, tmp_path):
        parent_dir, child_dir = tmp_path / "p", tmp_path / "c"
        parent_dir.mkdir()
        child_dir.mkdir()
        (parent_dir / "a.txt").write_text("p")
        (child_dir / "a.txt").write_text("c")
        parent = IsolationContext("p", search_path=[parent_dir])
        child = IsolationContext("c", search_path=[child_dir], parent=parent)
        assert child.get_resources("a.txt") == [parent_dir / "a.txt", child_dir / "a.txt"]
        assert child.get_resource("a.txt") == parent_dir / "a.txt"

    def test_add_path(self, tmp_path):
        (tmp_path / "late.txt").write_text("x")
        ctx = IsolationContext("r")
        assert ctx.get_resource("late.txt") is None
        ctx.add_path(tmp_path)
        assert ctx.search_path == (tmp_path,)
        assert ctx.get_resource("late.txt") == tmp_path / "late.txt"

    def test_base_context_searches_sys_path(self, tmp_path, monkeypatch):
        (tmp_path / "on-sys-path.txt").write_text("x")
        monkeypatch.syspath_prepend(str(tmp_path))
        assert BASE_CONTEXT.get_resource("on-sys-path.txt") is not None


# ═══════════════════════════════════════════════════════════════════
#  Class namespace
# ═══════════════════════════════════════════════════════════════════

class TestNamespace:
    def test_define_and_load(self):
        ctx = IsolationContext("n")
        ctx.define("Thing", ChildThing)
        assert ctx.defines("Thing")
        assert ctx.load_class("Thing") is ChildThing
        assert ctx.undefine("Thing")
        assert not ctx.undefine("Thing")
        with pytest.raises(ClassNotFoundError):
            ctx.load_class("Thing")

    def test_plain_context_does_not_import(self):
        ctx = IsolationContext("n")
        with pytest.raises(ClassNotFoundError):
            ctx.load_class("logbind.factory.LogFactoryImpl")

    def test_base_context_imports(self):
        from logbind.factory import LogFactoryImpl

        assert BASE_CONTEXT.load_class("logbind.factory.LogFactoryImpl") is LogFactoryImpl

    def test_base_context_import_failures(self):
        for name in ("no.such.Module", "logbind.factory.NoSuchClass", "Bare"):
            with pytest.raises(ClassNotFoundError):
                BASE_CONTEXT.load_class(name)

    def test_parent_first(self):
        parent = IsolationContext("p")
        parent.define("Thing", ParentThing)
        child = IsolationContext("c", parent=parent)
        child.define("Thing", ChildThing)
        assert child.load_class("Thing") is ParentThing
        assert child.find_owner("Thing") is parent

    def test_child_first(self):
        parent = IsolationContext("p")
        parent.define("Thing", ParentThing)
        child = IsolationContext("c", parent=parent, parent_first=False)
        child.define("Thing", ChildThing)
        assert child.load_class("Thing") is ChildThing

    def test_child_first_falls_back_to_parent(self):
        parent = IsolationContext("p")
        parent.define("Only", ParentThing)
        child = IsolationContext("c", parent=parent, parent_first=False)
        assert child.load_class("Only") is ParentThing

    def test_child_of_base_imports_through_parent(self):
        from logbind.factory import LogFactoryImpl

        child = IsolationContext("c", parent=BASE_CONTEXT)
        assert child.load_class("logbind.factory.LogFactoryImpl") is LogFactoryImpl

    def test_error_names_context(self):
        ctx = IsolationContext("named")
        with pytest.raises(ClassNotFoundError) as info:
            ctx.load_class("Missing")
        assert info.value.name == "Missing"
        assert info.value.context is ctx


# ═══════════════════════════════════════════════════════════════════
#  Current context
# ═══════════════════════════════════════════════════════════════════

class TestCurrentContext:
    def test_defaults_to_base(self):
        assert current_context() is BASE_CONTEXT

    def test_use_context_nests_and_restores(self):
        outer, inner = IsolationContext("outer"), IsolationContext("inner")
        with use_context(outer):
            assert current_context() is outer
            with use_context(inner):
                assert current_context() is inner
            assert current_context() is outer
        assert current_context() is BASE_CONTEXT

    def test_restored_after_exception(self):
        ctx = IsolationContext("boom")
        with pytest.raises(RuntimeError):
            with use_context(ctx):
                raise RuntimeError("x")
        assert current_context() is BASE_CONTEXT

    def test_none_context(self):
        with use_context(None):
            assert current_context() is None

    def test_as_isolation_context(self):
        ctx = IsolationContext("x")
        assert as_isolation_context(ctx) is ctx
        assert as_isolation_context(None) is BASE_CONTEXT
        assert as_isolation_context(object()) is BASE_CONTEXT

    def test_object_id(self):
        assert object_id(None) == "null"
        ctx = IsolationContext("x")
        assert object_id(ctx) == f"logbind.context.IsolationContext@{id(ctx):x}"
        assert repr(ctx) == "IsolationContext('x')"
