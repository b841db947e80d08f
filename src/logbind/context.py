"""
Isolation contexts.

An isolation context is the unit bindings are cached by: a plugin realm, a
tenant, a test sandbox. The registry only ever compares contexts by
identity and never keeps one alive. Each IsolationContext carries:

    - a resource search path (directories holding configuration files)
    - a class namespace: names defined with ``define()``, resolved
      parent-first or child-first through the parent chain
    - an optional parent

BASE_CONTEXT is the process's own context. Its search path is the
directories on ``sys.path`` plus any added explicitly, and its namespace
falls back to importing dotted ``module.Class`` paths.

The caller's current context lives in a ContextVar, so it follows threads
and asyncio tasks:

    plugin = IsolationContext("plugin-a", search_path=[plugin_dir])
    with use_context(plugin):
        log = get_log("plugin.worker")
"""

from __future__ import annotations

import importlib
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar, Token
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

from logbind.errors import ClassNotFoundError


class IsolationContext:
    """Identity-compared isolation boundary. Never compared by value."""

    def __init__(
        self,
        name: str | None = None,
        search_path: Iterable[str | Path] = (),
        parent: Optional["IsolationContext"] = None,
        parent_first: bool = True,
        include_sys_path: bool = False,
        import_modules: bool = False,
    ) -> None:
        self.name = name or f"context-{id(self):x}"
        self.parent = parent
        self.parent_first = parent_first
        self.include_sys_path = include_sys_path
        self.import_modules = import_modules
        self._paths: list[Path] = [Path(p) for p in search_path]
        self._names: dict[str, Any] = {}
        self._lock = threading.Lock()

    # ── Search path ───────────────────────────────────────────────

    def add_path(self, path: str | Path) -> None:
        with self._lock:
            self._paths.append(Path(path))

    @property
    def search_path(self) -> tuple[Path, ...]:
        """This context's own directories (not its parents')."""
        with self._lock:
            paths = list(self._paths)
        if self.include_sys_path:
            paths.extend(Path(p) for p in sys.path if p and Path(p).is_dir())
        return tuple(paths)

    def get_resource(self, name: str) -> Path | None:
        """First resource with this name, searching parents first."""
        resources = self.get_resources(name)
        return resources[0] if resources else None

    def get_resources(self, name: str) -> list[Path]:
        """All resources with this name, ancestors' before this context's."""
        found: list[Path] = []
        if self.parent is not None:
            found.extend(self.parent.get_resources(name))
        for directory in self.search_path:
            candidate = directory / name
            try:
                if candidate.is_file() and candidate not in found:
                    found.append(candidate)
            except OSError:
                continue
        return found

    # ── Class namespace ───────────────────────────────────────────

    def define(self, name: str, obj: Any) -> None:
        """Make ``obj`` resolvable by ``name`` in this context."""
        with self._lock:
            self._names[name] = obj

    def undefine(self, name: str) -> bool:
        with self._lock:
            return self._names.pop(name, None) is not None

    def defines(self, name: str) -> bool:
        """True if ``name`` is defined directly in this context."""
        with self._lock:
            return name in self._names

    def load_class(self, name: str) -> Any:
        """
        Resolve a name through the parent chain and this context.

        Raises:
            ClassNotFoundError: if neither the chain nor (for importing
                contexts) a dotted import path yields the name.
        """
        owner = self.find_owner(name)
        if owner is None:
            raise ClassNotFoundError(name, self)
        return owner._resolve_local(name)

    def find_owner(self, name: str) -> Optional["IsolationContext"]:
        """The context whose namespace would satisfy ``load_class(name)``."""
        if self.parent_first and self.parent is not None:
            owner = self.parent.find_owner(name)
            if owner is not None:
                return owner
        if self._can_resolve_locally(name):
            return self
        if not self.parent_first and self.parent is not None:
            return self.parent.find_owner(name)
        return None

    def _can_resolve_locally(self, name: str) -> bool:
        if self.defines(name):
            return True
        if self.import_modules:
            try:
                _import_dotted(name)
            except ClassNotFoundError:
                return False
            return True
        return False

    def _resolve_local(self, name: str) -> Any:
        with self._lock:
            if name in self._names:
                return self._names[name]
        if self.import_modules:
            return _import_dotted(name, self)
        raise ClassNotFoundError(name, self)

    def __repr__(self) -> str:
        return f"IsolationContext({self.name!r})"


def _import_dotted(name: str, context: object = None) -> Any:
    """Import ``module.attr`` and return the attribute."""
    module_path, _, attr = name.rpartition(".")
    if not module_path or not attr:
        raise ClassNotFoundError(name, context)
    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise ClassNotFoundError(name, context) from exc
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ClassNotFoundError(name, context) from exc


BASE_CONTEXT = IsolationContext(
    "base",
    include_sys_path=True,
    import_modules=True,
)


# ── Current context ─────────────────────────────────────────────────

_UNSET = object()
_current: ContextVar[Any] = ContextVar("logbind_context", default=_UNSET)


def current_context() -> Any:
    """
    The caller's isolation context. BASE_CONTEXT unless one was entered;
    ``None`` if the caller explicitly entered no context.
    """
    ctx = _current.get()
    return BASE_CONTEXT if ctx is _UNSET else ctx


def set_current_context(context: Any) -> Token:
    return _current.set(context)


def reset_current_context(token: Token) -> None:
    _current.reset(token)


@contextmanager
def use_context(context: Any) -> Iterator[Any]:
    """Run the block with ``context`` as the caller's isolation context."""
    token = set_current_context(context)
    try:
        yield context
    finally:
        reset_current_context(token)


def as_isolation_context(context: Any) -> IsolationContext:
    """
    The IsolationContext to search for a handle. Foreign handles (and
    ``None``) search the base context.
    """
    if isinstance(context, IsolationContext):
        return context
    return BASE_CONTEXT


def object_id(obj: object) -> str:
    """``type.qualname@id`` string, safe for any object including None."""
    if obj is None:
        return "null"
    return f"{type(obj).__module__}.{type(obj).__qualname__}@{id(obj):x}"
