"""
Weak-keyed scoped cache.

Maps isolation-context handles to binding factories while holding *both*
sides weakly, so a cached binding never keeps its context alive. Entries
whose key or value has been collected are invisible to every read and are
removed by the next purge.

Keys and values must be weak-referenceable. ``None`` is rejected on put.

Purge policy:
    - get() and contains_key() never purge; a dead entry is a miss
    - put() and remove() purge lazily: a full purge every
      MAX_CHANGES_BEFORE_PURGE changes, one queued dead entry every
      PARTIAL_PURGE_COUNT changes
    - size(), keys(), values(), items(), is_empty() and repr() purge fully
      first

Mutations are serialized by ``lock`` (reentrant). Collector callbacks only
append to a deque and never take the lock.
"""

from __future__ import annotations

import threading
import weakref
from collections import deque
from typing import Any, Iterable, Iterator, Mapping


MAX_CHANGES_BEFORE_PURGE = 100
PARTIAL_PURGE_COUNT = 10


class _WeakCell(weakref.ref):
    """Weak reference that remembers the key cell of its table entry."""

    cell: "_Referenced | None" = None


class _Referenced:
    """
    Hashable weak wrapper around a key.

    The hash is computed once from the live referent so the entry can still
    be found and removed after the referent is collected. Two cells are
    equal iff both referents are alive and equal, or both are dead and the
    hashes match. A dead cell never equals a live one.
    """

    __slots__ = ("_ref", "_hash")

    def __init__(self, referent: Any, queue: deque | None = None) -> None:
        if queue is None:
            self._ref = weakref.ref(referent)
        else:
            self._ref = _WeakCell(referent, queue.append)
            self._ref.cell = self
        self._hash = hash(referent)

    def get(self) -> Any:
        return self._ref()

    def __hash__(self) -> int:
        return self._hash

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, _Referenced):
            return NotImplemented
        mine = self._ref()
        theirs = other._ref()
        if mine is None or theirs is None:
            return mine is None and theirs is None and self._hash == other._hash
        return mine is theirs or mine == theirs


def _probe(key: Any) -> _Referenced | None:
    """Lookup cell for ``key``; None if nothing could be stored under it."""
    if key is None:
        return None
    try:
        return _Referenced(key)
    except TypeError:
        return None


class WeakScopedCache:
    """Mapping with weakly held keys and values. Thread-safe."""

    def __init__(self, initial: Mapping[Any, Any] | None = None) -> None:
        self._table: dict[_Referenced, weakref.ref] = {}
        self._queue: deque = deque()
        self._change_count = 0
        self.lock = threading.RLock()
        if initial:
            self.put_all(initial)

    # ── Reads (no purge) ──────────────────────────────────────────

    def get(self, key: Any, default: Any = None) -> Any:
        probe = _probe(key)
        if probe is None:
            return default
        value_ref = self._table.get(probe)
        if value_ref is None:
            return default
        value = value_ref()
        return default if value is None else value

    def contains_key(self, key: Any) -> bool:
        return self.get(key) is not None

    def __contains__(self, key: Any) -> bool:
        return self.contains_key(key)

    # ── Mutations ─────────────────────────────────────────────────

    def put(self, key: Any, value: Any) -> Any:
        """
        Insert or replace. Returns the previous live value, or None.

        Raises:
            TypeError: if key or value is None, or not weak-referenceable.
        """
        if key is None:
            raise TypeError("key must not be None")
        if value is None:
            raise TypeError("value must not be None")
        cell = _Referenced(key, self._queue)
        value_ref = _WeakCell(value, self._queue.append)
        value_ref.cell = cell
        with self.lock:
            self._maybe_purge()
            previous_ref = self._table.pop(cell, None)
            self._table[cell] = value_ref
        return previous_ref() if previous_ref is not None else None

    def put_all(self, entries: Mapping[Any, Any] | Iterable[tuple[Any, Any]]) -> None:
        items = entries.items() if isinstance(entries, Mapping) else entries
        for key, value in items:
            self.put(key, value)

    def remove(self, key: Any) -> Any:
        """Remove ``key``. Returns its live value, or None."""
        probe = _probe(key)
        if probe is None:
            return None
        with self.lock:
            self._maybe_purge()
            value_ref = self._table.pop(probe, None)
        return value_ref() if value_ref is not None else None

    def clear(self) -> None:
        with self.lock:
            self._table.clear()
            self._queue.clear()
            self._change_count = 0

    # ── Purging ───────────────────────────────────────────────────

    def _maybe_purge(self) -> None:
        """Lazy purge on mutation. Caller holds the lock."""
        self._change_count += 1
        if self._change_count > MAX_CHANGES_BEFORE_PURGE:
            self._purge_locked()
            self._change_count = 0
        elif self._change_count % PARTIAL_PURGE_COUNT == 0:
            self._purge_one_locked()

    def purge(self) -> int:
        """Remove every dead entry. Returns count removed."""
        with self.lock:
            return self._purge_locked()

    def _purge_locked(self) -> int:
        self._queue.clear()
        dead = [
            cell for cell, value_ref in list(self._table.items())
            if cell.get() is None or value_ref() is None
        ]
        for cell in dead:
            self._pop_cell(cell)
        return len(dead)

    def _purge_one_locked(self) -> None:
        while self._queue:
            try:
                ref = self._queue.popleft()
            except IndexError:
                return
            cell = ref.cell
            if cell is None:
                continue
            value_ref = self._table.get(cell)
            if value_ref is None:
                continue
            if cell.get() is None or value_ref() is None:
                self._pop_cell(cell)
                return

    def _pop_cell(self, cell: _Referenced) -> None:
        # A dead cell may match another dead cell with the same hash; either
        # way a dead entry goes.
        self._table.pop(cell, None)

    # ── Enumeration (full purge first) ────────────────────────────

    def size(self) -> int:
        with self.lock:
            self._purge_locked()
            return len(self._table)

    def __len__(self) -> int:
        return self.size()

    def is_empty(self) -> bool:
        return self.size() == 0

    def items(self) -> list[tuple[Any, Any]]:
        with self.lock:
            self._purge_locked()
            snapshot = list(self._table.items())
        result = []
        for cell, value_ref in snapshot:
            key = cell.get()
            value = value_ref()
            if key is not None and value is not None:
                result.append((key, value))
        return result

    def keys(self) -> list[Any]:
        return [key for key, _ in self.items()]

    def values(self) -> list[Any]:
        return [value for _, value in self.items()]

    def contains_value(self, value: Any) -> bool:
        return any(v is value or v == value for v in self.values())

    def __iter__(self) -> Iterator[Any]:
        return iter(self.keys())

    def __repr__(self) -> str:
        entries = ", ".join(f"{k!r}: {v!r}" for k, v in self.items())
        return f"{type(self).__name__}({{{entries}}})"
