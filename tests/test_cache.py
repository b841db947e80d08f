"""
Tests for the weak-keyed scoped cache.

Covers:
- Round trip (put / get / remove / enumeration)
- Null and non-weak-referenceable rejection
- Reclamation of entries whose key or value is collected
- Dead entries never matching live lookup keys
- Lazy purge on mutation
- Concurrent put storms
"""

import gc
import threading
import time

import pytest

from logbind.cache import MAX_CHANGES_BEFORE_PURGE, WeakScopedCache


class Key:
    def __init__(self, label: str):
        self.label = label

    def __repr__(self):
        return f"Key({self.label!r})"


class EqKey(Key):
    """Key compared by label instead of identity."""

    def __eq__(self, other):
        return isinstance(other, EqKey) and other.label == self.label

    def __hash__(self):
        return hash(self.label)


class Value:
    def __init__(self, label: str = ""):
        self.label = label

    def __repr__(self):
        return f"Value({self.label!r})"


def collect_until(predicate, attempts: int = 20) -> bool:
    """Force collection until ``predicate`` holds or attempts run out."""
    for _ in range(attempts):
        gc.collect()
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def cache():
    return WeakScopedCache()


# ═══════════════════════════════════════════════════════════════════
#  Round trip
# ═══════════════════════════════════════════════════════════════════

class TestRoundTrip:
    def test_put_then_get(self, cache):
        key, value = Key("a"), Value("a")
        assert cache.put(key, value) is None
        assert cache.get(key) is value
        assert cache.contains_key(key)
        assert key in cache
        assert cache.size() == 1
        assert len(cache) == 1

    def test_put_returns_previous_value(self, cache):
        key, first, second = Key("a"), Value("1"), Value("2")
        cache.put(key, first)
        assert cache.put(key, second) is first
        assert cache.get(key) is second
        assert cache.size() == 1

    def test_get_missing_returns_default(self, cache):
        assert cache.get(Key("missing")) is None
        sentinel = Value()
        assert cache.get(Key("missing"), sentinel) is sentinel

    def test_get_unstorable_key_is_a_miss(self, cache):
        assert cache.get(5) is None
        assert cache.get(None) is None
        assert not cache.contains_key("text")

    def test_remove(self, cache):
        key, value = Key("a"), Value()
        cache.put(key, value)
        assert cache.remove(key) is value
        assert cache.get(key) is None
        assert cache.remove(key) is None
        assert cache.is_empty()

    def test_enumeration(self, cache):
        keys = [Key(str(i)) for i in range(3)]
        values = [Value(str(i)) for i in range(3)]
        for k, v in zip(keys, values):
            cache.put(k, v)
        assert set(map(id, cache.keys())) == set(map(id, keys))
        assert set(map(id, cache.values())) == set(map(id, values))
        assert len(cache.items()) == 3
        assert set(map(id, iter(cache))) == set(map(id, keys))
        assert cache.contains_value(values[1])
        assert not cache.contains_value(Value("other"))

    def test_put_all_and_initial_mapping(self):
        k1, k2, v1, v2 = Key("1"), Key("2"), Value("1"), Value("2")
        cache = WeakScopedCache({k1: v1})
        cache.put_all([(k2, v2)])
        assert cache.get(k1) is v1
        assert cache.get(k2) is v2

    def test_equal_keys_share_an_entry(self, cache):
        value = Value()
        first = EqKey("same")
        cache.put(first, value)
        assert cache.get(EqKey("same")) is value

    def test_clear(self, cache):
        key = Key("a")
        value = Value()
        cache.put(key, value)
        cache.clear()
        assert cache.is_empty()
        assert cache.get(key) is None

    def test_repr_lists_entries(self, cache):
        key, value = Key("a"), Value("v")
        cache.put(key, value)
        assert "Key('a')" in repr(cache)
        assert "Value('v')" in repr(cache)


# ═══════════════════════════════════════════════════════════════════
#  Contract violations
# ═══════════════════════════════════════════════════════════════════

class TestRejection:
    def test_none_key_rejected(self, cache):
        with pytest.raises(TypeError):
            cache.put(None, Value())
        assert cache.size() == 0

    def test_none_value_rejected(self, cache):
        with pytest.raises(TypeError):
            cache.put(Key("a"), None)
        assert cache.size() == 0

    def test_unreferenceable_key_rejected(self, cache):
        with pytest.raises(TypeError):
            cache.put(42, Value())
        assert cache.size() == 0


# ═══════════════════════════════════════════════════════════════════
#  Reclamation
# ═══════════════════════════════════════════════════════════════════

class TestReclamation:
    def test_entry_disappears_when_key_collected(self, cache):
        value = Value()
        key = Key("temp")
        cache.put(key, value)
        del key
        assert collect_until(lambda: cache.size() == 0)
        assert cache.values() == []

    def test_only_collected_keys_disappear(self, cache):
        values = [Value(str(i)) for i in range(3)]
        keys = [Key(str(i)) for i in range(3)]
        for key, value in zip(keys, values):
            cache.put(key, value)
        assert cache.size() == 3

        survivor = keys[2]
        del keys
        assert collect_until(lambda: cache.size() == 1)
        assert cache.get(survivor) is values[2]
        assert cache.keys() == [survivor]

    def test_entry_disappears_when_value_collected(self, cache):
        key = Key("a")
        value = Value()
        cache.put(key, value)
        del value
        assert collect_until(lambda: cache.get(key) is None)
        assert cache.size() == 0

    def test_cache_does_not_keep_key_alive(self, cache):
        import weakref

        key = Key("a")
        value = Value()
        tracker = weakref.ref(key)
        cache.put(key, value)
        del key
        assert collect_until(lambda: tracker() is None)

    def test_dead_entry_never_matches_live_key(self, cache):
        value = Value()
        old = EqKey("shared")
        cache.put(old, value)
        del old
        assert collect_until(lambda: cache.get(EqKey("shared")) is None)

    def test_mutations_purge_dead_entries(self, cache):
        keep = Value()
        for i in range(5):
            cache.put(Key(str(i)), keep)     # keys die immediately
        live = Key("live")
        for _ in range(MAX_CHANGES_BEFORE_PURGE + 10):
            cache.put(live, keep)
        gc.collect()
        assert len(cache._table) == 1

    def test_purge_returns_removed_count(self, cache):
        keep = Value()
        key = Key("temp")
        cache.put(key, keep)
        del key
        gc.collect()
        assert cache.purge() == 1
        assert cache.purge() == 0


# ═══════════════════════════════════════════════════════════════════
#  Concurrency
# ═══════════════════════════════════════════════════════════════════

class TestConcurrency:
    def test_put_storm_completes(self, cache):
        keys = [Key(str(i)) for i in range(10)]
        values = [Value(str(i)) for i in range(10)]
        errors = []

        def worker(offset: int):
            try:
                for i in range(3000):
                    cache.put(keys[i % 10], values[(i + offset) % 10])
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(t,)) for t in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        assert not any(t.is_alive() for t in threads)
        assert errors == []
        assert cache.size() == 10
        for key in keys:
            assert cache.get(key) in values

    def test_reads_during_writes(self, cache):
        key = Key("a")
        values = [Value(str(i)) for i in range(10)]
        cache.put(key, values[0])
        stop = threading.Event()
        seen = []

        def reader():
            while not stop.is_set():
                value = cache.get(key)
                if value is not None:
                    seen.append(value)

        t = threading.Thread(target=reader)
        t.start()
        for i in range(2000):
            cache.put(key, values[i % 10])
        stop.set()
        t.join(timeout=10)
        assert not t.is_alive()
        assert cache.get(key) in values
        assert all(v in values for v in seen)
