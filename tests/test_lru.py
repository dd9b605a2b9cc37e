import pytest

from hetu.util.lru import BoundedLRU


def test_evicts_least_recently_used():
    evicted = []
    cache = BoundedLRU(2, on_evict=lambda k, v: evicted.append((k, v)))
    cache.put("a", 1)
    cache.put("b", 2)
    assert cache.get("a") == 1  # "b" is now the oldest
    cache.put("c", 3)
    assert evicted == [("b", 2)]
    assert cache.keys() == ["a", "c"]
    assert len(cache) == 2


def test_put_existing_key_refreshes_without_eviction():
    evicted = []
    cache = BoundedLRU(2, on_evict=lambda k, v: evicted.append(k))
    cache.put("a", 1)
    cache.put("b", 2)
    cache.put("a", 10)
    cache.put("c", 3)
    assert evicted == ["b"]
    assert cache.get("a") == 10


def test_get_or_create_calls_factory_once():
    cache = BoundedLRU(3)
    calls = []

    def factory():
        calls.append(1)
        return object()

    first = cache.get_or_create("k", factory)
    second = cache.get_or_create("k", factory)
    assert first is second
    assert len(calls) == 1


def test_pop_clear_and_contains():
    cache = BoundedLRU(2)
    cache.put("a", 1)
    assert "a" in cache
    assert cache.pop("a") == 1
    assert cache.pop("a") is None
    cache.put("b", 2)
    cache.clear()
    assert list(cache) == []


@pytest.mark.parametrize("capacity", [0, -1])
def test_rejects_non_positive_capacity(capacity):
    with pytest.raises(ValueError):
        BoundedLRU(capacity)
