from datetime import datetime, timedelta

from thorbis.services import cache as cache_module
from thorbis.services.cache import ResponseCache


def test_key_ignores_parameter_order():
    a = ResponseCache.make_key("businesses:list", {"query": "pizza", "limit": 2})
    b = ResponseCache.make_key("businesses:list", {"limit": 2, "query": "pizza"})
    assert a == b
    assert a != ResponseCache.make_key("businesses:list", {"limit": 3, "query": "pizza"})
    assert a != ResponseCache.make_key("businesses:detail", {"limit": 2, "query": "pizza"})


def test_set_get_and_clear():
    cache = ResponseCache(ttl=60)
    cache.set("k", {"v": 1})
    assert cache.get("k") == {"v": 1}
    assert len(cache) == 1
    cache.clear()
    assert cache.get("k") is None


def test_zero_ttl_disables_storage():
    cache = ResponseCache(ttl=0)
    cache.set("k", 1)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_entries_expire(monkeypatch):
    cache = ResponseCache(ttl=30)
    cache.set("k", 1)

    later = datetime.now() + timedelta(seconds=31)

    class FrozenDatetime(datetime):
        @classmethod
        def now(cls, tz=None):
            return later

    monkeypatch.setattr(cache_module, "datetime", FrozenDatetime)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_full_cache_evicts_oldest_entry():
    cache = ResponseCache(ttl=60, max_entries=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)

    assert len(cache) == 2
    assert cache.get("a") is None
    assert (cache.get("b"), cache.get("c")) == (2, 3)


def test_full_cache_sweeps_expired_entries_first(monkeypatch):
    cache = ResponseCache(ttl=60, max_entries=2)
    cache.set("short", 1, ttl=5)
    cache.set("long", 2)

    later = datetime.now() + timedelta(seconds=10)

    class FrozenDatetime(datetime):
        @classmethod
        def now(cls, tz=None):
            return later

    monkeypatch.setattr(cache_module, "datetime", FrozenDatetime)
    cache.set("new", 3)

    assert len(cache) == 2
    assert cache.get("long") == 2
    assert cache.get("new") == 3


def test_resetting_a_key_does_not_evict_others():
    cache = ResponseCache(ttl=60, max_entries=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)

    assert (cache.get("a"), cache.get("b")) == (10, 2)
