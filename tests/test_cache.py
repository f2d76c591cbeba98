from lumen.search.cache import ResponseCache
from lumen.search.models import SearchResponse


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_get_returns_live_entry():
    cache = ResponseCache(clock=FakeClock())
    resp = SearchResponse.empty(1, 20)
    cache.set("k", resp, ttl=60)
    assert cache.get("k") is resp
    assert cache.get("other") is None


def test_expired_entry_is_a_miss():
    clock = FakeClock()
    cache = ResponseCache(clock=clock)
    cache.set("k", SearchResponse.empty(1, 20), ttl=60)
    clock.now += 60
    assert cache.get("k") is None
    assert len(cache) == 0


def test_clear_and_purge():
    clock = FakeClock()
    cache = ResponseCache(clock=clock)
    cache.set("a", SearchResponse.empty(1, 20), ttl=10)
    cache.set("b", SearchResponse.empty(1, 20), ttl=100)
    clock.now += 50
    assert cache.purge_expired() == 1
    assert len(cache) == 1
    cache.clear()
    assert len(cache) == 0
    assert cache.get("b") is None
