"""
Unit tests for the prompt cache and its backend.
"""

import threading

import pytest

from invoice_intake.caching import InMemoryBackend, PromptCache, cache_key

DAY = 24 * 60 * 60


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestCacheKey:

    def test_key_is_sha256_hex(self):
        key = cache_key("prompt", "context")
        assert len(key) == 64
        assert key == cache_key("prompt", "context")

    def test_concatenation_order_matters(self):
        assert cache_key("a", "b") != cache_key("b", "a")


class TestPromptCache:

    def setup_method(self):
        self.clock = FakeClock()
        self.cache = PromptCache(InMemoryBackend(), ttl_seconds=DAY, clock=self.clock, enabled=True)

    def test_miss_on_empty_cache(self):
        assert self.cache.lookup("prompt", "text") is None

    def test_hit_before_ttl(self):
        self.cache.store("prompt", "text", '{"amount": 5000}')
        self.clock.now += DAY - 1

        assert self.cache.lookup("prompt", "text") == '{"amount": 5000}'

    def test_miss_at_ttl(self):
        self.cache.store("prompt", "text", "response")
        self.clock.now += DAY

        assert self.cache.lookup("prompt", "text") is None

    def test_expired_entry_is_removed(self):
        self.cache.store("prompt", "text", "response")
        self.clock.now += DAY + 10

        self.cache.lookup("prompt", "text")

        assert self.cache.stats()["entries"] == 0

    def test_store_replaces_entry_and_resets_age(self):
        self.cache.store("prompt", "text", "old")
        self.clock.now += DAY - 5
        self.cache.store("prompt", "text", "new")
        self.clock.now += 10

        assert self.cache.lookup("prompt", "text") == "new"

    def test_stats_count_hits_and_misses(self):
        self.cache.lookup("prompt", "text")
        self.cache.store("prompt", "text", "response")
        self.cache.lookup("prompt", "text")
        self.cache.lookup("prompt", "text")

        assert self.cache.stats() == {"hits": 2, "misses": 1, "entries": 1}

    def test_disabled_cache_never_hits(self):
        cache = PromptCache(InMemoryBackend(), enabled=False)
        cache.store("prompt", "text", "response")

        assert cache.lookup("prompt", "text") is None

    def test_ttl_defaults_to_configuration(self):
        assert PromptCache().ttl_seconds == DAY


class TestInMemoryBackend:

    def test_put_get_delete(self):
        backend = InMemoryBackend()
        backend.put("key", "value")

        assert backend.get("key") == "value"
        assert backend.delete("key") is True
        assert backend.get("key", "gone") == "gone"
        assert backend.delete("key") is False

    def test_keys_by_prefix(self):
        backend = InMemoryBackend()
        backend.put("a:1", 1)
        backend.put("a:2", 2)
        backend.put("b:1", 3)

        assert sorted(backend.keys("a:")) == ["a:1", "a:2"]

    def test_increment_is_atomic_across_threads(self):
        backend = InMemoryBackend()

        def bump():
            for _ in range(1000):
                backend.increment("counter")

        threads = [threading.Thread(target=bump) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert backend.get("counter") == 8000

    @pytest.mark.parametrize("amount", [1, 5, 0])
    def test_increment_starts_at_zero(self, amount):
        backend = InMemoryBackend()
        assert backend.increment("counter", amount) == amount
