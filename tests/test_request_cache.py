"""Tests for the TTL request cache."""

from pipeline.request_cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestTTLCache:
    """Test TTLCache expiry and eviction."""

    def setup_method(self):
        """Set up test fixtures."""
        self.clock = FakeClock()
        self.cache = TTLCache(max_size=3, ttl_s=30.0, clock=self.clock)

    def test_get_returns_stored_value(self):
        """Test basic set/get."""
        self.cache.set("a", 1)

        assert self.cache.get("a") == 1
        assert "a" in self.cache

    def test_missing_key(self):
        """Test lookup of an unknown key."""
        assert self.cache.get("missing") is None

    def test_entry_expires_after_ttl(self):
        """Test that entries vanish once their ttl has elapsed."""
        self.cache.set("a", 1)

        self.clock.now += 29.9
        assert self.cache.get("a") == 1

        self.clock.now += 0.2
        assert self.cache.get("a") is None

    def test_per_entry_ttl(self):
        """Test that a per-entry ttl overrides the default."""
        self.cache.set("error", "x", ttl_s=15.0)
        self.cache.set("ok", "y")

        self.clock.now += 16
        assert self.cache.get("error") is None
        assert self.cache.get("ok") == "y"

    def test_evicts_oldest_when_full(self):
        """Test oldest-first eviction at capacity."""
        for key in ["a", "b", "c"]:
            self.cache.set(key, key)

        self.cache.set("d", "d")

        assert len(self.cache) == 3
        assert self.cache.get("a") is None
        assert self.cache.get("d") == "d"

    def test_reset_key_refreshes_position(self):
        """Test that re-setting a key moves it to the newest slot."""
        for key in ["a", "b", "c"]:
            self.cache.set(key, key)

        self.cache.set("a", "again")
        self.cache.set("d", "d")

        assert self.cache.get("a") == "again"
        assert self.cache.get("b") is None

    def test_clear(self):
        """Test clearing the cache."""
        self.cache.set("a", 1)
        self.cache.clear()

        assert len(self.cache) == 0
