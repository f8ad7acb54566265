"""
Unit tests for style-signal hashing and storage.

Tests cover:
1. signals_hash - confidence independence, categorical sensitivity, missing records
2. SignalCache - TTL expiry with a fake clock, oldest-first eviction
3. SignalStore - ready rows only, prompt version, expires_at, malformed rows
4. StyleSignals.from_raw - normalization of loosely typed generator output
"""

from datetime import datetime, timedelta, timezone

import pytest

from stylecheck.core.constants import NO_SIGNALS_HASH
from stylecheck.models.signals import Archetype, PaletteColor, StyleSignals
from stylecheck.services.signals import SignalCache, SignalStore, djb2, signals_hash


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# Hash Tests
# =============================================================================


class TestSignalsHash:
    def test_confidence_does_not_change_hash(self, make_signals):
        a = make_signals(primary_confidence=0.9, formality_confidence=0.8)
        b = make_signals(primary_confidence=0.4, formality_confidence=0.1)
        assert signals_hash(a) == signals_hash(b)

    @pytest.mark.parametrize(
        "change",
        [
            {"primary": "street"},
            {"secondary": "boho", "secondary_confidence": 0.6},
            {"formality": "casual"},
            {"statement": "high"},
            {"season": "heavy"},
            {"pattern": "bold"},
            {"material": "denim"},
            {"palette": ("navy", "white")},
        ],
    )
    def test_categorical_change_changes_hash(self, make_signals, change):
        assert signals_hash(make_signals()) != signals_hash(make_signals(**change))

    def test_palette_order_is_ignored(self, make_signals):
        assert signals_hash(make_signals(palette=("navy", "white"))) == signals_hash(
            make_signals(palette=("white", "navy"))
        )

    def test_missing_signals(self):
        assert signals_hash(None) == NO_SIGNALS_HASH

    def test_hash_format(self, make_signals):
        value = signals_hash(make_signals())
        assert len(value) == 8
        int(value, 16)

    def test_djb2_is_stable(self):
        assert djb2("") == 5381
        assert djb2("abc") == djb2("abc")
        assert djb2("abc") != djb2("acb")
        assert 0 <= djb2("x" * 1000) <= 0xFFFFFFFF


# =============================================================================
# In-memory Cache Tests
# =============================================================================


class TestSignalCache:
    def test_hit_before_ttl(self, make_signals):
        clock = FakeClock()
        cache = SignalCache(ttl_seconds=60, max_entries=10, clock=clock)
        cache.set("a", make_signals())

        clock.advance(59)
        assert cache.get("a") == make_signals()

    def test_expires_at_ttl(self, make_signals):
        clock = FakeClock()
        cache = SignalCache(ttl_seconds=60, max_entries=10, clock=clock)
        cache.set("a", make_signals())

        clock.advance(60)
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_oldest_entry_evicted_first(self, make_signals):
        cache = SignalCache(ttl_seconds=60, max_entries=2, clock=FakeClock())
        cache.set("a", make_signals())
        cache.set("b", make_signals())
        cache.get("a")
        cache.set("c", make_signals())

        assert "a" not in cache
        assert "b" in cache
        assert "c" in cache

    def test_rewrite_restarts_ttl(self, make_signals):
        clock = FakeClock()
        cache = SignalCache(ttl_seconds=60, max_entries=10, clock=clock)
        cache.set("a", make_signals())
        clock.advance(50)
        cache.set("a", make_signals(primary="street"))
        clock.advance(50)

        assert cache.get("a").aesthetic.primary is Archetype.STREET

    def test_instances_do_not_share_entries(self, make_signals):
        first, second = SignalCache(), SignalCache()
        first.set("a", make_signals())
        assert second.get("a") is None


# =============================================================================
# Durable Store Tests
# =============================================================================


class TestSignalStore:
    @pytest.fixture
    def now(self):
        return datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    async def test_round_trip(self, fake_redis, make_signals, now):
        store = SignalStore(fake_redis, ttl_seconds=3600, prompt_version=2, now=lambda: now)
        assert await store.put("item-1", make_signals()) is True

        assert await store.get("item-1") == make_signals()
        key = next(iter(fake_redis.data))
        assert key.endswith("signals:item-1")
        assert fake_redis.ttls[key] == 3600

    async def test_missing_row(self, fake_redis):
        assert await SignalStore(fake_redis).get("nope") is None

    async def test_expired_row_is_ignored(self, fake_redis, make_signals, now):
        writer = SignalStore(fake_redis, ttl_seconds=3600, now=lambda: now)
        await writer.put("item-1", make_signals())

        reader = SignalStore(fake_redis, ttl_seconds=3600, now=lambda: now + timedelta(hours=1))
        assert await reader.get("item-1") is None

    async def test_older_prompt_version_is_ignored(self, fake_redis, make_signals, now):
        await SignalStore(fake_redis, prompt_version=1, now=lambda: now).put("item-1", make_signals())

        assert await SignalStore(fake_redis, prompt_version=2, now=lambda: now).get("item-1") is None

    async def test_only_ready_rows_are_used(self, fake_redis, make_signals, now):
        store = SignalStore(fake_redis, prompt_version=1, now=lambda: now)
        await fake_redis.set(
            store._key("item-1"),
            (
                '{"status": "pending", "prompt_version": 1, "signals": null, '
                f'"expires_at": "{(now + timedelta(days=1)).isoformat()}"}}'
            ),
        )
        assert await store.get("item-1") is None

    async def test_malformed_row_is_ignored(self, fake_redis, now):
        store = SignalStore(fake_redis, now=lambda: now)
        await fake_redis.set(store._key("item-1"), '{"status": "ready"}')
        assert await store.get("item-1") is None

    async def test_redis_outage_is_a_miss(self, make_redis, make_signals):
        store = SignalStore(make_redis(available=False))
        assert await store.put("item-1", make_signals()) is False
        assert await store.get("item-1") is None


# =============================================================================
# Normalization Tests
# =============================================================================


class TestFromRaw:
    def test_unknown_values_fall_back(self):
        signals = StyleSignals.from_raw(
            {
                "aesthetic": {"primary": "cottagecore", "primary_confidence": 3},
                "formality": {"band": "black_tie", "confidence": -1},
                "palette": {"colors": ["navy", "chartreuse", "navy", "white", "red", "black", "gray"]},
            }
        )
        assert signals.aesthetic.primary is Archetype.UNKNOWN
        assert signals.aesthetic.primary_confidence == 1.0
        assert signals.formality.confidence == 0.0
        assert signals.palette.colors == (
            PaletteColor.NAVY,
            PaletteColor.WHITE,
            PaletteColor.RED,
            PaletteColor.BLACK,
        )

    def test_weak_or_duplicate_secondary_is_dropped(self):
        weak = StyleSignals.from_raw(
            {"aesthetic": {"primary": "classic", "secondary": "boho", "secondary_confidence": 0.2}}
        )
        same = StyleSignals.from_raw(
            {"aesthetic": {"primary": "classic", "secondary": "classic", "secondary_confidence": 0.9}}
        )
        assert weak.aesthetic.secondary is Archetype.NONE
        assert same.aesthetic.secondary is Archetype.NONE

    def test_non_dict_input(self):
        signals = StyleSignals.from_raw(["not", "a", "dict"])
        assert signals.aesthetic.primary is Archetype.UNKNOWN
        assert signals.palette.colors == (PaletteColor.UNKNOWN,)
