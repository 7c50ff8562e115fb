"""Tests for the two-layer TTL store."""

from pathlib import Path

from conftest import FakeClock, make_record, make_snapshot

from meteo_cache.config import Settings
from meteo_cache.services.cache import (
    Category,
    FileDurableStore,
    MemoryDurableStore,
    TTLStore,
)


class TestTTLStore:
    """Tests for TTLStore."""

    def test_put_and_get(self, store: TTLStore, clock: FakeClock) -> None:
        """Test basic put and get operations."""
        snapshot = make_snapshot(clock)
        store.put(Category.WEATHER, "15.4_120.9", snapshot)
        assert store.get(Category.WEATHER, "15.4_120.9") == snapshot

    def test_returned_values_are_copies(self, store: TTLStore, clock: FakeClock) -> None:
        """Test mutating a read or stored value leaves the cached entry unchanged."""
        snapshot = make_snapshot(clock, temperature=30)
        store.put(Category.WEATHER, "15.4_120.9", snapshot)
        snapshot.temperature = 99

        first = store.get(Category.WEATHER, "15.4_120.9")
        assert first is not None
        first.temperature = 12
        first.location.name = "Changed"

        again = store.get(Category.WEATHER, "15.4_120.9")
        assert again.temperature == 30
        assert again.location.name != "Changed"

    def test_returned_lists_are_copies(self, store: TTLStore, clock: FakeClock) -> None:
        """Test saved location lists are copied item by item."""
        store.put(Category.SAVED_LOCATIONS, "all", [make_record("Home", 15.0, 120.0, clock)])

        records = store.get(Category.SAVED_LOCATIONS, "all")
        records[0].name = "Changed"
        records.append(make_record("Away", 16.0, 121.0, clock))

        again = store.get(Category.SAVED_LOCATIONS, "all")
        assert [r.name for r in again] == ["Home"]

    def test_cache_miss(self, store: TTLStore) -> None:
        """Test cache miss returns None."""
        assert store.get(Category.WEATHER, "15.4_120.9") is None

    def test_categories_are_separate(self, store: TTLStore, clock: FakeClock) -> None:
        """Test the same key in another category misses."""
        store.put(Category.WEATHER, "15.4_120.9", make_snapshot(clock))
        assert store.get(Category.FORECAST, "15.4_120.9") is None

    def test_durable_key_format(
        self, store: TTLStore, durable: MemoryDurableStore, clock: FakeClock
    ) -> None:
        """Test durable keys carry the app name and category."""
        store.put(Category.WEATHER, "15.4_120.9", make_snapshot(clock))
        assert "KABISILYA_weather_15.4_120.9" in durable.data

    def test_ttl_expiration(self, store: TTLStore, clock: FakeClock) -> None:
        """Test weather entries expire after one hour."""
        store.put(Category.WEATHER, "15.4_120.9", make_snapshot(clock))

        clock.advance(minutes=59)
        assert store.get(Category.WEATHER, "15.4_120.9") is not None

        clock.advance(minutes=1)
        assert store.get(Category.WEATHER, "15.4_120.9") is None

    def test_expired_entry_is_purged(
        self, store: TTLStore, durable: MemoryDurableStore, clock: FakeClock
    ) -> None:
        """Test an expired entry is removed from the durable layer on read."""
        store.put(Category.WEATHER, "15.4_120.9", make_snapshot(clock))
        clock.advance(hours=2)

        assert store.get(Category.WEATHER, "15.4_120.9") is None
        assert durable.data == {}

    def test_saved_locations_never_expire(self, store: TTLStore, clock: FakeClock) -> None:
        """Test the saved locations category has no TTL."""
        records = [make_record("Home", 15.0, 120.0, clock)]
        store.put(Category.SAVED_LOCATIONS, "all", records)

        clock.advance(days=365)
        assert store.get(Category.SAVED_LOCATIONS, "all") == records

    def test_durable_hit_repopulates_memory(
        self, settings: Settings, durable: MemoryDurableStore, clock: FakeClock
    ) -> None:
        """Test a fresh process reads entries written by a previous one."""
        snapshot = make_snapshot(clock)
        TTLStore(settings, durable, clock).put(Category.WEATHER, "15.4_120.9", snapshot)

        restarted = TTLStore(settings, durable, clock)
        assert restarted.size == 0
        assert restarted.get(Category.WEATHER, "15.4_120.9") == snapshot
        assert restarted.size == 1

    def test_durable_entry_keeps_original_timestamp(
        self, settings: Settings, durable: MemoryDurableStore, clock: FakeClock
    ) -> None:
        """Test a restart does not extend an entry's lifetime."""
        TTLStore(settings, durable, clock).put(
            Category.WEATHER, "15.4_120.9", make_snapshot(clock)
        )
        clock.advance(minutes=61)

        restarted = TTLStore(settings, durable, clock)
        assert restarted.get(Category.WEATHER, "15.4_120.9") is None

    def test_corrupted_entry_is_a_miss(
        self, settings: Settings, durable: MemoryDurableStore, clock: FakeClock
    ) -> None:
        """Test undecodable durable entries are discarded."""
        durable.data["KABISILYA_weather_15.4_120.9"] = "{not json"
        store = TTLStore(settings, durable, clock)

        assert store.get(Category.WEATHER, "15.4_120.9") is None
        assert "KABISILYA_weather_15.4_120.9" not in durable.data

    def test_wrong_shape_entry_is_a_miss(
        self, settings: Settings, durable: MemoryDurableStore, clock: FakeClock
    ) -> None:
        """Test entries that decode but fail validation are discarded."""
        durable.data["KABISILYA_weather_15.4_120.9"] = (
            '{"value": {"temperature": "hot"}, "stored_at": "2024-03-10T02:00:00Z"}'
        )
        store = TTLStore(settings, durable, clock)

        assert store.get(Category.WEATHER, "15.4_120.9") is None
        assert durable.data == {}

    def test_delete(self, store: TTLStore, durable: MemoryDurableStore, clock: FakeClock) -> None:
        """Test deleting removes both layers."""
        store.put(Category.WEATHER, "15.4_120.9", make_snapshot(clock))
        store.delete(Category.WEATHER, "15.4_120.9")

        assert store.get(Category.WEATHER, "15.4_120.9") is None
        assert durable.data == {}

    def test_clear(self, store: TTLStore, durable: MemoryDurableStore, clock: FakeClock) -> None:
        """Test clearing cache."""
        store.put(Category.WEATHER, "15.4_120.9", make_snapshot(clock))
        store.clear()

        assert store.size == 0
        assert store.get(Category.WEATHER, "15.4_120.9") is None
        assert durable.data == {}

    def test_size(self, store: TTLStore, clock: FakeClock) -> None:
        """Test cache size tracking."""
        assert store.size == 0
        store.put(Category.WEATHER, "15.4_120.9", make_snapshot(clock))
        assert store.size == 1
        store.put(Category.WEATHER, "14.6_121.0", make_snapshot(clock))
        assert store.size == 2

    def test_is_healthy(self, store: TTLStore) -> None:
        """Test health check."""
        assert store.is_healthy() is True

    def test_max_size(self, durable: MemoryDurableStore, clock: FakeClock) -> None:
        """Test in-process eviction falls back to the durable layer."""
        settings = Settings(cache_dir=None, memory_cache_max_size=2)
        store = TTLStore(settings, durable, clock)

        for key in ("1.0_1.0", "2.0_2.0", "3.0_3.0"):
            store.put(Category.WEATHER, key, make_snapshot(clock))

        assert store.size == 2
        assert store.get(Category.WEATHER, "1.0_1.0") is not None


class TestFileDurableStore:
    """Tests for FileDurableStore."""

    def test_read_missing(self, tmp_path: Path) -> None:
        """Test reading an absent key."""
        assert FileDurableStore(tmp_path).read("absent") is None

    def test_write_read_delete(self, tmp_path: Path) -> None:
        """Test one file per key."""
        durable = FileDurableStore(tmp_path / "cache")
        durable.write("KABISILYA_weather_15.4_120.9", '{"a": 1}')

        assert durable.read("KABISILYA_weather_15.4_120.9") == '{"a": 1}'
        assert [p.name for p in (tmp_path / "cache").iterdir()] == [
            "KABISILYA_weather_15.4_120.9.json"
        ]

        durable.delete("KABISILYA_weather_15.4_120.9")
        assert durable.read("KABISILYA_weather_15.4_120.9") is None

    def test_unsafe_key_characters(self, tmp_path: Path) -> None:
        """Test keys are sanitized into file names."""
        durable = FileDurableStore(tmp_path)
        durable.write("a/b c", "x")
        assert (tmp_path / "a_b_c.json").read_text(encoding="utf-8") == "x"

    def test_survives_restart(self, tmp_path: Path, clock: FakeClock) -> None:
        """Test entries persist across store instances."""
        settings = Settings(cache_dir=tmp_path)
        snapshot = make_snapshot(clock)
        TTLStore.from_settings(settings, clock).put(Category.WEATHER, "15.4_120.9", snapshot)

        restarted = TTLStore.from_settings(settings, clock)
        assert restarted.get(Category.WEATHER, "15.4_120.9") == snapshot

    def test_clear(self, tmp_path: Path) -> None:
        """Test clearing removes entry files."""
        durable = FileDurableStore(tmp_path)
        durable.write("one", "1")
        durable.write("two", "2")
        durable.clear()

        assert list(tmp_path.glob("*.json")) == []


class BrokenDurableStore:
    """Durable layer whose disk is gone."""

    def read(self, key: str) -> str | None:
        raise OSError("disk unavailable")

    def write(self, key: str, data: str) -> None:
        raise OSError("disk unavailable")

    def delete(self, key: str) -> None:
        raise OSError("disk unavailable")

    def clear(self) -> None:
        raise OSError("disk unavailable")


def test_durable_failures_degrade_to_memory(settings: Settings, clock: FakeClock) -> None:
    """Test durable I/O errors leave the in-process layer working."""
    store = TTLStore(settings, BrokenDurableStore(), clock)
    snapshot = make_snapshot(clock)

    store.put(Category.WEATHER, "15.4_120.9", snapshot)
    assert store.get(Category.WEATHER, "15.4_120.9") == snapshot
    assert store.get(Category.WEATHER, "14.6_121.0") is None

    store.delete(Category.WEATHER, "15.4_120.9")
    store.clear()
    assert store.size == 0
