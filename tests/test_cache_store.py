"""Tests for the file-backed query result cache."""

import json

from src.cache import CacheStore


QUERY = "traces | take 1"
PAYLOAD = {"columns": ["message"], "rows": [["hello"]], "summary": "Returned 1 row(s) with 1 column(s)"}


def entry_files(cache_dir):
    return sorted(p for p in cache_dir.iterdir() if p.suffix == ".json")


class TestKeys:

    def test_same_text_same_key(self):
        assert CacheStore.generate_key(QUERY) == CacheStore.generate_key("traces | take 1")

    def test_no_normalization(self):
        keys = {
            CacheStore.generate_key(QUERY),
            CacheStore.generate_key(QUERY + " "),
            CacheStore.generate_key(QUERY.upper()),
        }
        assert len(keys) == 3

    def test_key_is_sha256_hex(self):
        key = CacheStore.generate_key(QUERY)
        assert len(key) == 64
        int(key, 16)


class TestGetSet:

    def test_miss_on_empty_cache(self, cache_store):
        assert cache_store.get(QUERY) is None

    def test_hit_after_set(self, cache_store):
        cache_store.set(QUERY, PAYLOAD)
        assert cache_store.get(QUERY) == PAYLOAD

    def test_entry_file_named_by_digest(self, cache_store, cache_dir):
        cache_store.set(QUERY, PAYLOAD)

        files = entry_files(cache_dir)
        assert [f.name for f in files] == [f"{CacheStore.generate_key(QUERY)}.json"]

        stored = json.loads(files[0].read_text())
        assert stored["data"] == PAYLOAD
        assert stored["ttl_seconds"] == 3600
        assert stored["created_at_epoch_ms"] == 1_700_000_000_000

    def test_overwrite_keeps_one_entry(self, cache_store, cache_dir):
        cache_store.set(QUERY, {"version": "A"})
        cache_store.set(QUERY, {"version": "B"})

        assert cache_store.get(QUERY) == {"version": "B"}
        assert len(entry_files(cache_dir)) == 1

    def test_live_at_exact_ttl(self, cache_store, clock):
        cache_store.set(QUERY, PAYLOAD)
        clock.advance(3600)
        assert cache_store.get(QUERY) == PAYLOAD

    def test_live_before_ttl(self, cache_store, clock):
        cache_store.set(QUERY, PAYLOAD)
        clock.advance(3599)
        assert cache_store.get(QUERY) == PAYLOAD

    def test_expired_read_is_miss_and_removes_file(self, cache_store, cache_dir, clock):
        cache_store.set(QUERY, PAYLOAD)
        clock.advance(3601)

        assert cache_store.get(QUERY) is None
        assert entry_files(cache_dir) == []

    def test_ttl_override(self, cache_store, clock):
        cache_store.set(QUERY, PAYLOAD, ttl_seconds=10)
        clock.advance(11)
        assert cache_store.get(QUERY) is None

    def test_corrupt_entry_is_a_miss(self, cache_store, cache_dir):
        cache_dir.joinpath(f"{CacheStore.generate_key(QUERY)}.json").write_text("{not json")
        assert cache_store.get(QUERY) is None

    def test_unserializable_payload_is_not_cached(self, cache_store, cache_dir):
        cache_store.set(QUERY, {"value": object()})

        assert cache_store.get(QUERY) is None
        assert list(cache_dir.iterdir()) == []

    def test_negative_ttl_is_not_cached(self, cache_store):
        cache_store.set(QUERY, PAYLOAD, ttl_seconds=-1)
        assert cache_store.get(QUERY) is None


class TestMaintenance:

    def test_delete(self, cache_store):
        cache_store.set(QUERY, PAYLOAD)
        cache_store.delete(QUERY)
        assert cache_store.get(QUERY) is None

    def test_delete_missing_is_a_no_op(self, cache_store):
        cache_store.delete("never cached")

    def test_clear(self, cache_store, cache_dir):
        cache_store.set("a", 1)
        cache_store.set("b", 2)

        assert cache_store.clear() == 2
        assert entry_files(cache_dir) == []

    def test_sweep_expired_uses_entry_ttl(self, cache_store, clock):
        cache_store.set("short", 1, ttl_seconds=60)
        cache_store.set("long", 2)
        clock.advance(120)

        assert cache_store.sweep_expired() == 1
        assert cache_store.get("short") is None
        assert cache_store.get("long") == 2

    def test_sweep_skips_unreadable_files(self, cache_store, cache_dir):
        cache_dir.joinpath("garbage.json").write_text("nope")
        assert cache_store.sweep_expired() == 0

    def test_stats(self, cache_store, cache_dir, clock):
        cache_store.set("short", 1, ttl_seconds=60)
        cache_store.set("long", 2)
        clock.advance(120)

        stats = cache_store.get_stats()

        assert stats["enabled"] is True
        assert stats["total_entries"] == 2
        assert stats["expired_entries"] == 1
        assert stats["total_size_bytes"] > 0
        assert stats["cache_path"] == str(cache_dir)


class TestDisabled:

    def test_disabled_cache_never_touches_disk(self, tmp_path, clock):
        cache_dir = tmp_path / "cache"
        store = CacheStore(cache_dir, enabled=False, clock=clock)

        store.set(QUERY, PAYLOAD)

        assert store.get(QUERY) is None
        assert store.clear() == 0
        assert store.sweep_expired() == 0
        assert not cache_dir.exists()
        assert store.get_stats()["total_entries"] == 0
