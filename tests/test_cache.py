"""Tests for the product cache and in-memory store."""

from dataclasses import dataclass
from datetime import timedelta

from product_resolver.services.cache import (
    CachePolicy,
    InMemoryStore,
    ProductCache,
)


@dataclass
class IndexlessStore(InMemoryStore):
    """Store that accepts entries but rejects index writes."""

    def put(self, key: str, value: dict[str, object]) -> None:
        if key == "product-index":
            raise RuntimeError("index table locked")
        super().put(key, value)


@dataclass
class BrokenStore(InMemoryStore):
    """Store whose reads and writes always fail."""

    def get(self, key: str) -> dict[str, object] | None:
        raise RuntimeError("store offline")

    def put(self, key: str, value: dict[str, object]) -> None:
        raise RuntimeError("store offline")


def test_put_and_get_roundtrip(cache, record_factory) -> None:
    record = record_factory()

    assert cache.put(record)
    assert cache.get(record.barcode) == record


def test_entry_is_stored_as_whole_document(cache, store, record_factory, clock) -> None:
    record = record_factory()
    cache.put(record)

    entry = store.get(f"product:{record.barcode}")

    assert entry is not None
    assert set(entry) == {"record", "stored_at", "expires_at"}
    assert entry["stored_at"] == clock.now.isoformat()


def test_ttl_ordering(record_factory) -> None:
    policy = CachePolicy()
    high = record_factory()
    web = record_factory(source="web_search")
    low = record_factory(quality=40)

    assert policy.ttl_for(web) == timedelta(hours=24)
    assert policy.ttl_for(low) == timedelta(hours=24)
    assert policy.ttl_for(high) == timedelta(days=7)
    assert policy.ttl_for(high, is_premium=True) == timedelta(days=30)
    assert policy.ttl_for(web) <= policy.ttl_for(high) <= policy.ttl_for(
        high, is_premium=True
    )


def test_expired_entry_is_evicted(cache, store, clock, record_factory) -> None:
    record = record_factory(source="web_search")
    cache.put(record)

    clock.advance(hours=23)
    assert cache.get(record.barcode) is not None

    clock.advance(hours=2)
    assert cache.get(record.barcode) is None
    assert not store.exists(f"product:{record.barcode}")
    assert cache.size() == 0


def test_writer_tier_fixes_expiry(cache, clock, record_factory) -> None:
    premium = record_factory(barcode="111")
    standard = record_factory(barcode="222")
    cache.put(premium, is_premium=True)
    cache.put(standard)

    clock.advance(days=8)

    assert cache.get("111") == premium
    assert cache.get("111") == premium
    assert cache.get("222") is None

    clock.advance(days=23)
    assert cache.get("111") is None


def test_capacity_evicts_oldest(store, clock, record_factory) -> None:
    cache = ProductCache(
        store, policy=CachePolicy(standard_capacity=2, premium_capacity=3), clock=clock
    )
    for barcode in ("111", "222", "333"):
        cache.put(record_factory(barcode=barcode))
        clock.advance(minutes=1)

    assert cache.size() == 2
    assert cache.get("111") is None
    assert cache.get("222") is not None
    assert cache.get("333") is not None


def test_premium_capacity_is_larger(store, clock, record_factory) -> None:
    cache = ProductCache(
        store, policy=CachePolicy(standard_capacity=2, premium_capacity=3), clock=clock
    )
    for barcode in ("111", "222", "333"):
        cache.put(record_factory(barcode=barcode), is_premium=True)
        clock.advance(minutes=1)

    assert cache.size() == 3


def test_rewrite_replaces_entry(cache, clock, record_factory) -> None:
    cache.put(record_factory(name="Old"))
    clock.advance(minutes=5)
    cache.put(record_factory(name="New"))

    assert cache.get("5000000000001").name == "New"
    assert cache.size() == 1


def test_alternate_key(cache, record_factory) -> None:
    record = record_factory(barcode="0012345678905")
    cache.put(record, key="12345678905")

    assert cache.get("12345678905") == record
    assert cache.get("0012345678905") is None


def test_delete_removes_entry_and_index(cache, record_factory) -> None:
    record = record_factory()
    cache.put(record)

    cache.delete(record.barcode)

    assert cache.get(record.barcode) is None
    assert cache.size() == 0


def test_malformed_entry_is_a_miss(cache, store) -> None:
    store.put("product:999", {"record": {"barcode": ""}, "stored_at": "nope"})

    assert cache.get("999") is None
    assert not store.exists("product:999")


def test_storage_errors_are_misses(clock, record_factory) -> None:
    cache = ProductCache(BrokenStore(), clock=clock)

    assert cache.put(record_factory()) is False
    assert cache.get("5000000000001") is None
    assert cache.size() == 0


def test_in_memory_store_blobs() -> None:
    store = InMemoryStore()
    store.put_blob("images/1.jpg", b"abc", "image/jpeg")

    assert store.blob_exists("images/1.jpg")
    assert store.get_blob("images/1.jpg") == b"abc"
    assert store.get_blob("images/2.jpg") is None


def test_in_memory_store_returns_copies() -> None:
    store = InMemoryStore()
    document = {"a": [1]}
    store.put("k", document)
    document["a"].append(2)

    assert store.get("k") == {"a": [1]}


def test_failed_index_write_rolls_back_entry(clock, record_factory) -> None:
    store = IndexlessStore()
    cache = ProductCache(store, clock=clock)

    assert cache.put(record_factory()) is False
    assert not store.exists("product:5000000000001")
    assert cache.get("5000000000001") is None
