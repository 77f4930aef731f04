"""Key-value storage and the quality-differentiated product cache."""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol

from pydantic import ValidationError

from product_resolver.domain.product import ProductRecord

_logger = logging.getLogger(__name__)

_ENTRY_PREFIX = "product:"
_INDEX_KEY = "product-index"


class KeyValueStore(Protocol):
    """Persistent storage for JSON documents and binary blobs."""

    def get(self, key: str) -> dict[str, object] | None:
        """Return the JSON document stored under ``key``."""

    def put(self, key: str, value: dict[str, object]) -> None:
        """Replace the JSON document stored under ``key``."""

    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""

    def exists(self, key: str) -> bool:
        """Return True when ``key`` holds a document."""

    def put_blob(self, path: str, data: bytes, content_type: str) -> None:
        """Store a binary blob under ``path``."""

    def get_blob(self, path: str) -> bytes | None:
        """Return the blob stored under ``path``."""

    def blob_exists(self, path: str) -> bool:
        """Return True when a blob is stored under ``path``."""


@dataclass
class InMemoryStore(KeyValueStore):
    """Process-local store used in tests and when no backend is configured."""

    _documents: dict[str, str] = field(default_factory=dict)
    _blobs: dict[str, bytes] = field(default_factory=dict)

    def get(self, key: str) -> dict[str, object] | None:
        raw = self._documents.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def put(self, key: str, value: dict[str, object]) -> None:
        self._documents[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        self._documents.pop(key, None)

    def exists(self, key: str) -> bool:
        return key in self._documents

    def put_blob(self, path: str, data: bytes, content_type: str) -> None:
        self._blobs[path] = bytes(data)

    def get_blob(self, path: str) -> bytes | None:
        return self._blobs.get(path)

    def blob_exists(self, path: str) -> bool:
        return path in self._blobs


@dataclass(frozen=True)
class CachePolicy:
    """TTL and capacity rules for cached products."""

    low_quality_ttl: timedelta = timedelta(hours=24)
    standard_ttl: timedelta = timedelta(days=7)
    premium_ttl: timedelta = timedelta(days=30)
    standard_capacity: int = 100
    premium_capacity: int = 500
    quality_threshold: int = 50
    low_quality_sources: tuple[str, ...] = ("web_search",)

    def is_low_quality(self, record: ProductRecord) -> bool:
        """Return True for records that must be refreshed within a day."""
        return (
            record.source in self.low_quality_sources
            or (record.quality or 0) < self.quality_threshold
            or (record.completion or 0) < self.quality_threshold
        )

    def ttl_for(self, record: ProductRecord, *, is_premium: bool = False) -> timedelta:
        if self.is_low_quality(record):
            return self.low_quality_ttl
        return self.premium_ttl if is_premium else self.standard_ttl

    def capacity_for(self, *, is_premium: bool = False) -> int:
        return self.premium_capacity if is_premium else self.standard_capacity


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class ProductCache:
    """Product cache with quality-based TTL and recency-bounded capacity.

    Every entry is a whole JSON document ``{"record", "stored_at",
    "expires_at"}``; the key index is a single document mapping barcode to
    ``stored_at`` and is rewritten on every change. Storage failures are
    logged and behave like a miss or a skipped write.
    """

    store: KeyValueStore
    policy: CachePolicy = field(default_factory=CachePolicy)
    clock: Callable[[], datetime] = _utc_now

    def get(self, barcode: str) -> ProductRecord | None:
        """Return a fresh cached record, evicting it when expired.

        Expiry is the one fixed by the writer, so a reader on another tier
        never shortens or extends an entry.
        """
        try:
            payload = self.store.get(_entry_key(barcode))
        except Exception:
            _logger.exception("Cache read failed for %s", barcode)
            return None
        if payload is None:
            return None

        try:
            record = ProductRecord.model_validate(payload["record"])
            expires_at = datetime.fromisoformat(str(payload["expires_at"]))
            expired = self.clock() >= expires_at
        except (KeyError, TypeError, ValueError, ValidationError):
            _logger.warning("Discarding malformed cache entry for %s", barcode)
            self.delete(barcode)
            return None

        if expired:
            _logger.debug("Cache entry for %s expired", barcode)
            self.delete(barcode)
            return None
        return record

    def put(
        self,
        record: ProductRecord,
        *,
        is_premium: bool = False,
        key: str | None = None,
    ) -> bool:
        """Store a record under ``key`` (default its barcode).

        Returns False when the write was skipped because storage failed.
        """
        barcode = key or record.barcode
        now = self.clock()
        entry = {
            "record": record.model_dump(mode="json"),
            "stored_at": now.isoformat(),
            "expires_at": (
                now + self.policy.ttl_for(record, is_premium=is_premium)
            ).isoformat(),
        }
        try:
            self.store.put(_entry_key(barcode), entry)
            try:
                self._update_index(barcode, now, is_premium)
            except Exception:
                # An unindexed entry would escape capacity eviction.
                self.store.delete(_entry_key(barcode))
                raise
        except Exception:
            _logger.exception("Cache write failed for %s", barcode)
            return False
        return True

    def delete(self, barcode: str) -> None:
        """Remove an entry and its index slot."""
        try:
            self.store.delete(_entry_key(barcode))
            index = self._read_index()
            if index.pop(barcode, None) is not None:
                self.store.put(_INDEX_KEY, {"entries": index})
        except Exception:
            _logger.exception("Cache delete failed for %s", barcode)

    def inspect(self, barcode: str) -> dict[str, object] | None:
        """Return the raw stored entry, expired or not."""
        try:
            return self.store.get(_entry_key(barcode))
        except Exception:
            _logger.exception("Cache read failed for %s", barcode)
            return None

    def size(self) -> int:
        """Number of indexed entries."""
        try:
            return len(self._read_index())
        except Exception:
            _logger.exception("Cache index read failed")
            return 0

    def _update_index(self, barcode: str, now: datetime, is_premium: bool) -> None:
        index = self._read_index()
        index[barcode] = now.isoformat()
        capacity = self.policy.capacity_for(is_premium=is_premium)
        for evicted in _oldest_over_capacity(index, capacity, keep=barcode):
            self.store.delete(_entry_key(evicted))
            index.pop(evicted, None)
        self.store.put(_INDEX_KEY, {"entries": index})

    def _read_index(self) -> dict[str, str]:
        payload = self.store.get(_INDEX_KEY) or {}
        entries = payload.get("entries") or {}
        if not isinstance(entries, dict):
            return {}
        return {str(key): str(value) for key, value in entries.items()}


def _entry_key(barcode: str) -> str:
    return f"{_ENTRY_PREFIX}{barcode}"


def _oldest_over_capacity(
    index: dict[str, str], capacity: int, *, keep: str
) -> list[str]:
    overflow = len(index) - capacity
    if overflow <= 0:
        return []
    by_age = sorted(
        ((key, stored) for key, stored in index.items() if key != keep),
        key=lambda item: (item[1], item[0]),
    )
    return [barcode for barcode, _ in by_age[:overflow]]
