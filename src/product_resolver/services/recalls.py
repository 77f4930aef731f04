"""Best-effort recall enrichment raced against a deadline."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from product_resolver.domain.product import ProductRecord
from product_resolver.domain.recalls import RecallEntry
from product_resolver.services.background import BackgroundTasks
from product_resolver.services.cache import ProductCache

_logger = logging.getLogger(__name__)


class RecallChecker(Protocol):
    """Interface for a product safety recall source."""

    async def check_recalls(
        self,
        name: str | None = None,
        brand: str | None = None,
        barcode: str | None = None,
    ) -> list[RecallEntry]:
        """Return recalls matching the product, empty when none are known."""


@dataclass
class RecallService:
    """Attaches recalls to food records without holding up the caller.

    The lookup runs as a background task that rewrites the cache entries once
    it finishes; the caller waits for it at most ``deadline_seconds``.
    """

    checker: RecallChecker
    cache: ProductCache
    background: BackgroundTasks
    deadline_seconds: float = 2.0
    food_sources: tuple[str, ...] = ("openfoodfacts", "openpetfoodfacts")

    def applies_to(self, record: ProductRecord) -> bool:
        return record.source in self.food_sources and bool(record.name or record.brand)

    async def enrich(
        self,
        record: ProductRecord,
        *,
        cache_keys: Sequence[str] = (),
        is_premium: bool = False,
    ) -> ProductRecord:
        """Return the record with recalls if they arrive before the deadline."""
        if not self.applies_to(record):
            return record
        task = self.background.spawn(
            self._lookup_and_store(record, tuple(cache_keys), is_premium),
            name=f"recalls:{record.barcode}",
        )
        try:
            return await asyncio.wait_for(asyncio.shield(task), self.deadline_seconds)
        except TimeoutError:
            _logger.debug(
                "Recall check for %s still running after %.1fs",
                record.barcode,
                self.deadline_seconds,
            )
            return record

    async def _lookup_and_store(
        self,
        record: ProductRecord,
        cache_keys: tuple[str, ...],
        is_premium: bool,
    ) -> ProductRecord:
        try:
            recalls = await self.checker.check_recalls(
                name=record.name, brand=record.brand, barcode=record.barcode
            )
        except Exception as exc:
            _logger.warning("Recall check failed for %s: %s", record.barcode, exc)
            return record
        if not recalls:
            return record

        enriched = record.model_copy(update={"recalls": tuple(recalls)})
        for key in cache_keys:
            self.cache.put(enriched, is_premium=is_premium, key=key)
        _logger.info("Attached %s recall(s) to %s", len(recalls), record.barcode)
        return enriched
