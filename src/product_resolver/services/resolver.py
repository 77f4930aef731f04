"""Product resolution pipeline entry point."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from product_resolver.domain.product import ProductRecord, placeholder_record
from product_resolver.domain.scoring import ScoredRecord
from product_resolver.services.background import BackgroundTasks
from product_resolver.services.barcodes import longest_variant, normalize_barcode
from product_resolver.services.cache import ProductCache
from product_resolver.services.fusion import DEFAULT_SOURCE_WEIGHTS, merge
from product_resolver.services.images import ImageCacheService
from product_resolver.services.orchestrator import TieredOrchestrator, is_low_quality
from product_resolver.services.recalls import RecallService
from product_resolver.services.scoring import ScoringEngine

_logger = logging.getLogger(__name__)

_WEB_SEARCH_SOURCE = "web_search"


@dataclass
class ProductResolver:
    """Resolves a scanned identifier into a single scored product record."""

    orchestrator: TieredOrchestrator
    cache: ProductCache
    scoring: ScoringEngine = field(default_factory=ScoringEngine)
    background: BackgroundTasks = field(default_factory=BackgroundTasks)
    recalls: RecallService | None = None
    images: ImageCacheService | None = None
    weights: Mapping[str, float] = field(
        default_factory=lambda: dict(DEFAULT_SOURCE_WEIGHTS)
    )
    reconcile_nutrients: bool = True

    async def resolve(
        self,
        identifier: str,
        use_cache: bool = True,
        is_premium: bool = False,
        is_offline: bool = False,
    ) -> ScoredRecord | None:
        """Resolve ``identifier``.

        Returns None only when offline and nothing is cached; no provider is
        contacted in that case. Raises ValueError for a blank identifier.
        """
        raw, variants = _identifier_keys(identifier)
        primary = longest_variant(variants)

        if use_cache:
            cached = self._from_cache([raw, *variants], is_offline)
            if cached is not None:
                return self.scoring.score(cached)
        if is_offline:
            _logger.info("Offline and no cached entry for %s", raw)
            return None

        try:
            return await self._resolve_live(raw, variants, primary, is_premium)
        except Exception:
            _logger.exception("Resolution failed for %s, returning placeholder", raw)
            return self.scoring.score(placeholder_record(primary))

    async def refresh(self, identifier: str, is_premium: bool = False) -> ScoredRecord | None:
        """Resolve bypassing the cache, then rewrite it."""
        return await self.resolve(identifier, use_cache=False, is_premium=is_premium)

    def evict(self, identifier: str) -> list[str]:
        """Drop every cache key a resolution of ``identifier`` may have written."""
        raw, variants = _identifier_keys(identifier)
        keys = list(dict.fromkeys([raw, *variants]))
        for key in keys:
            self.cache.delete(key)
        return keys

    def _from_cache(self, keys: list[str], is_offline: bool) -> ProductRecord | None:
        for key in dict.fromkeys(keys):
            record = self.cache.get(key)
            if record is None:
                continue
            if (
                not is_offline
                and record.source == _WEB_SEARCH_SOURCE
                and is_low_quality(record)
            ):
                _logger.debug("Skipping low-quality cached web result for %s", key)
                continue
            _logger.debug("Cache hit for %s", key)
            return record
        return None

    async def _resolve_live(
        self,
        raw: str,
        variants: list[str],
        primary: str,
        is_premium: bool,
    ) -> ScoredRecord:
        records = await self.orchestrator.resolve(variants)
        fused = merge(
            records,
            self.weights,
            barcode=primary,
            reconcile_nutrients=self.reconcile_nutrients,
        )

        cache_keys = [primary] if raw == primary else [primary, raw]
        stored = self.cache.put(fused, is_premium=is_premium, key=primary)
        if raw != primary:
            self.cache.put(fused, is_premium=is_premium, key=raw)

        if stored and self.images is not None and fused.image_url:
            self.background.spawn(
                self.images.cache_image(primary, fused.image_url),
                name=f"image:{primary}",
            )
        if self.recalls is not None:
            fused = await self.recalls.enrich(
                fused, cache_keys=cache_keys, is_premium=is_premium
            )
        return self.scoring.score(fused)


def _identifier_keys(identifier: str) -> tuple[str, list[str]]:
    raw = identifier.strip()
    variants = normalize_barcode(raw)
    if not variants:
        raise ValueError("Product identifier must not be blank")
    return raw, variants
