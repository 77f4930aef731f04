"""Tiered, parallel provider orchestration with fallback."""

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum

from product_resolver.domain.product import ProductRecord, placeholder_record
from product_resolver.services.background import BackgroundTasks
from product_resolver.services.barcodes import longest_variant
from product_resolver.services.dispatcher import RateLimitedDispatcher
from product_resolver.services.providers import ProductProvider, ProviderError

_logger = logging.getLogger(__name__)

LOW_QUALITY_THRESHOLD = 50


class TierPolicy(StrEnum):
    """How a tier decides that it is done."""

    FIRST_MATCH = "first_match"
    COLLECT_ALL = "collect_all"


@dataclass(frozen=True)
class ProviderTier:
    """A group of providers queried together."""

    name: str
    providers: tuple[ProductProvider, ...]
    policy: TierPolicy = TierPolicy.COLLECT_ALL


# Tier name, policy and the provider ids that belong to it, in escalation order.
DEFAULT_TIER_LAYOUT: tuple[tuple[str, TierPolicy, tuple[str, ...]], ...] = (
    (
        "generalist",
        TierPolicy.COLLECT_ALL,
        ("openfoodfacts", "openbeautyfacts", "openpetfoodfacts", "openproductsfacts"),
    ),
    ("official", TierPolicy.COLLECT_ALL, ("usda_fooddata",)),
    ("fallback", TierPolicy.FIRST_MATCH, ("upcitemdb",)),
    ("guaranteed", TierPolicy.COLLECT_ALL, ("web_search",)),
)


def is_low_quality(record: ProductRecord, threshold: int = LOW_QUALITY_THRESHOLD) -> bool:
    """Return True when a record should not stop tier escalation."""
    return (record.quality or 0) < threshold or (record.completion or 0) < threshold


def build_default_tiers(
    providers: Iterable[ProductProvider],
    disabled: Iterable[str] = (),
) -> list[ProviderTier]:
    """Group providers into the default tier layout, skipping empty tiers."""
    skipped = set(disabled)
    by_id = {
        provider.provider_id: provider
        for provider in providers
        if provider.provider_id not in skipped
    }
    tiers: list[ProviderTier] = []
    for name, policy, provider_ids in DEFAULT_TIER_LAYOUT:
        members = tuple(by_id[pid] for pid in provider_ids if pid in by_id)
        if members:
            tiers.append(ProviderTier(name=name, providers=members, policy=policy))
    return tiers


@dataclass
class TieredOrchestrator:
    """Queries tiers in order until one yields a good enough answer.

    Provider failures never escape: an error, a timeout or a malformed payload
    counts as "no answer" for that call only.
    """

    tiers: Sequence[ProviderTier]
    dispatcher: RateLimitedDispatcher = field(default_factory=RateLimitedDispatcher)
    background: BackgroundTasks = field(default_factory=BackgroundTasks)
    timeout_seconds: float = 8.0
    quality_threshold: int = LOW_QUALITY_THRESHOLD

    async def resolve(self, identifiers: Sequence[str]) -> list[ProductRecord]:
        """Return the records to fuse; never empty."""
        identifiers = [value for value in identifiers if value.strip()]
        if not identifiers:
            raise ValueError("At least one non-blank identifier is required")

        carried: list[ProductRecord] = []
        for tier in self.tiers:
            found = await self._run_tier(tier, identifiers)
            usable = [record for record in found if record.is_usable()]
            carried.extend(usable)
            if any(not is_low_quality(r, self.quality_threshold) for r in usable):
                _logger.info(
                    "Tier %s resolved %s with %s record(s)",
                    tier.name,
                    identifiers[0],
                    len(usable),
                )
                return carried
            _logger.debug(
                "Tier %s gave %s usable low-quality record(s) for %s, escalating",
                tier.name,
                len(usable),
                identifiers[0],
            )

        if carried:
            return carried
        _logger.info("No provider knows %s, returning placeholder", identifiers[0])
        return [placeholder_record(longest_variant(identifiers))]

    async def _run_tier(
        self, tier: ProviderTier, identifiers: Sequence[str]
    ) -> list[ProductRecord]:
        calls = [
            (provider, identifier)
            for provider in tier.providers
            for identifier in identifiers
        ]
        if tier.policy is TierPolicy.FIRST_MATCH:
            return await self._first_match(tier, calls)
        results = await asyncio.gather(
            *(self._call(provider, identifier) for provider, identifier in calls)
        )
        return [record for record in results if record is not None]

    async def _first_match(
        self,
        tier: ProviderTier,
        calls: list[tuple[ProductProvider, str]],
    ) -> list[ProductRecord]:
        tasks = [
            asyncio.create_task(
                self._call(provider, identifier),
                name=f"{tier.name}:{provider.provider_id}:{identifier}",
            )
            for provider, identifier in calls
        ]
        try:
            for next_done in asyncio.as_completed(tasks):
                record = await next_done
                if record is not None and record.is_usable():
                    return [record]
            return []
        finally:
            for task in tasks:
                if not task.done():
                    self.background.adopt(task)

    async def _call(
        self, provider: ProductProvider, identifier: str
    ) -> ProductRecord | None:
        provider_id = provider.provider_id
        try:
            return await asyncio.wait_for(
                self.dispatcher.dispatch(
                    provider_id, lambda: provider.fetch_by_identifier(identifier)
                ),
                timeout=self.timeout_seconds,
            )
        except TimeoutError:
            _logger.debug("Provider %s timed out for %s", provider_id, identifier)
        except ProviderError as exc:
            _logger.debug("Provider %s failed for %s: %s", provider_id, identifier, exc)
        except Exception as exc:
            _logger.warning(
                "Provider %s raised unexpectedly for %s: %s",
                provider_id,
                identifier,
                exc,
            )
        return None
