"""Response models for the HTTP API."""

from pydantic import BaseModel

from product_resolver.domain.product import ProductRecord
from product_resolver.domain.scoring import ScoredRecord, TrustScoreBreakdown


class TrustScoreResponse(BaseModel):
    """Composite score with its pillar breakdown."""

    total: int
    breakdown: TrustScoreBreakdown


class ProductResponse(BaseModel):
    """A resolved product as returned to clients."""

    product: ProductRecord
    trust_score: TrustScoreResponse | None = None

    @classmethod
    def from_scored(cls, scored: ScoredRecord) -> "ProductResponse":
        trust_score = None
        if scored.trust_score is not None and scored.breakdown is not None:
            trust_score = TrustScoreResponse(
                total=scored.trust_score, breakdown=scored.breakdown
            )
        return cls(product=scored.record, trust_score=trust_score)


class CacheEntryResponse(BaseModel):
    """Raw cache entry for inspection."""

    barcode: str
    entry: dict[str, object]


class CacheSizeResponse(BaseModel):
    entries: int
