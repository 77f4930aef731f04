"""Trust score models."""

from pydantic import BaseModel, ConfigDict, Field, model_validator

from product_resolver.domain.product import ProductRecord

PILLAR_MAX = 25


class TrustScoreBreakdown(BaseModel):
    """Four-pillar breakdown with legacy display aliases."""

    model_config = ConfigDict(frozen=True)

    body: int = Field(ge=0, le=PILLAR_MAX)
    planet: int = Field(ge=0, le=PILLAR_MAX)
    care: int = Field(ge=0, le=PILLAR_MAX)
    open: int = Field(ge=0, le=PILLAR_MAX)
    sustainability: float = Field(ge=0.0, le=100.0)
    ethics: float = Field(ge=0.0, le=100.0)
    reasons: tuple[str, ...] = ()

    @property
    def total(self) -> int:
        """Composite score, the sum of the four pillars."""
        return self.body + self.planet + self.care + self.open


class ScoredRecord(BaseModel):
    """A product record stamped with its trust score."""

    model_config = ConfigDict(frozen=True)

    record: ProductRecord
    trust_score: int | None = Field(default=None, ge=0, le=100)
    breakdown: TrustScoreBreakdown | None = None

    @model_validator(mode="after")
    def _score_and_breakdown_together(self) -> "ScoredRecord":
        if (self.trust_score is None) != (self.breakdown is None):
            raise ValueError("trust_score and breakdown must be set together")
        return self
