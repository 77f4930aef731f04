"""Food safety recall models."""

from pydantic import BaseModel, ConfigDict


class RecallEntry(BaseModel):
    """A recall notice matched to a product."""

    model_config = ConfigDict(frozen=True)

    recall_id: str
    product_name: str
    brand: str | None = None
    reason: str
    recall_date: str
    distribution: tuple[str, ...] = ()
    is_active: bool = True
    url: str | None = None
