"""openFDA food enforcement (recall) client."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from product_resolver.adapters.http_support import check_response, json_or_none
from product_resolver.domain.recalls import RecallEntry

_logger = logging.getLogger(__name__)

PROVIDER_ID = "fda_recalls"
RECALLS_PAGE_URL = "https://www.fda.gov/safety/recalls-market-withdrawals-safety-alerts"

_STOP_WORDS = {
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
}
_RECENT_WINDOW = timedelta(days=730)


class _Enforcement(BaseModel):
    model_config = ConfigDict(extra="ignore")

    recall_number: str | None = None
    event_id: str | None = None
    product_description: str | None = None
    recalling_firm: str | None = None
    reason_for_recall: str | None = None
    recall_initiation_date: str | None = None
    status: str | None = None
    distribution_pattern: str | None = None


class _EnforcementResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    results: list[_Enforcement] = []


def clean_search_term(term: str | None) -> str:
    """Drop short and common words that cause false positive matches."""
    if not term:
        return ""
    words = [
        word
        for word in term.lower().split()
        if len(word) > 2 and word not in _STOP_WORDS
    ]
    return " ".join(words[:4])


def _parse_date(raw: str | None) -> date | None:
    if not raw:
        return None
    for fmt in ("%Y%m%d", "%Y-%m-%d"):
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    return None


def _today() -> date:
    return datetime.now(tz=UTC).date()


@dataclass
class HttpxFdaRecallClient:
    """Searches openFDA enforcement reports by product description."""

    base_url: str
    http_client: httpx.AsyncClient
    today: Callable[[], date] = field(default=_today)
    timeout: float = 5.0

    @classmethod
    def create(cls, base_url: str) -> "HttpxFdaRecallClient":
        """Create a client with a managed httpx session."""
        return cls(base_url=base_url, http_client=httpx.AsyncClient())

    async def check_recalls(
        self,
        name: str | None = None,
        brand: str | None = None,
        barcode: str | None = None,
    ) -> list[RecallEntry]:
        """Return active or recent recalls for a product name."""
        term = clean_search_term(name)
        if not term:
            return []
        response = await self.http_client.get(
            self.base_url,
            params={"search": f'product_description:"{term}"', "limit": 10},
            timeout=self.timeout,
        )
        # openFDA answers 404 when the search has no matches.
        if not check_response(PROVIDER_ID, response):
            return []
        payload = json_or_none(response)
        if payload is None:
            return []
        try:
            parsed = _EnforcementResponse.model_validate(payload)
        except ValidationError as exc:
            _logger.debug("Malformed openFDA payload for %s: %s", barcode or term, exc)
            return []
        return [
            self._to_entry(result)
            for result in parsed.results
            if self._is_relevant(result, brand)
        ]

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    def _is_relevant(self, result: _Enforcement, brand: str | None) -> bool:
        if brand and result.recalling_firm:
            brand_words = set(clean_search_term(brand).split())
            firm = result.recalling_firm.lower()
            if brand_words and not any(word in firm for word in brand_words):
                return False
        status = (result.status or "").lower()
        if status in {"ongoing", "terminated"}:
            return True
        initiated = _parse_date(result.recall_initiation_date)
        return initiated is not None and initiated >= self.today() - _RECENT_WINDOW

    def _to_entry(self, result: _Enforcement) -> RecallEntry:
        initiated = _parse_date(result.recall_initiation_date)
        distribution = tuple(
            part.strip()
            for part in (result.distribution_pattern or "").split(",")
            if part.strip()
        )
        return RecallEntry(
            recall_id=result.recall_number or result.event_id or "unknown",
            product_name=result.product_description or "Unknown Product",
            brand=result.recalling_firm,
            reason=result.reason_for_recall or "No reason provided",
            recall_date=(initiated or self.today()).isoformat(),
            distribution=distribution,
            is_active=(result.status or "").lower() == "ongoing",
            url=RECALLS_PAGE_URL,
        )
