"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from product_resolver.config import Settings
from product_resolver.containers import AppContainer
from product_resolver.domain.product import ProductRecord
from product_resolver.domain.recalls import RecallEntry
from product_resolver.services.background import BackgroundTasks
from product_resolver.services.cache import InMemoryStore, ProductCache
from product_resolver.services.dispatcher import ProviderLimits, RateLimitedDispatcher
from product_resolver.services.orchestrator import (
    ProviderTier,
    TieredOrchestrator,
    TierPolicy,
)
from product_resolver.services.resolver import ProductResolver


@dataclass
class FakeProvider:
    """Provider returning canned records per identifier."""

    provider_id: str
    records: dict[str, ProductRecord] = field(default_factory=dict)
    error: Exception | None = None
    delay: float = 0.0
    calls: list[str] = field(default_factory=list)

    async def fetch_by_identifier(self, identifier: str) -> ProductRecord | None:
        self.calls.append(identifier)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.records.get(identifier)


@dataclass
class FakeRecallChecker:
    """Recall checker with a canned answer and optional delay."""

    recalls: list[RecallEntry] = field(default_factory=list)
    delay: float = 0.0
    calls: list[tuple[str | None, str | None, str | None]] = field(
        default_factory=list
    )

    async def check_recalls(
        self,
        name: str | None = None,
        brand: str | None = None,
        barcode: str | None = None,
    ) -> list[RecallEntry]:
        self.calls.append((name, brand, barcode))
        if self.delay:
            await asyncio.sleep(self.delay)
        return list(self.recalls)


@dataclass
class FakeImageFetcher:
    content: bytes = b"\xff\xd8fake-jpeg"
    urls: list[str] = field(default_factory=list)

    async def fetch(self, url: str) -> bytes:
        self.urls.append(url)
        return self.content


@dataclass
class FakeClock:
    """Manually advanced wall clock."""

    now: datetime = field(default_factory=lambda: datetime(2024, 1, 1, tzinfo=UTC))

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


def make_record(barcode: str = "5000000000001", **overrides: object) -> ProductRecord:
    """Build a complete, high-quality record for tests."""
    values: dict[str, object] = {
        "barcode": barcode,
        "name": "Oat Biscuits",
        "brand": "Good Oats",
        "image_url": "https://images.example/oat.jpg",
        "nutrients": {"energy": 450.0, "sugars": 12.0},
        "ingredients_text": "Oats, sugar, butter",
        "source": "openfoodfacts",
        "quality": 80,
        "completion": 80,
    }
    values.update(overrides)
    return ProductRecord(**values)


def fast_dispatcher() -> RateLimitedDispatcher:
    """Dispatcher without rate spacing so tests do not sleep."""
    unlimited = ProviderLimits(requests_per_second=0, max_concurrent=16)
    return RateLimitedDispatcher(limits={}, default_limits=unlimited)


def build_orchestrator(
    *tiers: tuple[str, TierPolicy, list[FakeProvider]],
    background: BackgroundTasks | None = None,
    timeout_seconds: float = 1.0,
) -> TieredOrchestrator:
    return TieredOrchestrator(
        tiers=[
            ProviderTier(name=name, providers=tuple(providers), policy=policy)
            for name, policy, providers in tiers
        ],
        dispatcher=fast_dispatcher(),
        background=background or BackgroundTasks(),
        timeout_seconds=timeout_seconds,
    )


@pytest.fixture
def record_factory():  # type: ignore[no-untyped-def]
    return make_record


@pytest.fixture
def orchestrator_factory():  # type: ignore[no-untyped-def]
    return build_orchestrator


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        admin_token="admin-token",
        supabase_url=None,
        supabase_service_key=None,
        fdc_api_key="fdc-key",
        _env_file=None,
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def cache(store: InMemoryStore, clock: FakeClock) -> ProductCache:
    return ProductCache(store, clock=clock)


@pytest.fixture
def generalist() -> FakeProvider:
    return FakeProvider("openfoodfacts")


@pytest.fixture
def web_search() -> FakeProvider:
    return FakeProvider("web_search")


@pytest.fixture
def container(
    settings: Settings,
    store: InMemoryStore,
    cache: ProductCache,
    generalist: FakeProvider,
    web_search: FakeProvider,
) -> AppContainer:
    background = BackgroundTasks()
    orchestrator = build_orchestrator(
        ("generalist", TierPolicy.COLLECT_ALL, [generalist]),
        ("guaranteed", TierPolicy.COLLECT_ALL, [web_search]),
        background=background,
    )
    resolver = ProductResolver(
        orchestrator=orchestrator,
        cache=cache,
        background=background,
    )

    async def close_resources() -> None:
        await background.drain(timeout=1.0)

    return AppContainer(
        settings=settings,
        store=store,
        cache=cache,
        background=background,
        orchestrator=orchestrator,
        resolver=resolver,
        close_resources=close_resources,
    )
