"""Dependency container wiring for the application."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from supabase import create_client

from product_resolver.adapters.fda_recall_client import HttpxFdaRecallClient
from product_resolver.adapters.fdc_client import FdcProductProvider, HttpxFdcClient
from product_resolver.adapters.image_client import HttpxImageFetcher
from product_resolver.adapters.open_facts_client import (
    OPEN_FACTS_BASE_URLS,
    HttpxOpenFactsClient,
)
from product_resolver.adapters.supabase_cache_store import SupabaseKeyValueStore
from product_resolver.adapters.upcitemdb_client import HttpxUpcItemDbClient
from product_resolver.adapters.web_search_client import HttpxWebSearchClient
from product_resolver.config import Settings, parse_provider_list
from product_resolver.services.background import BackgroundTasks
from product_resolver.services.cache import (
    CachePolicy,
    InMemoryStore,
    KeyValueStore,
    ProductCache,
)
from product_resolver.services.dispatcher import RateLimitedDispatcher
from product_resolver.services.images import ImageCacheService
from product_resolver.services.orchestrator import (
    TieredOrchestrator,
    build_default_tiers,
)
from product_resolver.services.providers import ProductProvider
from product_resolver.services.recalls import RecallService
from product_resolver.services.resolver import ProductResolver
from product_resolver.services.scoring import ScoringEngine

_logger = logging.getLogger(__name__)

_SHUTDOWN_DRAIN_SECONDS = 5.0


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    store: KeyValueStore
    cache: ProductCache
    background: BackgroundTasks
    orchestrator: TieredOrchestrator
    resolver: ProductResolver
    close_resources: Callable[[], Awaitable[None]]


def build_store(settings: Settings) -> KeyValueStore:
    """Use Supabase when configured, otherwise a process-local store."""
    if settings.uses_supabase:
        client = create_client(settings.supabase_url, settings.supabase_service_key)
        return SupabaseKeyValueStore(
            client,
            table_name=settings.supabase_cache_table,
            bucket=settings.supabase_image_bucket,
        )
    _logger.warning("Supabase is not configured, caching in memory only")
    return InMemoryStore()


def build_cache_policy(settings: Settings) -> CachePolicy:
    return CachePolicy(
        low_quality_ttl=timedelta(hours=settings.cache_low_quality_ttl_hours),
        standard_ttl=timedelta(days=settings.cache_standard_ttl_days),
        premium_ttl=timedelta(days=settings.cache_premium_ttl_days),
        standard_capacity=settings.cache_standard_capacity,
        premium_capacity=settings.cache_premium_capacity,
    )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    store = build_store(resolved_settings)
    cache = ProductCache(store, policy=build_cache_policy(resolved_settings))
    background = BackgroundTasks()

    open_facts_clients = [
        HttpxOpenFactsClient.create(
            provider_id, user_agent=resolved_settings.open_facts_user_agent
        )
        for provider_id in OPEN_FACTS_BASE_URLS
    ]
    fdc_client = (
        HttpxFdcClient.create(
            api_key=resolved_settings.fdc_api_key,
            base_url=resolved_settings.fdc_base_url,
        )
        if resolved_settings.fdc_api_key
        else None
    )
    upcitemdb_client = HttpxUpcItemDbClient.create(resolved_settings.upcitemdb_base_url)
    web_search_client = HttpxWebSearchClient.create(
        resolved_settings.web_search_base_url
    )
    recall_client = HttpxFdaRecallClient.create(resolved_settings.fda_recall_base_url)
    image_fetcher = HttpxImageFetcher.create()

    providers: list[ProductProvider] = [*open_facts_clients]
    if fdc_client is not None:
        providers.append(FdcProductProvider(fdc_client))
    else:
        _logger.info("FDC_API_KEY not set, skipping the USDA tier")
    providers.extend([upcitemdb_client, web_search_client])

    orchestrator = TieredOrchestrator(
        tiers=build_default_tiers(
            providers,
            disabled=parse_provider_list(resolved_settings.disabled_providers),
        ),
        dispatcher=RateLimitedDispatcher(),
        background=background,
        timeout_seconds=resolved_settings.provider_timeout_seconds,
    )
    resolver = ProductResolver(
        orchestrator=orchestrator,
        cache=cache,
        scoring=ScoringEngine(),
        background=background,
        recalls=RecallService(
            checker=recall_client,
            cache=cache,
            background=background,
            deadline_seconds=resolved_settings.recall_timeout_seconds,
        ),
        images=ImageCacheService(store=store, fetcher=image_fetcher),
        reconcile_nutrients=resolved_settings.reconcile_nutrients,
    )

    async def close_resources() -> None:
        await background.drain(timeout=_SHUTDOWN_DRAIN_SECONDS)
        for client in open_facts_clients:
            await client.close()
        if fdc_client is not None:
            await fdc_client.close()
        await upcitemdb_client.close()
        await web_search_client.close()
        await recall_client.close()
        await image_fetcher.close()

    return AppContainer(
        settings=resolved_settings,
        store=store,
        cache=cache,
        background=background,
        orchestrator=orchestrator,
        resolver=resolver,
        close_resources=close_resources,
    )
