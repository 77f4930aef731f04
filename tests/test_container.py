"""Tests for container wiring."""

import asyncio

from product_resolver.config import Settings, parse_provider_list
from product_resolver.containers import build_cache_policy, build_container
from product_resolver.services.cache import InMemoryStore


def _provider_ids(container) -> list[list[str]]:  # type: ignore[no-untyped-def]
    return [
        [provider.provider_id for provider in tier.providers]
        for tier in container.orchestrator.tiers
    ]


def test_build_container_without_supabase_uses_memory(settings) -> None:
    container = build_container(settings)

    assert isinstance(container.store, InMemoryStore)
    assert container.resolver.recalls is not None
    assert container.resolver.images is not None
    assert ["usda_fooddata"] in _provider_ids(container)
    asyncio.run(container.close_resources())


def test_missing_fdc_key_and_disabled_providers() -> None:
    settings = Settings(
        admin_token="t",
        fdc_api_key=None,
        disabled_providers="UPCitemdb, openproductsfacts",
        _env_file=None,
    )
    container = build_container(settings)

    flat = [pid for tier in _provider_ids(container) for pid in tier]
    assert "usda_fooddata" not in flat
    assert "upcitemdb" not in flat
    assert "openproductsfacts" not in flat
    assert "openfoodfacts" in flat
    assert flat[-1] == "web_search"
    asyncio.run(container.close_resources())


def test_cache_policy_from_settings(settings) -> None:
    policy = build_cache_policy(
        settings.model_copy(update={"cache_standard_capacity": 3})
    )

    assert policy.capacity_for() == 3
    assert policy.capacity_for(is_premium=True) == 500


def test_parse_provider_list() -> None:
    assert parse_provider_list(None) == frozenset()
    assert parse_provider_list(" A, ,b ") == frozenset({"a", "b"})
