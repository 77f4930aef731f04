"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    admin_token: str
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    supabase_cache_table: str = "product_cache"
    supabase_image_bucket: str = "product-images"
    fdc_api_key: str | None = None
    fdc_base_url: str = "https://api.nal.usda.gov/fdc/v1"
    upcitemdb_base_url: str = "https://api.upcitemdb.com/prod/trial"
    web_search_base_url: str = "https://api.duckduckgo.com/"
    fda_recall_base_url: str = "https://api.fda.gov/food/enforcement.json"
    open_facts_user_agent: str = "ProductResolver/1.0"
    provider_timeout_seconds: float = 8.0
    recall_timeout_seconds: float = 2.0
    cache_low_quality_ttl_hours: int = 24
    cache_standard_ttl_days: int = 7
    cache_premium_ttl_days: int = 30
    cache_standard_capacity: int = 100
    cache_premium_capacity: int = 500
    reconcile_nutrients: bool = True
    disabled_providers: str | None = None
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @property
    def uses_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_key)


def parse_provider_list(raw: str | None) -> frozenset[str]:
    """Parse a comma-separated list of provider ids from env."""
    if raw is None:
        return frozenset()
    ids: set[str] = set()
    for chunk in raw.split(","):
        value = chunk.strip().lower()
        if value:
            ids.add(value)
    return frozenset(ids)
