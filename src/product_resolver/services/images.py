"""Caching of product images in the blob store."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse
from urllib.request import url2pathname

from product_resolver.services.cache import KeyValueStore

_logger = logging.getLogger(__name__)

IMAGE_CONTENT_TYPE = "image/jpeg"


class ImageFetcher(Protocol):
    """Interface for downloading remote images."""

    async def fetch(self, url: str) -> bytes:
        """Return the raw bytes served at ``url``."""


def image_path(barcode: str) -> str:
    return f"images/{barcode}.jpg"


@dataclass
class ImageCacheService:
    """Copies a record's image into the blob store under its barcode."""

    store: KeyValueStore
    fetcher: ImageFetcher

    async def cache_image(self, barcode: str, url: str | None) -> str | None:
        """Store the image once and return its blob path; never raises."""
        if not url:
            return None
        path = image_path(barcode)
        try:
            if self.store.blob_exists(path):
                return path
            data = await self._load(url)
            if not data:
                return None
            self.store.put_blob(path, data, IMAGE_CONTENT_TYPE)
        except Exception as exc:
            _logger.warning("Image caching failed for %s: %s", barcode, exc)
            return None
        _logger.debug("Cached image for %s at %s", barcode, path)
        return path

    async def _load(self, url: str) -> bytes | None:
        parsed = urlparse(url)
        if parsed.scheme in {"http", "https"}:
            return await self.fetcher.fetch(url)
        if parsed.scheme == "file":
            local = Path(url2pathname(parsed.path))
            return await asyncio.to_thread(local.read_bytes)
        _logger.debug("Unsupported image URL scheme: %s", parsed.scheme or "<none>")
        return None
