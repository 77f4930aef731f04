"""HTTP image downloads."""

from dataclasses import dataclass

import httpx


@dataclass
class HttpxImageFetcher:
    """HTTPX-backed image fetcher."""

    http_client: httpx.AsyncClient
    timeout: float = 10.0
    max_bytes: int = 5 * 1024 * 1024

    @classmethod
    def create(cls) -> "HttpxImageFetcher":
        """Create a fetcher with a managed httpx session."""
        return cls(http_client=httpx.AsyncClient(follow_redirects=True))

    async def fetch(self, url: str) -> bytes:
        """Download an image, rejecting oversized bodies."""
        response = await self.http_client.get(url, timeout=self.timeout)
        response.raise_for_status()
        content = response.content
        if len(content) > self.max_bytes:
            raise ValueError(f"Image at {url} exceeds {self.max_bytes} bytes")
        return content

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
