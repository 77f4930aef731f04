"""Supabase-backed key-value and blob store."""

import posixpath
from dataclasses import dataclass

from supabase import Client

from product_resolver.services.cache import KeyValueStore


@dataclass
class SupabaseKeyValueStore(KeyValueStore):
    """Stores JSON documents in a table and blobs in a storage bucket.

    The table needs a text ``key`` primary key and a jsonb ``value`` column.
    """

    client: Client
    table_name: str = "product_cache"
    bucket: str = "product-images"

    def get(self, key: str) -> dict[str, object] | None:
        response = (
            self.client.table(self.table_name)
            .select("value")
            .eq("key", key)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        value = response.data[0].get("value")
        return value if isinstance(value, dict) else None

    def put(self, key: str, value: dict[str, object]) -> None:
        response = (
            self.client.table(self.table_name)
            .upsert({"key": key, "value": value})
            .execute()
        )
        if not response.data:
            raise RuntimeError(f"Failed to store cache key {key}")

    def delete(self, key: str) -> None:
        self.client.table(self.table_name).delete().eq("key", key).execute()

    def exists(self, key: str) -> bool:
        response = (
            self.client.table(self.table_name)
            .select("key")
            .eq("key", key)
            .limit(1)
            .execute()
        )
        return bool(response.data)

    def put_blob(self, path: str, data: bytes, content_type: str) -> None:
        self.client.storage.from_(self.bucket).upload(
            path,
            data,
            {"content-type": content_type, "upsert": "true"},
        )

    def get_blob(self, path: str) -> bytes | None:
        if not self.blob_exists(path):
            return None
        return self.client.storage.from_(self.bucket).download(path)

    def blob_exists(self, path: str) -> bool:
        folder, name = posixpath.split(path)
        entries = self.client.storage.from_(self.bucket).list(folder, {"search": name})
        return any(entry.get("name") == name for entry in entries or [])
