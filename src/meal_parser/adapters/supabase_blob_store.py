"""Supabase-backed key-value blob store."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from meal_parser.services.records import BlobStore


@dataclass
class SupabaseBlobStore(BlobStore):
    """Stores blobs in a ``blobs`` table keyed by ``key``."""

    client: Client
    table: str = "blobs"

    def read(self, key: str) -> str | None:
        """Return the blob stored under a key."""
        response = (
            self.client.table(self.table)
            .select("value")
            .eq("key", key)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return response.data[0].get("value")

    def write(self, key: str, data: str) -> None:
        """Insert or replace the blob under a key."""
        self.client.table(self.table).upsert(
            {
                "key": key,
                "value": data,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            },
            on_conflict="key",
        ).execute()
