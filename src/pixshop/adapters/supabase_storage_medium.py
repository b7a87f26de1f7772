"""Supabase-backed storage medium."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from pixshop.services.storage import StorageMedium


@dataclass
class SupabaseStorageMedium(StorageMedium):
    """Key-value rows in a Supabase table, partitioned by profile."""

    client: Client
    table: str = "local_storage"
    profile: str = "default"

    def get_item(self, key: str) -> str | None:
        """Return the raw value stored under a key."""
        response = (
            self.client.table(self.table)
            .select("value")
            .eq("profile", self.profile)
            .eq("key", key)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return response.data[0]["value"]

    def set_item(self, key: str, value: str) -> None:
        """Insert or replace the value for a key."""
        self.client.table(self.table).upsert(
            {
                "profile": self.profile,
                "key": key,
                "value": value,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            },
            on_conflict="profile,key",
        ).execute()

    def remove_item(self, key: str) -> None:
        """Delete the row for a key."""
        self.client.table(self.table).delete().eq("profile", self.profile).eq(
            "key", key
        ).execute()

    def keys(self) -> list[str]:
        """Return every key stored for the profile."""
        response = (
            self.client.table(self.table)
            .select("key")
            .eq("profile", self.profile)
            .execute()
        )
        return [row["key"] for row in response.data or []]
