"""Domain models for the durable key-value store."""

from dataclasses import dataclass


@dataclass(frozen=True)
class StoredEntry:
    """Wrapper persisted around every value in the durable store."""

    payload: object
    stored_at_ms: int
    expires_at_ms: int | None = None

    def is_expired(self, now_ms: int) -> bool:
        """Return True when the entry has a deadline at or before now."""
        return self.expires_at_ms is not None and now_ms >= self.expires_at_ms

    def to_dict(self) -> dict[str, object]:
        return {
            "payload": self.payload,
            "storedAt": self.stored_at_ms,
            "expiresAt": self.expires_at_ms,
        }

    @classmethod
    def from_dict(cls, raw: object) -> "StoredEntry":
        """Build an entry from its serialized form, raising ValueError if malformed."""
        if not isinstance(raw, dict) or "payload" not in raw:
            raise ValueError("Stored entry is missing its payload")
        stored_at = raw.get("storedAt")
        expires_at = raw.get("expiresAt")
        if not isinstance(stored_at, int) or isinstance(stored_at, bool):
            raise ValueError("Stored entry has an invalid storedAt")
        if expires_at is not None and (
            not isinstance(expires_at, int) or isinstance(expires_at, bool)
        ):
            raise ValueError("Stored entry has an invalid expiresAt")
        return cls(
            payload=raw["payload"],
            stored_at_ms=stored_at,
            expires_at_ms=expires_at,
        )
