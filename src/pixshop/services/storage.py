"""Expiring, namespaced key-value store over a persistent storage medium.

Every value is wrapped in a ``StoredEntry``, serialized as JSON and scrambled
with URL-safe base64 before it reaches the medium. The scrambling only keeps
values from being read or edited casually; it provides no confidentiality and
no integrity. Anyone with access to the medium can decode and forge entries.
"""

import base64
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from pixshop.domain.errors import StorageUnavailableError
from pixshop.domain.storage import StoredEntry

KEY_PREFIX = "pixshop:"

Clock = Callable[[], datetime]

_logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(tz=UTC)


def epoch_ms(moment: datetime) -> int:
    """Convert a datetime to epoch milliseconds."""
    return int(moment.timestamp() * 1000)


class StorageMedium(Protocol):
    """Interface for the underlying string key-value medium."""

    def get_item(self, key: str) -> str | None:
        """Return the raw value stored under a key, if present."""

    def set_item(self, key: str, value: str) -> None:
        """Store a raw value, raising if the medium rejects the write."""

    def remove_item(self, key: str) -> None:
        """Remove a key if present."""

    def keys(self) -> list[str]:
        """Return every key in the medium, including foreign ones."""


@dataclass
class InMemoryStorageMedium(StorageMedium):
    """Process-local medium with an optional byte quota."""

    items: dict[str, str] = field(default_factory=dict)
    quota_bytes: int | None = None

    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            used = sum(
                len(k) + len(v) for k, v in self.items.items() if k != key
            )
            if used + len(key) + len(value) > self.quota_bytes:
                raise StorageUnavailableError("Storage quota exceeded")
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self.items)


@dataclass
class DurableKeyedStore:
    """Namespaced store with per-entry expiry and self-healing reads.

    Writes are best-effort: ``put`` reports failures as ``False`` instead of
    raising. ``clear`` and ``sweep_expired`` only touch keys under ``prefix``.
    """

    medium: StorageMedium
    clock: Clock = utc_now
    prefix: str = KEY_PREFIX

    def put(self, key: str, value: object, ttl_minutes: float | None = None) -> bool:
        """Store a value, optionally expiring after ``ttl_minutes``."""
        now_ms = epoch_ms(self.clock())
        expires_at_ms = (
            now_ms + int(ttl_minutes * 60_000) if ttl_minutes is not None else None
        )
        entry = StoredEntry(
            payload=value, stored_at_ms=now_ms, expires_at_ms=expires_at_ms
        )
        try:
            self.medium.set_item(self._namespaced(key), _scramble(entry))
        except Exception:
            _logger.warning("Failed to persist key %s", key, exc_info=True)
            return False
        return True

    def get(self, key: str) -> object | None:
        """Return the stored payload, or None if absent, corrupt or expired."""
        entry = self._read_entry(key)
        return entry.payload if entry is not None else None

    def remove(self, key: str) -> None:
        """Remove a key owned by this store."""
        self._remove_namespaced(self._namespaced(key))

    def clear(self) -> None:
        """Remove every key owned by this store, leaving foreign keys intact."""
        for namespaced in self._owned_keys():
            self._remove_namespaced(namespaced)

    def sweep_expired(self) -> int:
        """Remove expired or unreadable entries and return how many were dropped."""
        now_ms = epoch_ms(self.clock())
        removed = 0
        for namespaced in self._owned_keys():
            raw = self.medium.get_item(namespaced)
            if raw is None:
                continue
            try:
                entry = _unscramble(raw)
            except (ValueError, TypeError):
                entry = None
            if entry is None or entry.is_expired(now_ms):
                self._remove_namespaced(namespaced)
                removed += 1
        if removed:
            _logger.info("Swept %s expired entries", removed)
        return removed

    def keys(self) -> list[str]:
        """Return the un-prefixed keys owned by this store."""
        return [namespaced[len(self.prefix) :] for namespaced in self._owned_keys()]

    def _read_entry(self, key: str) -> StoredEntry | None:
        namespaced = self._namespaced(key)
        try:
            raw = self.medium.get_item(namespaced)
        except Exception:
            _logger.warning("Failed to read key %s", key, exc_info=True)
            return None
        if raw is None:
            return None
        try:
            entry = _unscramble(raw)
        except (ValueError, TypeError):
            _logger.warning("Removing corrupted entry %s", key)
            self._remove_namespaced(namespaced)
            return None
        if entry.is_expired(epoch_ms(self.clock())):
            self._remove_namespaced(namespaced)
            return None
        return entry

    def _namespaced(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _owned_keys(self) -> list[str]:
        return [key for key in self.medium.keys() if key.startswith(self.prefix)]

    def _remove_namespaced(self, namespaced: str) -> None:
        try:
            self.medium.remove_item(namespaced)
        except Exception:
            _logger.warning("Failed to remove key %s", namespaced, exc_info=True)


def _scramble(entry: StoredEntry) -> str:
    """Serialize and base64-encode an entry. Not encryption."""
    serialized = json.dumps(entry.to_dict(), separators=(",", ":"))
    return base64.urlsafe_b64encode(serialized.encode("utf-8")).decode("ascii")


def _unscramble(raw: str) -> StoredEntry:
    decoded = base64.b64decode(raw.encode("ascii"), altchars=b"-_", validate=True)
    return StoredEntry.from_dict(json.loads(decoded.decode("utf-8")))
