"""Persistence of edit snapshots keyed by (owner, session)."""

import logging
from dataclasses import dataclass, replace

from pixshop.domain.snapshots import AnySnapshot, EditSnapshot, SnapshotInput
from pixshop.services.codec import StateCodec
from pixshop.services.storage import DurableKeyedStore

LEGACY_SNAPSHOT_KEY = "legacy-edit-session"

_SNAPSHOT_PREFIX = "edit-session:"

_logger = logging.getLogger(__name__)


def snapshot_key(owner_id: str, session_id: str) -> str:
    return f"{_SNAPSHOT_PREFIX}{owner_id}:{session_id}"


def pointer_key(owner_id: str) -> str:
    return f"latest-session:{owner_id}"


def index_key(owner_id: str) -> str:
    return f"session-index:{owner_id}"


@dataclass
class SessionStore:
    """CRUD over snapshots plus the latest-session pointer and owner index.

    Each owner has an explicit index of session ids, so listing and sweeping
    cost O(sessions for that owner). Same-key writes are last-write-wins.
    """

    store: DurableKeyedStore
    codec: StateCodec
    ttl_minutes: float = 7 * 24 * 60
    max_sessions: int = 10

    async def save(
        self, owner_id: str, session_id: str, snapshot_input: SnapshotInput
    ) -> bool:
        """Encode and persist a snapshot, returning False on any failure."""
        try:
            snapshot = await self.codec.encode(
                replace(snapshot_input, owner_id=owner_id, session_id=session_id)
            )
        except Exception:
            _logger.exception("Failed to encode snapshot for session %s", session_id)
            return False

        if not self.store.put(
            snapshot_key(owner_id, session_id),
            self.codec.to_payload(snapshot),
            ttl_minutes=self.ttl_minutes,
        ):
            _logger.warning("Failed to store snapshot for session %s", session_id)
            return False

        pointer_saved = self.store.put(
            pointer_key(owner_id), session_id, ttl_minutes=self.ttl_minutes
        )
        index_saved = self._add_to_index(owner_id, session_id)
        self._enforce_retention(owner_id)
        return pointer_saved and index_saved

    async def save_legacy(self, snapshot_input: SnapshotInput) -> bool:
        """Write the single unpartitioned slot used by older clients."""
        try:
            snapshot = await self.codec.encode(
                replace(snapshot_input, owner_id=None, session_id=None)
            )
        except Exception:
            _logger.exception("Failed to encode legacy snapshot")
            return False
        return self.store.put(
            LEGACY_SNAPSHOT_KEY,
            self.codec.to_payload(snapshot),
            ttl_minutes=self.ttl_minutes,
        )

    def load_by_session(self, owner_id: str, session_id: str) -> AnySnapshot | None:
        payload = self.store.get(snapshot_key(owner_id, session_id))
        if payload is None:
            return None
        snapshot = self.codec.decode(payload)
        if isinstance(snapshot, EditSnapshot) and (
            snapshot.owner_id != owner_id or snapshot.session_id != session_id
        ):
            _logger.warning(
                "Snapshot under %s belongs to another session",
                snapshot_key(owner_id, session_id),
            )
            return None
        return snapshot

    def load_latest(self, owner_id: str) -> AnySnapshot | None:
        session_id = self.latest_session_id(owner_id)
        if session_id is None:
            return None
        return self.load_by_session(owner_id, session_id)

    def latest_session_id(self, owner_id: str) -> str | None:
        session_id = self.store.get(pointer_key(owner_id))
        return session_id if isinstance(session_id, str) else None

    def load_legacy(self) -> AnySnapshot | None:
        payload = self.store.get(LEGACY_SNAPSHOT_KEY)
        if payload is None:
            return None
        return self.codec.decode(payload)

    def remove(self, owner_id: str, session_id: str) -> None:
        """Delete a snapshot, its index entry and a pointer aimed at it."""
        self.store.remove(snapshot_key(owner_id, session_id))
        session_ids = self._index(owner_id)
        if session_id in session_ids:
            session_ids.remove(session_id)
            self._write_index(owner_id, session_ids)
        if self.latest_session_id(owner_id) == session_id:
            self.store.remove(pointer_key(owner_id))

    def list_all(self, owner_id: str) -> list[AnySnapshot]:
        """Return the owner's valid snapshots, newest first, capped."""
        snapshots = []
        for session_id in self._index(owner_id):
            snapshot = self.load_by_session(owner_id, session_id)
            if snapshot is not None:
                snapshots.append(snapshot)
        snapshots.sort(key=lambda item: item.saved_at_ms, reverse=True)
        return snapshots[: self.max_sessions]

    def sweep_expired_for_owner(self, owner_id: str) -> int:
        """Drop the owner's missing, expired or invalid snapshots."""
        kept: list[str] = []
        removed = 0
        session_ids = self._index(owner_id)
        for session_id in session_ids:
            key = snapshot_key(owner_id, session_id)
            payload = self.store.get(key)
            if payload is not None and self.codec.validate(payload).is_valid:
                kept.append(session_id)
                continue
            self.store.remove(key)
            removed += 1
        if kept != session_ids:
            self._write_index(owner_id, kept)
        latest = self.latest_session_id(owner_id)
        if latest is not None and latest not in kept:
            self.store.remove(pointer_key(owner_id))
        if removed:
            _logger.info("Swept %s sessions for owner %s", removed, owner_id)
        return removed

    def _index(self, owner_id: str) -> list[str]:
        stored = self.store.get(index_key(owner_id))
        if isinstance(stored, list):
            return [item for item in stored if isinstance(item, str)]
        return self._rebuild_index(owner_id)

    def _rebuild_index(self, owner_id: str) -> list[str]:
        # Snapshots written before the index existed are only found by key scan.
        # The result is persisted even when empty so the scan runs once.
        prefix = snapshot_key(owner_id, "")
        session_ids = [
            key[len(prefix) :] for key in self.store.keys() if key.startswith(prefix)
        ]
        self._write_index(owner_id, session_ids)
        return session_ids

    def _write_index(self, owner_id: str, session_ids: list[str]) -> bool:
        return self.store.put(
            index_key(owner_id), session_ids, ttl_minutes=self.ttl_minutes
        )

    def _add_to_index(self, owner_id: str, session_id: str) -> bool:
        session_ids = self._index(owner_id)
        if session_id not in session_ids:
            session_ids.append(session_id)
        return self._write_index(owner_id, session_ids)

    def _enforce_retention(self, owner_id: str) -> None:
        session_ids = self._index(owner_id)
        if len(session_ids) <= self.max_sessions:
            return
        ranked = sorted(
            session_ids,
            key=lambda session_id: self._saved_at(owner_id, session_id),
            reverse=True,
        )
        for session_id in ranked[self.max_sessions :]:
            _logger.info("Evicting session %s for owner %s", session_id, owner_id)
            self.remove(owner_id, session_id)

    def _saved_at(self, owner_id: str, session_id: str) -> int:
        payload = self.store.get(snapshot_key(owner_id, session_id))
        if isinstance(payload, dict):
            saved_at = payload.get("timestamp")
            if isinstance(saved_at, int):
                return saved_at
        return -1
