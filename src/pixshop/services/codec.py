"""Encoding and validation of edit-session snapshots."""

import json
import logging
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError

from pixshop.domain.errors import SnapshotEncodingError
from pixshop.domain.images import is_encoded_image
from pixshop.domain.snapshots import (
    AnySnapshot,
    EditSnapshot,
    LegacyEditSnapshot,
    SnapshotInput,
)
from pixshop.services.storage import Clock, epoch_ms, utc_now

_logger = logging.getLogger(__name__)


class ImageProcessor(Protocol):
    """Interface for decoding, downscaling and re-encoding images."""

    async def recompress(self, data_url: str, max_dimension: int, quality: float) -> str:
        """Return the image re-encoded as a lossy data URL."""


@dataclass(frozen=True)
class SnapshotCheck:
    """Outcome of validating a stored snapshot candidate."""

    snapshot: AnySnapshot | None
    reason: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.snapshot is not None

    @classmethod
    def invalid(cls, reason: str) -> "SnapshotCheck":
        return cls(snapshot=None, reason=reason)


@dataclass
class StateCodec:
    """Compresses snapshots for storage and validates them on the way back.

    The freshness window is deliberately tighter than the storage TTL, so an
    entry the store still holds can fail validation.
    """

    processor: ImageProcessor
    clock: Clock = utc_now
    max_dimension: int = 1024
    quality: float = 0.8
    retry_quality: float = 0.6
    size_limit_bytes: int = 4 * 1024 * 1024
    max_age_minutes: float = 120

    async def encode(self, snapshot_input: SnapshotInput) -> AnySnapshot:
        """Recompress the history and stamp the snapshot.

        An oversized first pass is redone once at ``retry_quality``; the second
        result is returned whatever its size.
        """
        if not snapshot_input.history:
            raise SnapshotEncodingError("Cannot encode a snapshot with no history")

        snapshot = await self._encode_at(snapshot_input, self.quality)
        size = self.serialized_size(snapshot)
        if size <= self.size_limit_bytes:
            return snapshot

        _logger.warning(
            "Snapshot is %s bytes, retrying at quality %s", size, self.retry_quality
        )
        snapshot = await self._encode_at(snapshot_input, self.retry_quality)
        retry_size = self.serialized_size(snapshot)
        if retry_size > self.size_limit_bytes:
            _logger.warning(
                "Snapshot still %s bytes after recompression; persisting anyway",
                retry_size,
            )
        return snapshot

    def to_payload(self, snapshot: AnySnapshot) -> dict[str, object]:
        """Return the JSON-ready camelCase form of a snapshot."""
        return snapshot.model_dump(mode="json", by_alias=True)

    def serialized_size(self, snapshot: AnySnapshot) -> int:
        serialized = json.dumps(self.to_payload(snapshot), separators=(",", ":"))
        return len(serialized.encode("utf-8"))

    def validate(self, candidate: object) -> SnapshotCheck:
        """Check shape, image formats and freshness without raising."""
        if not isinstance(candidate, dict):
            return SnapshotCheck.invalid("snapshot is not a mapping")

        model = (
            EditSnapshot
            if "sessionId" in candidate or "userId" in candidate
            else LegacyEditSnapshot
        )
        try:
            snapshot = model.model_validate(candidate)
        except ValidationError as exc:
            return SnapshotCheck.invalid(
                f"malformed snapshot ({exc.error_count()} errors)"
            )

        if not is_encoded_image(snapshot.current_image) or not is_encoded_image(
            snapshot.original_image
        ):
            return SnapshotCheck.invalid("unsupported image encoding")
        if not all(is_encoded_image(image) for image in snapshot.history):
            return SnapshotCheck.invalid("unsupported image encoding in history")

        age_ms = epoch_ms(self.clock()) - snapshot.saved_at_ms
        if age_ms > int(self.max_age_minutes * 60_000):
            return SnapshotCheck.invalid("snapshot is stale")
        return SnapshotCheck(snapshot=snapshot)

    def decode(self, candidate: object) -> AnySnapshot | None:
        check = self.validate(candidate)
        if not check.is_valid:
            _logger.info("Rejected stored snapshot: %s", check.reason)
        return check.snapshot

    async def _encode_at(
        self, snapshot_input: SnapshotInput, quality: float
    ) -> AnySnapshot:
        history = [
            await self.processor.recompress(image, self.max_dimension, quality)
            for image in snapshot_input.history
        ]
        cursor = min(max(snapshot_input.history_index, 0), len(history) - 1)
        fields: dict[str, object] = {
            "current_image": history[cursor],
            "original_image": history[0],
            "history": history,
            "history_index": cursor,
            "edit_hotspot": snapshot_input.edit_hotspot,
            "active_tab": snapshot_input.active_tab,
            "prompt": snapshot_input.prompt,
            "saved_at_ms": epoch_ms(self.clock()),
        }
        try:
            if snapshot_input.session_id and snapshot_input.owner_id:
                return EditSnapshot(
                    **fields,
                    session_id=snapshot_input.session_id,
                    owner_id=snapshot_input.owner_id,
                )
            return LegacyEditSnapshot(**fields)
        except ValidationError as exc:
            raise SnapshotEncodingError(f"Invalid snapshot input: {exc}") from exc
