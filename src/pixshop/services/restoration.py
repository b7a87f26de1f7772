"""Restoring editor state after returning from an external redirect.

A return carries ``payment=success|cancelled``, the payment provider's
``session_id`` and, on success, the echoed ``user_id``. Success is only
authoritative when the echoed owner matches the current one. Cancellation
restores the same way. A fresh landing only offers to resume; it never
mutates the editor.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace

import httpx
from pydantic import BaseModel, ConfigDict, field_validator

from pixshop.domain.editor import EditorState
from pixshop.domain.errors import BillingError
from pixshop.domain.snapshots import AnySnapshot
from pixshop.services.credits import CreditService
from pixshop.services.session_store import SessionStore

RESTORED = "RESTORED"
NOT_FOUND = "NOT_FOUND"
RESTORE_FAILED = "RESTORE_FAILED"
OWNER_MISMATCH = "OWNER_MISMATCH"
RESUME_OFFERED = "RESUME_OFFERED"
NOTHING_TO_RESTORE = "NOTHING_TO_RESTORE"

SOURCE_SESSION = "session"
SOURCE_LATEST = "latest"
SOURCE_LEGACY = "legacy"

_logger = logging.getLogger(__name__)


class RedirectReturn(BaseModel):
    """Indicators carried by the return URL of an external redirect."""

    model_config = ConfigDict(frozen=True)

    payment: str | None = None
    session_id: str | None = None
    user_id: str | None = None

    @field_validator("payment")
    @classmethod
    def _known_status(cls, value: str | None) -> str | None:
        return value if value in {"success", "cancelled"} else None

    @classmethod
    def from_query(cls, params: Mapping[str, str]) -> "RedirectReturn":
        return cls(
            payment=params.get("payment"),
            session_id=params.get("session_id"),
            user_id=params.get("user_id"),
        )

    @classmethod
    def from_url(cls, url: str) -> "RedirectReturn":
        return cls.from_query(httpx.URL(url).params)

    @property
    def has_indicators(self) -> bool:
        return self.payment is not None


@dataclass(frozen=True)
class ResolvedSnapshot:
    """Snapshot found by the fallback chain and where it came from."""

    snapshot: AnySnapshot
    source: str


@dataclass(frozen=True)
class RestorationOutcome:
    """What happened to the editor after a return or landing."""

    status: str
    message: str | None = None
    snapshot: AnySnapshot | None = None
    source: str | None = None
    credits: int | None = None

    @property
    def restored(self) -> bool:
        return self.status == RESTORED


@dataclass
class RestorationOrchestrator:
    """Decides which snapshot, if any, to put back into the editor."""

    session_store: SessionStore
    credit_service: CreditService | None = None

    async def handle_return(
        self,
        editor: EditorState,
        owner_id: str,
        session_id: str,
        redirect: RedirectReturn,
    ) -> RestorationOutcome:
        if redirect.payment == "success":
            if not redirect.session_id or redirect.user_id != owner_id:
                _logger.info("Ignoring payment return for a different owner")
                return RestorationOutcome(
                    status=OWNER_MISMATCH, message="Nothing to restore."
                )
            credits = await self._refresh_credits(owner_id)
            return self._restore_exact(
                editor,
                owner_id,
                session_id,
                message="Payment successful! Your credits have been added.",
                credits=credits,
            )
        if redirect.payment == "cancelled":
            return self._restore_exact(
                editor,
                owner_id,
                session_id,
                message=(
                    "Payment was cancelled. Your image has been restored and you "
                    "can try purchasing credits again."
                ),
            )
        return self.find_resumable(owner_id, session_id)

    def resolve(self, owner_id: str, session_id: str | None) -> ResolvedSnapshot | None:
        """Try the exact session, then the owner's latest, then the legacy slot."""
        if session_id:
            snapshot = self.session_store.load_by_session(owner_id, session_id)
            if snapshot is not None:
                return ResolvedSnapshot(snapshot, SOURCE_SESSION)
        snapshot = self.session_store.load_latest(owner_id)
        if snapshot is not None:
            return ResolvedSnapshot(snapshot, SOURCE_LATEST)
        snapshot = self.session_store.load_legacy()
        if snapshot is not None:
            return ResolvedSnapshot(snapshot, SOURCE_LEGACY)
        return None

    def find_resumable(
        self, owner_id: str, session_id: str | None = None
    ) -> RestorationOutcome:
        """Offer the newest restorable snapshot without touching the editor."""
        resolved = self.resolve(owner_id, session_id)
        if resolved is None:
            return RestorationOutcome(status=NOTHING_TO_RESTORE)
        return RestorationOutcome(
            status=RESUME_OFFERED,
            message="We found a previous editing session. Resume where you left off?",
            snapshot=resolved.snapshot,
            source=resolved.source,
        )

    def accept_offer(
        self, editor: EditorState, offer: RestorationOutcome
    ) -> RestorationOutcome:
        """Apply a snapshot previously offered by ``find_resumable``."""
        if offer.snapshot is None:
            return RestorationOutcome(status=NOTHING_TO_RESTORE)
        return self._apply(editor, offer.snapshot, offer.source, message=None)

    def _restore_exact(
        self,
        editor: EditorState,
        owner_id: str,
        session_id: str,
        message: str,
        credits: int | None = None,
    ) -> RestorationOutcome:
        snapshot = self.session_store.load_by_session(owner_id, session_id)
        if snapshot is None:
            _logger.warning("No snapshot to restore for session %s", session_id)
            return RestorationOutcome(
                status=NOT_FOUND,
                message=(
                    "We could not find your saved edits. You can keep editing the "
                    "image that is currently loaded."
                ),
                credits=credits,
            )
        outcome = self._apply(editor, snapshot, SOURCE_SESSION, message)
        return replace(outcome, credits=credits)

    def _apply(
        self,
        editor: EditorState,
        snapshot: AnySnapshot,
        source: str | None,
        message: str | None,
    ) -> RestorationOutcome:
        try:
            editor.replace_from_snapshot(snapshot)
        except ValueError:
            _logger.exception("Failed to materialize restored history")
            return RestorationOutcome(
                status=RESTORE_FAILED,
                message=(
                    "Your saved edits could not be restored. You can continue "
                    "editing."
                ),
            )
        return RestorationOutcome(
            status=RESTORED, message=message, snapshot=snapshot, source=source
        )

    async def _refresh_credits(self, owner_id: str) -> int | None:
        if self.credit_service is None:
            return None
        try:
            return await self.credit_service.refresh(owner_id)
        except BillingError:
            _logger.warning("Could not refresh credits after payment", exc_info=True)
            return None
