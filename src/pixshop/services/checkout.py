"""Credit purchase flow: persist the edit session, then hand off to checkout."""

import logging
from dataclasses import dataclass

from pixshop.adapters.billing_client import BillingClient
from pixshop.domain.editor import EditorState
from pixshop.domain.errors import BillingError
from pixshop.services.session_store import SessionStore

SAVE_FAILED_MESSAGE = "Could not save your current editing session. Please try again."

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutStart:
    """Result of starting a purchase: a redirect URL or a user-facing error."""

    checkout_url: str | None
    error: str | None = None


@dataclass
class CheckoutService:
    """Starts a checkout only once the edit session is durably saved."""

    session_store: SessionStore
    billing_client: BillingClient
    default_credits: int = 50

    async def begin_purchase(
        self,
        owner_id: str,
        session_id: str,
        editor: EditorState,
        credits: int | None = None,
    ) -> CheckoutStart:
        if editor.history:
            saved = await self.session_store.save(
                owner_id, session_id, editor.to_snapshot_input()
            )
            if not saved:
                _logger.warning("Blocking checkout: session %s not saved", session_id)
                return CheckoutStart(checkout_url=None, error=SAVE_FAILED_MESSAGE)

        try:
            url = await self.billing_client.create_checkout_session(
                owner_id, credits or self.default_credits, session_id
            )
        except BillingError as exc:
            _logger.warning("Checkout session creation failed: %s", exc)
            return CheckoutStart(checkout_url=None, error=str(exc))
        return CheckoutStart(checkout_url=url)

    async def purchased_credits(self, payment_session_id: str) -> int:
        """Return the credit amount a completed checkout session paid for.

        Falls back to ``default_credits`` when the session carries no usable
        amount. Backend errors propagate as ``BillingError``.
        """
        session = await self.billing_client.get_checkout_session(payment_session_id)
        metadata = session.get("metadata")
        credits = metadata.get("credits") if isinstance(metadata, dict) else None
        try:
            return int(credits) if credits is not None else self.default_credits
        except (TypeError, ValueError):
            _logger.warning(
                "Checkout session %s has invalid credits %r", payment_session_id, credits
            )
            return self.default_credits
