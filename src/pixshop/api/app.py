"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status

from pixshop.api.models import (
    CheckoutRequest,
    EditCheckRequest,
    SessionSummary,
    SnapshotRequest,
)
from pixshop.app_logging import configure_logging
from pixshop.containers import AppContainer
from pixshop.domain.editor import EditorState
from pixshop.domain.errors import BillingError
from pixshop.domain.snapshots import AnySnapshot
from pixshop.services.restoration import RedirectReturn, RestorationOutcome


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            removed = app.state.container.store.sweep_expired()
            logger.info("Startup sweep removed %s entries", removed)
        except Exception:
            logger.exception("Failed to sweep expired entries")
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.put("/owners/{owner_id}/sessions/{session_id}")
    async def save_session(
        owner_id: str, session_id: str, body: SnapshotRequest, request: Request
    ) -> dict[str, object]:
        """Persist an editor snapshot for later restoration."""
        state_container: AppContainer = request.app.state.container
        saved = await state_container.session_store.save(
            owner_id, session_id, body.to_snapshot_input()
        )
        if not saved:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Could not save the editing session.",
            )
        return {"saved": True}

    @app.get("/owners/{owner_id}/sessions/{session_id}")
    async def load_session(
        owner_id: str, session_id: str, request: Request
    ) -> dict[str, object]:
        """Return a stored snapshot."""
        state_container: AppContainer = request.app.state.container
        snapshot = state_container.session_store.load_by_session(owner_id, session_id)
        return _snapshot_or_404(state_container, snapshot)

    @app.delete("/owners/{owner_id}/sessions/{session_id}")
    async def delete_session(
        owner_id: str, session_id: str, request: Request
    ) -> dict[str, str]:
        """Delete a stored snapshot."""
        state_container: AppContainer = request.app.state.container
        state_container.session_store.remove(owner_id, session_id)
        return {"status": "ok"}

    @app.get("/owners/{owner_id}/sessions")
    async def list_sessions(owner_id: str, request: Request) -> dict[str, object]:
        """Return the owner's recent sessions, newest first."""
        state_container: AppContainer = request.app.state.container
        snapshots = state_container.session_store.list_all(owner_id)
        return {
            "sessions": [
                SessionSummary.from_snapshot(snapshot).model_dump()
                for snapshot in snapshots
            ]
        }

    @app.get("/owners/{owner_id}/latest")
    async def latest_session(owner_id: str, request: Request) -> dict[str, object]:
        """Return the most recently saved snapshot."""
        state_container: AppContainer = request.app.state.container
        snapshot = state_container.session_store.load_latest(owner_id)
        return _snapshot_or_404(state_container, snapshot)

    @app.get("/owners/{owner_id}/resumable")
    async def resumable_session(
        owner_id: str, request: Request, session_id: str | None = None
    ) -> dict[str, object]:
        """Offer a snapshot to resume on a fresh landing."""
        state_container: AppContainer = request.app.state.container
        outcome = state_container.restoration.find_resumable(owner_id, session_id)
        return _outcome_payload(state_container, outcome)

    @app.post("/owners/{owner_id}/sweep")
    async def sweep_sessions(owner_id: str, request: Request) -> dict[str, int]:
        """Remove the owner's expired or invalid snapshots."""
        state_container: AppContainer = request.app.state.container
        removed = state_container.session_store.sweep_expired_for_owner(owner_id)
        return {"removed": removed}

    @app.post("/owners/{owner_id}/sessions/{session_id}/checkout")
    async def start_checkout(
        owner_id: str, session_id: str, body: CheckoutRequest, request: Request
    ) -> dict[str, str]:
        """Save the editor state, then create a checkout session."""
        state_container: AppContainer = request.app.state.container
        try:
            editor = body.snapshot.to_editor() if body.snapshot else EditorState()
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
            ) from exc
        started = await state_container.checkout_service.begin_purchase(
            owner_id, session_id, editor, credits=body.credits
        )
        if started.checkout_url is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=started.error
            )
        return {"url": started.checkout_url}

    @app.post("/owners/{owner_id}/sessions/{session_id}/restore")
    async def restore_session(
        owner_id: str, session_id: str, body: RedirectReturn, request: Request
    ) -> dict[str, object]:
        """Handle a return from the payment provider."""
        state_container: AppContainer = request.app.state.container
        outcome = await state_container.restoration.handle_return(
            EditorState(), owner_id, session_id, body
        )
        return _outcome_payload(state_container, outcome)

    @app.get("/checkout-sessions/{payment_session_id}")
    async def checkout_session(
        payment_session_id: str, request: Request
    ) -> dict[str, int]:
        """Return the credits bought by a completed checkout."""
        state_container: AppContainer = request.app.state.container
        try:
            credits = await state_container.checkout_service.purchased_credits(
                payment_session_id
            )
        except BillingError as exc:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
            ) from exc
        return {"credits": credits}

    @app.post("/owners/{owner_id}/edits/check")
    async def check_edit(
        owner_id: str, body: EditCheckRequest, request: Request
    ) -> dict[str, object]:
        """Run the pre-edit checks: liveness, input, rate limit and credits."""
        state_container: AppContainer = request.app.state.container
        decision = state_container.edit_gate.check(
            body.prompt, body.hotspot, identifier=owner_id
        )
        return {
            "allowed": decision.allowed,
            "prompt": decision.prompt,
            "error": decision.error,
        }

    return app


def _snapshot_or_404(
    container: AppContainer, snapshot: AnySnapshot | None
) -> dict[str, object]:
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return container.codec.to_payload(snapshot)


def _outcome_payload(
    container: AppContainer, outcome: RestorationOutcome
) -> dict[str, object]:
    return {
        "status": outcome.status,
        "message": outcome.message,
        "source": outcome.source,
        "credits": outcome.credits,
        "snapshot": (
            container.codec.to_payload(outcome.snapshot)
            if outcome.snapshot is not None
            else None
        ),
    }
