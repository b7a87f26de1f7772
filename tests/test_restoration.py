"""Tests for restoring the editor after a checkout redirect."""

import asyncio

from pixshop.domain.editor import EditorImage, EditorState
from pixshop.services.credits import CREDITS_KEY, CreditService
from pixshop.services.restoration import (
    NOT_FOUND,
    NOTHING_TO_RESTORE,
    OWNER_MISMATCH,
    RESTORE_FAILED,
    RESTORED,
    RESUME_OFFERED,
    SOURCE_LATEST,
    SOURCE_LEGACY,
    SOURCE_SESSION,
    RedirectReturn,
    RestorationOrchestrator,
    RestorationOutcome,
)
from pixshop.services.session_store import SessionStore, snapshot_key
from pixshop.services.storage import DurableKeyedStore
from tests.conftest import FakeBillingClient, FakeClock, snapshot_input


def _orchestrator(
    session_store: SessionStore,
    store: DurableKeyedStore,
    billing_client: FakeBillingClient,
) -> RestorationOrchestrator:
    credit_service = CreditService(store=store, billing_client=billing_client)
    return RestorationOrchestrator(
        session_store=session_store, credit_service=credit_service
    )


def _blank_editor() -> EditorState:
    return EditorState.from_upload(
        EditorImage(content=b"placeholder", mime_type="image/png")
    )


def test_successful_payment_restores_session_and_refreshes_credits(
    session_store: SessionStore,
    store: DurableKeyedStore,
    billing_client: FakeBillingClient,
) -> None:
    asyncio.run(session_store.save("u1", "s1", snapshot_input(size=3)))
    editor = _blank_editor()
    orchestrator = _orchestrator(session_store, store, billing_client)
    redirect = RedirectReturn.from_url(
        "https://pixshop.example/?payment=success&session_id=cs_test_1&user_id=u1"
    )

    outcome = asyncio.run(orchestrator.handle_return(editor, "u1", "s1", redirect))

    assert outcome.status == RESTORED
    assert outcome.restored
    assert outcome.source == SOURCE_SESSION
    assert outcome.credits == 53
    assert outcome.message == "Payment successful! Your credits have been added."
    assert store.get(CREDITS_KEY) == 53
    assert len(editor.history) == 3
    assert editor.history_index == 2
    assert editor.prompt == "make the sky bluer"
    assert editor.active_tab == "adjust"


def test_payment_success_for_another_owner_is_ignored(
    session_store: SessionStore,
    store: DurableKeyedStore,
    billing_client: FakeBillingClient,
) -> None:
    asyncio.run(session_store.save("u1", "s1", snapshot_input()))
    editor = _blank_editor()
    orchestrator = _orchestrator(session_store, store, billing_client)
    redirect = RedirectReturn(payment="success", session_id="cs_test_1", user_id="u2")

    outcome = asyncio.run(orchestrator.handle_return(editor, "u1", "s1", redirect))

    assert outcome.status == OWNER_MISMATCH
    assert outcome.message == "Nothing to restore."
    assert len(editor.history) == 1
    assert store.get(CREDITS_KEY) is None


def test_payment_success_without_payment_session_is_ignored(
    session_store: SessionStore,
    store: DurableKeyedStore,
    billing_client: FakeBillingClient,
) -> None:
    orchestrator = _orchestrator(session_store, store, billing_client)
    redirect = RedirectReturn(payment="success", user_id="u1")

    outcome = asyncio.run(
        orchestrator.handle_return(_blank_editor(), "u1", "s1", redirect)
    )

    assert outcome.status == OWNER_MISMATCH


def test_cancelled_payment_restores_session(
    session_store: SessionStore,
    store: DurableKeyedStore,
    billing_client: FakeBillingClient,
) -> None:
    asyncio.run(session_store.save("u1", "s1", snapshot_input(size=2)))
    editor = _blank_editor()
    orchestrator = _orchestrator(session_store, store, billing_client)

    outcome = asyncio.run(
        orchestrator.handle_return(
            editor, "u1", "s1", RedirectReturn(payment="cancelled")
        )
    )

    assert outcome.status == RESTORED
    assert outcome.credits is None
    assert outcome.message is not None
    assert outcome.message.startswith("Payment was cancelled.")
    assert len(editor.history) == 2


def test_missing_snapshot_reports_not_found(
    session_store: SessionStore,
    store: DurableKeyedStore,
    billing_client: FakeBillingClient,
) -> None:
    editor = _blank_editor()
    orchestrator = _orchestrator(session_store, store, billing_client)
    redirect = RedirectReturn(payment="success", session_id="cs_test_1", user_id="u1")

    outcome = asyncio.run(orchestrator.handle_return(editor, "u1", "s1", redirect))

    assert outcome.status == NOT_FOUND
    assert outcome.credits == 53
    assert outcome.message is not None
    assert len(editor.history) == 1


def test_billing_failure_still_restores(
    session_store: SessionStore, store: DurableKeyedStore
) -> None:
    asyncio.run(session_store.save("u1", "s1", snapshot_input()))
    editor = _blank_editor()
    orchestrator = _orchestrator(session_store, store, FakeBillingClient(fail=True))
    redirect = RedirectReturn(payment="success", session_id="cs_test_1", user_id="u1")

    outcome = asyncio.run(orchestrator.handle_return(editor, "u1", "s1", redirect))

    assert outcome.status == RESTORED
    assert outcome.credits is None


def test_fresh_landing_offers_without_mutating(
    session_store: SessionStore,
    store: DurableKeyedStore,
    billing_client: FakeBillingClient,
) -> None:
    asyncio.run(session_store.save("u1", "s1", snapshot_input(size=3)))
    editor = _blank_editor()
    orchestrator = _orchestrator(session_store, store, billing_client)

    offer = asyncio.run(
        orchestrator.handle_return(editor, "u1", "s-new", RedirectReturn())
    )

    assert offer.status == RESUME_OFFERED
    assert offer.source == SOURCE_LATEST
    assert len(editor.history) == 1

    accepted = orchestrator.accept_offer(editor, offer)

    assert accepted.status == RESTORED
    assert len(editor.history) == 3


def test_fresh_landing_with_nothing_saved(
    session_store: SessionStore,
    store: DurableKeyedStore,
    billing_client: FakeBillingClient,
) -> None:
    orchestrator = _orchestrator(session_store, store, billing_client)

    outcome = orchestrator.find_resumable("u1")

    assert outcome.status == NOTHING_TO_RESTORE
    assert orchestrator.accept_offer(_blank_editor(), outcome).status == (
        NOTHING_TO_RESTORE
    )


def test_resolve_prefers_exact_then_latest_then_legacy(
    session_store: SessionStore, clock: FakeClock
) -> None:
    orchestrator = RestorationOrchestrator(session_store=session_store)
    asyncio.run(session_store.save_legacy(snapshot_input(size=1)))

    legacy = orchestrator.resolve("u1", "s1")
    assert legacy is not None
    assert legacy.source == SOURCE_LEGACY

    asyncio.run(session_store.save("u1", "s2", snapshot_input(size=2)))
    latest = orchestrator.resolve("u1", "s1")
    assert latest is not None
    assert latest.source == SOURCE_LATEST

    clock.advance(minutes=1)
    asyncio.run(session_store.save("u1", "s1", snapshot_input(size=3)))
    asyncio.run(session_store.save("u1", "s3", snapshot_input(size=1)))
    exact = orchestrator.resolve("u1", "s1")
    assert exact is not None
    assert exact.source == SOURCE_SESSION
    assert len(exact.snapshot.history) == 3


def test_undecodable_snapshot_leaves_editor_untouched(
    session_store: SessionStore,
    store: DurableKeyedStore,
    billing_client: FakeBillingClient,
) -> None:
    asyncio.run(session_store.save("u1", "s1", snapshot_input(size=2)))
    snapshot = session_store.load_by_session("u1", "s1")
    assert snapshot is not None
    broken = snapshot.model_copy(
        update={"history": [snapshot.history[0], "not a data url"]}
    )
    editor = _blank_editor()
    orchestrator = _orchestrator(session_store, store, billing_client)

    outcome = orchestrator.accept_offer(
        editor, RestorationOutcome(status=RESUME_OFFERED, snapshot=broken)
    )

    assert outcome.status == RESTORE_FAILED
    assert len(editor.history) == 1
    assert editor.current is not None
    assert editor.current.content == b"placeholder"
    assert store.get(snapshot_key("u1", "s1")) is not None


def test_redirect_ignores_unknown_payment_status() -> None:
    redirect = RedirectReturn.from_url("https://pixshop.example/?payment=refunded")

    assert redirect.payment is None
    assert not redirect.has_indicators


def test_redirect_reads_query_parameters() -> None:
    redirect = RedirectReturn.from_query(
        {"payment": "cancelled", "session_id": "cs_test_9"}
    )

    assert redirect.has_indicators
    assert redirect.session_id == "cs_test_9"
    assert redirect.user_id is None
