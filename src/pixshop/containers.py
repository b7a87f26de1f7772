"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from pixshop.adapters.billing_client import BillingClient, HttpxBillingClient
from pixshop.adapters.pillow_image_processor import PillowImageProcessor
from pixshop.adapters.supabase_storage_medium import SupabaseStorageMedium
from pixshop.config import Settings
from pixshop.services.checkout import CheckoutService
from pixshop.services.codec import StateCodec
from pixshop.services.credits import CreditService
from pixshop.services.identity import IdentityRegistry
from pixshop.services.restoration import RestorationOrchestrator
from pixshop.services.security import EditGate, RateLimiter
from pixshop.services.session_store import SessionStore
from pixshop.services.storage import DurableKeyedStore


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    store: DurableKeyedStore
    identity: IdentityRegistry
    codec: StateCodec
    session_store: SessionStore
    billing_client: BillingClient
    credit_service: CreditService
    checkout_service: CheckoutService
    restoration: RestorationOrchestrator
    edit_gate: EditGate
    close_resources: Callable[[], Awaitable[None]]


def build_services(
    settings: Settings,
    store: DurableKeyedStore,
    codec: StateCodec,
    billing_client: BillingClient,
    close_resources: Callable[[], Awaitable[None]],
) -> AppContainer:
    """Wire services around an already-built store, codec and billing client."""
    identity = IdentityRegistry(
        store=store,
        clock=store.clock,
        liveness_ttl_minutes=settings.liveness_ttl_minutes,
        inactivity_timeout_minutes=settings.inactivity_timeout_minutes,
    )
    session_store = SessionStore(
        store=store,
        codec=codec,
        ttl_minutes=settings.snapshot_ttl_minutes,
        max_sessions=settings.max_sessions_per_owner,
    )
    credit_service = CreditService(
        store=store,
        billing_client=billing_client,
        initial_credits=settings.initial_credits,
        cache_ttl_minutes=settings.credits_cache_ttl_minutes,
    )
    checkout_service = CheckoutService(
        session_store=session_store,
        billing_client=billing_client,
        default_credits=settings.purchase_credits,
    )
    restoration = RestorationOrchestrator(
        session_store=session_store, credit_service=credit_service
    )
    edit_gate = EditGate(
        identity=identity,
        rate_limiter=RateLimiter(
            max_requests=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
            clock=store.clock,
        ),
        credit_service=credit_service,
    )
    return AppContainer(
        settings=settings,
        store=store,
        identity=identity,
        codec=codec,
        session_store=session_store,
        billing_client=billing_client,
        credit_service=credit_service,
        checkout_service=checkout_service,
        restoration=restoration,
        edit_gate=edit_gate,
        close_resources=close_resources,
    )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    store = DurableKeyedStore(
        SupabaseStorageMedium(
            supabase_client,
            table=resolved_settings.supabase_storage_table,
            profile=resolved_settings.storage_profile,
        )
    )
    codec = StateCodec(
        processor=PillowImageProcessor(),
        max_dimension=resolved_settings.image_max_dimension,
        quality=resolved_settings.image_quality,
        retry_quality=resolved_settings.image_retry_quality,
        size_limit_bytes=resolved_settings.snapshot_size_limit_bytes,
        max_age_minutes=resolved_settings.snapshot_max_age_minutes,
    )
    billing_client = HttpxBillingClient.create(resolved_settings.billing_base_url)

    async def close_resources() -> None:
        await billing_client.close()

    return build_services(
        resolved_settings, store, codec, billing_client, close_resources
    )
