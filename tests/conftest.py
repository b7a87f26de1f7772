"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from pixshop.adapters.billing_client import BillingClient
from pixshop.config import Settings
from pixshop.containers import AppContainer, build_services
from pixshop.domain.errors import BillingError, StorageUnavailableError
from pixshop.domain.images import build_encoded_image, parse_encoded_image
from pixshop.domain.snapshots import SnapshotInput
from pixshop.services.codec import ImageProcessor, StateCodec
from pixshop.services.session_store import SessionStore
from pixshop.services.storage import DurableKeyedStore, InMemoryStorageMedium

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def image_data_url(label: str) -> str:
    """Return a small, distinct, well-formed encoded image."""
    return build_encoded_image("image/png", PNG_SIGNATURE + label.encode("utf-8"))


def snapshot_input(size: int = 3, cursor: int | None = None) -> SnapshotInput:
    history = [image_data_url(f"step-{index}") for index in range(size)]
    return SnapshotInput(
        history=history,
        history_index=size - 1 if cursor is None else cursor,
        active_tab="adjust",
        prompt="make the sky bluer",
    )


@dataclass
class FakeClock:
    """Manually advanced UTC clock."""

    now: datetime = field(
        default_factory=lambda: datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    )

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class FailingStorageMedium(InMemoryStorageMedium):
    """Medium whose writes always fail, like a disabled localStorage."""

    def set_item(self, key: str, value: str) -> None:
        raise StorageUnavailableError("storage disabled")


@dataclass
class FakeImageProcessor(ImageProcessor):
    """Records recompression calls and re-labels images as JPEG."""

    calls: list[float] = field(default_factory=list)
    padding_by_quality: dict[float, int] = field(default_factory=dict)
    fail: bool = False

    async def recompress(self, data_url: str, max_dimension: int, quality: float) -> str:
        self.calls.append(quality)
        if self.fail:
            raise ValueError("cannot decode image")
        _, content = parse_encoded_image(data_url)
        padding = b"\0" * self.padding_by_quality.get(quality, 0)
        return build_encoded_image("image/jpeg", content + padding)


@dataclass
class FakeBillingClient(BillingClient):
    """Billing client with canned responses."""

    credits: int = 53
    checkout_url: str = "https://checkout.example/pay/cs_test_1"
    fail: bool = False
    checkouts: list[tuple[str, int, str | None]] = field(default_factory=list)

    async def get_credits(self, owner_id: str) -> int:
        if self.fail:
            raise BillingError("ledger unavailable")
        return self.credits

    async def create_checkout_session(
        self, owner_id: str, credits: int, session_id: str | None
    ) -> str:
        if self.fail:
            raise BillingError("Failed to create checkout session")
        self.checkouts.append((owner_id, credits, session_id))
        return self.checkout_url

    async def get_checkout_session(self, payment_session_id: str) -> dict[str, object]:
        if self.fail:
            raise BillingError("Failed to fetch checkout session")
        return {"id": payment_session_id, "metadata": {"credits": "50"}}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def medium() -> InMemoryStorageMedium:
    return InMemoryStorageMedium()


@pytest.fixture
def store(medium: InMemoryStorageMedium, clock: FakeClock) -> DurableKeyedStore:
    return DurableKeyedStore(medium, clock=clock)


@pytest.fixture
def processor() -> FakeImageProcessor:
    return FakeImageProcessor()


@pytest.fixture
def codec(processor: FakeImageProcessor, clock: FakeClock) -> StateCodec:
    return StateCodec(processor=processor, clock=clock)


@pytest.fixture
def session_store(store: DurableKeyedStore, codec: StateCodec) -> SessionStore:
    return SessionStore(store=store, codec=codec)


@pytest.fixture
def billing_client() -> FakeBillingClient:
    return FakeBillingClient()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
    )


@pytest.fixture
def container(
    settings: Settings,
    store: DurableKeyedStore,
    codec: StateCodec,
    billing_client: FakeBillingClient,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return build_services(settings, store, codec, billing_client, close_resources)
