"""Tests for HTTP-based adapters."""

import asyncio
import json

import httpx
import pytest

from pixshop.adapters.billing_client import HttpxBillingClient
from pixshop.domain.errors import BillingError


def _client(handler) -> HttpxBillingClient:  # type: ignore[no-untyped-def]
    transport = httpx.MockTransport(handler)
    return HttpxBillingClient(
        base_url="http://billing.test",
        http_client=httpx.AsyncClient(transport=transport),
    )


def test_billing_client_fetches_credits() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.url.path == "/api/user/u1/credits"
        return httpx.Response(200, json={"credits": 53})

    client = _client(handler)

    assert asyncio.run(client.get_credits("u1")) == 53


def test_billing_client_creates_checkout_session() -> None:
    seen: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/create-checkout-session"
        seen.append(json.loads(request.content.decode()))
        return httpx.Response(
            200, json={"sessionId": "cs_1", "url": "https://pay.test/cs_1"}
        )

    client = _client(handler)

    url = asyncio.run(client.create_checkout_session("u1", 50, "s1"))

    assert url == "https://pay.test/cs_1"
    assert seen == [{"userId": "u1", "credits": 50, "sessionId": "s1"}]


def test_billing_client_requires_checkout_url() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"sessionId": "cs_1"})

    client = _client(handler)

    with pytest.raises(BillingError, match="did not return a checkout URL"):
        asyncio.run(client.create_checkout_session("u1", 50, None))


def test_billing_client_surfaces_backend_error_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "Missing userId or credits"})

    client = _client(handler)

    with pytest.raises(BillingError, match="Missing userId or credits"):
        asyncio.run(client.create_checkout_session("", 0, None))


def test_billing_client_reports_status_without_error_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    client = _client(handler)

    with pytest.raises(BillingError, match="status 502"):
        asyncio.run(client.get_credits("u1"))


def test_billing_client_reports_unreachable_backend() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)

    with pytest.raises(BillingError, match="Cannot connect to backend server"):
        asyncio.run(client.get_credits("u1"))


def test_billing_client_fetches_checkout_session() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/checkout-session/cs_1"
        return httpx.Response(200, json={"id": "cs_1", "payment_status": "paid"})

    client = _client(handler)

    session = asyncio.run(client.get_checkout_session("cs_1"))

    assert session["payment_status"] == "paid"
    asyncio.run(client.close())
