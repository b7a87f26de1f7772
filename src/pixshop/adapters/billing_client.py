"""HTTP client for the credit ledger and checkout backend."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from pixshop.domain.errors import BillingError


class BillingClient(Protocol):
    """Interface for the remote credit ledger and payment checkout."""

    async def get_credits(self, owner_id: str) -> int:
        """Return the authoritative credit balance for an owner."""

    async def create_checkout_session(
        self, owner_id: str, credits: int, session_id: str | None
    ) -> str:
        """Create a checkout session and return the URL to redirect to."""

    async def get_checkout_session(self, payment_session_id: str) -> dict[str, object]:
        """Return details of a completed checkout session."""


@dataclass
class HttpxBillingClient(BillingClient):
    """HTTPX-backed billing client."""

    base_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, base_url: str) -> "HttpxBillingClient":
        """Create a billing client with a managed httpx session."""
        return cls(base_url=base_url.rstrip("/"), http_client=httpx.AsyncClient())

    async def get_credits(self, owner_id: str) -> int:
        """Fetch the owner's credit balance."""
        payload = await self._request("GET", f"/api/user/{owner_id}/credits")
        credits = payload.get("credits")
        if not isinstance(credits, int):
            raise BillingError("Backend returned an invalid credit balance")
        return credits

    async def create_checkout_session(
        self, owner_id: str, credits: int, session_id: str | None
    ) -> str:
        """Create a checkout session for a credit purchase."""
        payload = await self._request(
            "POST",
            "/api/create-checkout-session",
            json={"userId": owner_id, "credits": credits, "sessionId": session_id},
        )
        url = payload.get("url")
        if not isinstance(url, str) or not url:
            raise BillingError("Backend did not return a checkout URL.")
        return url

    async def get_checkout_session(self, payment_session_id: str) -> dict[str, object]:
        """Fetch checkout session details for the success page."""
        return await self._request(
            "GET", f"/api/checkout-session/{payment_session_id}"
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _request(
        self, method: str, path: str, json: dict[str, object] | None = None
    ) -> dict[str, object]:
        try:
            response = await self.http_client.request(
                method, f"{self.base_url}{path}", json=json, timeout=15
            )
        except httpx.TransportError as exc:
            raise BillingError(
                f"Cannot connect to backend server at {self.base_url}."
            ) from exc
        if response.is_error:
            raise BillingError(_error_message(response))
        payload = response.json()
        if not isinstance(payload, dict):
            raise BillingError("Backend returned an unexpected payload")
        return payload


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return payload["error"]
    return f"Backend request failed with status {response.status_code}"
