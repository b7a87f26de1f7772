"""Locally cached credit balance backed by the remote ledger."""

import logging
from dataclasses import dataclass

from pixshop.adapters.billing_client import BillingClient
from pixshop.services.storage import DurableKeyedStore

CREDITS_KEY = "credits-remaining"

_logger = logging.getLogger(__name__)


@dataclass
class CreditService:
    """Reads and decrements the cached balance; the ledger is the source of truth."""

    store: DurableKeyedStore
    billing_client: BillingClient
    initial_credits: int = 3
    cache_ttl_minutes: float = 24 * 60

    def cached_balance(self) -> int:
        cached = self.store.get(CREDITS_KEY)
        if isinstance(cached, int) and not isinstance(cached, bool):
            return cached
        return self.initial_credits

    def consume(self) -> int:
        """Decrement the cached balance after a successful edit."""
        remaining = max(self.cached_balance() - 1, 0)
        self.store.put(CREDITS_KEY, remaining, ttl_minutes=self.cache_ttl_minutes)
        return remaining

    async def refresh(self, owner_id: str) -> int:
        """Replace the cached balance with the ledger's value."""
        credits = await self.billing_client.get_credits(owner_id)
        self.store.put(CREDITS_KEY, credits, ttl_minutes=self.cache_ttl_minutes)
        _logger.info("Refreshed credits for %s: %s", owner_id, credits)
        return credits
