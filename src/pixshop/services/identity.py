"""Anonymous owner identity and liveness-tracked editing sessions."""

import logging
import secrets
from dataclasses import dataclass

from pixshop.services.storage import Clock, DurableKeyedStore, epoch_ms, utc_now

OWNER_ID_KEY = "owner-id"
LIVENESS_TOKEN_KEY = "liveness-token"
LIVENESS_ACTIVITY_KEY = "liveness-activity"

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"

_logger = logging.getLogger(__name__)


@dataclass
class IdentityRegistry:
    """Issues the stable owner id and tracks session liveness.

    Liveness only gates new edits. Snapshots outlive it and stay restorable
    after a liveness session has lapsed.
    """

    store: DurableKeyedStore
    clock: Clock = utc_now
    liveness_ttl_minutes: float = 8 * 60
    inactivity_timeout_minutes: float = 30

    def get_owner_id(self) -> str:
        """Return the persisted owner id, minting and storing it on first use."""
        existing = self.store.get(OWNER_ID_KEY)
        if isinstance(existing, str) and existing:
            return existing
        owner_id = f"user_{secrets.token_hex(8)}_{_base36(self._now_ms())}"
        if self.store.put(OWNER_ID_KEY, owner_id):
            _logger.info("Issued new owner id %s", owner_id)
        else:
            _logger.warning("Owner id %s could not be persisted", owner_id)
        return owner_id

    def new_session_id(self) -> str:
        """Mint an editing-session id for a fresh upload."""
        return f"session_{_base36(self._now_ms())}_{secrets.token_hex(6)}"

    def initialize_liveness_session(self) -> str:
        """Ensure a liveness token exists and stamp activity now."""
        token = self.store.get(LIVENESS_TOKEN_KEY)
        if not isinstance(token, str) or not token:
            token = f"sess_{secrets.token_hex(8)}_{_base36(self._now_ms())}"
            self.store.put(
                LIVENESS_TOKEN_KEY, token, ttl_minutes=self.liveness_ttl_minutes
            )
        self.touch_activity()
        return token

    def touch_activity(self) -> None:
        self.store.put(
            LIVENESS_ACTIVITY_KEY,
            self._now_ms(),
            ttl_minutes=self.liveness_ttl_minutes,
        )

    def is_live(self) -> bool:
        """Return True if a token exists and activity is within the timeout."""
        token = self.store.get(LIVENESS_TOKEN_KEY)
        last_activity = self.store.get(LIVENESS_ACTIVITY_KEY)
        if not isinstance(token, str) or not isinstance(last_activity, int):
            return False
        idle_ms = self._now_ms() - last_activity
        return idle_ms <= int(self.inactivity_timeout_minutes * 60_000)

    def end_session(self) -> None:
        """Drop the liveness session and every namespaced entry."""
        self.store.remove(LIVENESS_TOKEN_KEY)
        self.store.remove(LIVENESS_ACTIVITY_KEY)
        self.store.clear()

    def _now_ms(self) -> int:
        return epoch_ms(self.clock())


def _base36(value: int) -> str:
    if value <= 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))
