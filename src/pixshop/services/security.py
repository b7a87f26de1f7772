"""Input validation, rate limiting and the pre-edit gate."""

import re
from dataclasses import dataclass, field

from pixshop.domain.snapshots import Hotspot
from pixshop.services.credits import CreditService
from pixshop.services.identity import IdentityRegistry
from pixshop.services.storage import Clock, epoch_ms, utc_now

MAX_PROMPT_LENGTH = 500
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
ALLOWED_UPLOAD_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}
SUSPICIOUS_EXTENSIONS = (".exe", ".bat", ".cmd", ".scr", ".pif", ".com", ".js", ".jar")

_UNSAFE_CHARS = re.compile(r"[<>\"'&]")
_UNSAFE_SCHEMES = re.compile(r"(javascript|data|vbscript):", re.IGNORECASE)


def sanitize_prompt(prompt: str) -> str:
    """Strip markup characters and script schemes, then cap the length."""
    cleaned = _UNSAFE_SCHEMES.sub("", _UNSAFE_CHARS.sub("", prompt))
    return cleaned.strip()[:MAX_PROMPT_LENGTH]


@dataclass(frozen=True)
class UploadCheck:
    """Result of validating an uploaded file."""

    is_valid: bool
    error: str | None = None


def validate_image_upload(
    filename: str, content_type: str, size_bytes: int
) -> UploadCheck:
    if content_type not in ALLOWED_UPLOAD_TYPES:
        return UploadCheck(
            False, "Please upload a valid image file (JPEG, PNG, or WebP)"
        )
    if size_bytes > MAX_UPLOAD_BYTES:
        return UploadCheck(False, "File size must be less than 10MB")
    lowered = filename.lower()
    if any(extension in lowered for extension in SUSPICIOUS_EXTENSIONS):
        return UploadCheck(False, "Invalid file name detected")
    return UploadCheck(True)


@dataclass
class RateLimiter:
    """Sliding-window request limiter keyed by an identifier."""

    max_requests: int = 10
    window_seconds: float = 60
    clock: Clock = utc_now
    _requests: dict[str, list[int]] = field(default_factory=dict)

    def is_allowed(self, identifier: str) -> bool:
        """Record a request and return whether it fits in the window."""
        now_ms = epoch_ms(self.clock())
        recent = self._recent(identifier, now_ms)
        if len(recent) >= self.max_requests:
            self._requests[identifier] = recent
            return False
        recent.append(now_ms)
        self._requests[identifier] = recent
        return True

    def remaining(self, identifier: str) -> int:
        recent = self._recent(identifier, epoch_ms(self.clock()))
        return max(0, self.max_requests - len(recent))

    def _recent(self, identifier: str, now_ms: int) -> list[int]:
        window_ms = int(self.window_seconds * 1000)
        return [
            stamp
            for stamp in self._requests.get(identifier, [])
            if now_ms - stamp < window_ms
        ]


@dataclass(frozen=True)
class GateDecision:
    """Whether an edit may proceed, with the sanitized prompt or an error."""

    allowed: bool
    prompt: str = ""
    error: str | None = None


@dataclass
class EditGate:
    """Checks liveness, input, rate limit and credits before a remote edit."""

    identity: IdentityRegistry
    rate_limiter: RateLimiter
    credit_service: CreditService

    def check(
        self, prompt: str, hotspot: Hotspot | None, identifier: str = "user"
    ) -> GateDecision:
        if not self.identity.is_live():
            # Restart liveness only; saved snapshots must stay restorable.
            self.identity.initialize_liveness_session()
            return GateDecision(False, error="Session expired. Please refresh the page.")
        self.identity.touch_activity()

        sanitized = sanitize_prompt(prompt)
        if not sanitized:
            return GateDecision(
                False, error="Please enter a valid description for your edit."
            )
        if hotspot is None:
            return GateDecision(
                False, error="Please click on the image to select an area to edit."
            )
        if not self.rate_limiter.is_allowed(identifier):
            return GateDecision(
                False,
                error="Too many requests. Please wait a moment before trying again.",
            )
        if self.credit_service.cached_balance() <= 0:
            return GateDecision(
                False, error="No credits remaining. Purchase more to continue editing."
            )
        return GateDecision(True, prompt=sanitized)
