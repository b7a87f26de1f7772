"""Self-describing encoded images (base64 data URLs)."""

import base64
import binascii
import re

SUPPORTED_IMAGE_FORMATS = ("png", "jpeg", "jpg", "webp", "gif")

ENCODED_IMAGE_PATTERN = re.compile(
    r"^data:image/(png|jpeg|jpg|webp|gif);base64,[A-Za-z0-9+/]+={0,2}$"
)


def is_encoded_image(value: object) -> bool:
    """Return True if the value is a data URL for a supported image format."""
    return isinstance(value, str) and ENCODED_IMAGE_PATTERN.match(value) is not None


def parse_encoded_image(data_url: str) -> tuple[str, bytes]:
    """Split a data URL into its MIME type and decoded bytes."""
    match = ENCODED_IMAGE_PATTERN.match(data_url)
    if match is None:
        raise ValueError("Not a supported encoded image")
    _, payload = data_url.split(",", 1)
    try:
        content = base64.b64decode(payload, validate=True)
    except binascii.Error as exc:
        raise ValueError("Encoded image payload is not valid base64") from exc
    return f"image/{match.group(1)}", content


def build_encoded_image(mime_type: str, content: bytes) -> str:
    """Encode raw image bytes as a data URL."""
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"
