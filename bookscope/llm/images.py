"""
Image references for LLM requests.

Images reach the model either as a remote URL or as a base64 data URI of
the raw bytes. Caller supplied bytes are always sent as a data URI.
"""

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Optional, Union

from bookscope.errors import InvalidImageError


DEFAULT_MEDIA_TYPE = "image/jpeg"

_DATA_URI_RE = re.compile(r"^data:(?P<media_type>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^;,]+)*?);base64,(?P<data>.*)$", re.DOTALL)

# Leading magic bytes of the formats vision models accept
_SIGNATURES = (
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


def sniff_media_type(image_bytes: bytes) -> str:
    """Guess the media type from magic bytes, defaulting to JPEG."""
    for signature, media_type in _SIGNATURES:
        if image_bytes.startswith(signature):
            return media_type
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return DEFAULT_MEDIA_TYPE


def to_data_uri(image_bytes: bytes, media_type: Optional[str] = None) -> str:
    """Encode raw image bytes as a base64 data URI."""
    if not image_bytes:
        raise InvalidImageError("Image is empty")
    media_type = media_type or sniff_media_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{media_type};base64,{encoded}"


def is_data_uri(url: str) -> bool:
    return url.startswith("data:")


def parse_data_uri(uri: str) -> tuple[str, str]:
    """
    Split a base64 data URI.

    Returns:
        (media_type, base64 payload)
    """
    match = _DATA_URI_RE.match(uri)
    if not match:
        raise InvalidImageError("Not a base64 data URI", detail=uri[:40])
    return match.group("media_type") or DEFAULT_MEDIA_TYPE, match.group("data")


def from_data_uri(uri: str) -> bytes:
    """Decode a base64 data URI back into raw bytes."""
    _, payload = parse_data_uri(uri)
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageError("Data URI payload is not valid base64", detail=str(e)) from e


@dataclass(frozen=True)
class ImageSource:
    """An image reference as carried in a user turn."""

    url: str
    detail: str = "high"

    @property
    def is_inline(self) -> bool:
        return is_data_uri(self.url)

    @classmethod
    def from_input(cls, image: Union[bytes, bytearray, str], detail: str = "high") -> "ImageSource":
        """Accept raw bytes, a data URI or a remote URL."""
        if isinstance(image, (bytes, bytearray)):
            return cls(url=to_data_uri(bytes(image)), detail=detail)
        if isinstance(image, str):
            image = image.strip()
            if not image:
                raise InvalidImageError("Image URL is empty")
            if is_data_uri(image):
                parse_data_uri(image)
            elif not image.startswith(("http://", "https://")):
                raise InvalidImageError("Image URL must be http(s) or a data URI", detail=image[:80])
            return cls(url=image, detail=detail)
        raise InvalidImageError(f"Unsupported image type: {type(image).__name__}")
