"""Helpers for the inline (data URL / base64) photo payloads carried by complaints."""
import base64
import binascii
import io
from typing import Tuple

from PIL import Image, UnidentifiedImageError

ALLOWED_IMAGE_MIME_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}
DEFAULT_MIME_TYPE = "image/jpeg"


class ImagePayloadError(ValueError):
    """Raised when a photo payload cannot be decoded into image bytes."""


def _fail_if(condition: bool, message: str) -> None:
    if condition:
        raise ImagePayloadError(message)


def split_data_url(payload: str) -> Tuple[str | None, str]:
    """Return (declared mime type, base64 body) for a data URL or a bare base64 string."""
    _fail_if(not payload or not isinstance(payload, str), "No image provided")
    text = payload.strip()
    if text.startswith("data:") and "," in text:
        header, body = text.split(",", 1)
        declared = header[len("data:"):].split(";", 1)[0].strip().lower()
        return declared or None, body
    return None, text


def sniff_mime_type(image_bytes: bytes) -> str:
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            fmt = img.format
    except (UnidentifiedImageError, OSError) as exc:
        raise ImagePayloadError("Invalid image data") from exc
    return Image.MIME.get(fmt or "", DEFAULT_MIME_TYPE)


def decode_image_payload(payload: str) -> Tuple[bytes, str]:
    """Decode a photo payload into raw bytes plus the MIME type to send upstream.

    The header of a data URL is trusted when it names a supported image type;
    bare base64 strings are sniffed with Pillow.
    """
    declared, body = split_data_url(payload)
    try:
        image_bytes = base64.b64decode(body, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ImagePayloadError("Invalid base64 image payload") from exc
    _fail_if(not image_bytes, "Empty image payload")

    if declared in ALLOWED_IMAGE_MIME_TYPES:
        return image_bytes, declared
    _fail_if(declared is not None and not declared.startswith("image/"), "Payload is not an image")
    return image_bytes, sniff_mime_type(image_bytes)
