import io
import math

from loguru import logger
from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel

from stylecheck.core.config import settings

# (longest side in px, JPEG quality)
FIRST_PASS = (1280, 75)
SECOND_PASS = (1024, 70)


class PayloadTooLargeError(ValueError):
    pass


class InvalidImageError(ValueError):
    pass


class PreparedImage(BaseModel):
    data: bytes
    mime_type: str = "image/jpeg"
    passes: int
    base64_size: int


def base64_size(num_bytes: int) -> int:
    return 4 * math.ceil(num_bytes / 3)


def _compress(image: Image.Image, max_side: int, quality: int) -> bytes:
    resized = image.copy()
    resized.thumbnail((max_side, max_side))
    if resized.mode not in ("RGB", "L"):
        resized = resized.convert("RGB")
    buffer = io.BytesIO()
    resized.save(buffer, format="JPEG", quality=quality, optimize=True)
    return buffer.getvalue()


def prepare_image_payload(
    raw: bytes,
    max_payload_bytes: int = settings.SIGNAL_MAX_PAYLOAD_BYTES,
    second_pass_bytes: int = settings.SIGNAL_SECOND_PASS_BYTES,
) -> PreparedImage:
    """
    Compress an image for upload, at most twice.

    The first pass always runs. A second, more aggressive pass runs only when
    the first result is above ``second_pass_bytes`` (base64 size). If the
    result is still above ``max_payload_bytes`` the image is rejected.

    Raises:
        InvalidImageError: the bytes are not a readable image
        PayloadTooLargeError: still oversized after both passes
    """
    try:
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise InvalidImageError(f"Unreadable image: {exc}") from exc

    data = _compress(image, *FIRST_PASS)
    passes = 1
    if base64_size(len(data)) > second_pass_bytes:
        logger.debug(f"First pass payload {base64_size(len(data))} bytes, running second pass")
        data = _compress(image, *SECOND_PASS)
        passes = 2

    size = base64_size(len(data))
    if size > max_payload_bytes:
        raise PayloadTooLargeError(f"Image payload {size} bytes exceeds {max_payload_bytes} after {passes} passes")
    return PreparedImage(data=data, passes=passes, base64_size=size)
