from typing import BinaryIO, Optional, Tuple
import logging
from PIL import Image, UnidentifiedImageError

from app.exceptions import (
    FileTooLargeException,
    InvalidImageException,
    UnsupportedMediaTypeException,
)

log = logging.getLogger(__name__)

# Allowed content types
ALLOWED_IMAGE_TYPES = {
    "image/jpeg",
    "image/png",
}

FORMAT_MIME_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
}

def check_mime_type(content_type: Optional[str]) -> str:
    """Rejects declared content types outside the allow-list."""
    if content_type not in ALLOWED_IMAGE_TYPES:
        log.warning("Rejected upload with content type %s", content_type)
        raise UnsupportedMediaTypeException()
    return content_type

def check_size(size: int, max_size: int) -> None:
    if size > max_size:
        log.warning("Rejected upload of %d bytes (max %d)", size, max_size)
        raise FileTooLargeException(max_size)

def probe_dimensions(stream: BinaryIO) -> Tuple[int, int, str]:
    """
        Decodes the image header and returns (width, height, mime_type).
        Raises InvalidImageException when the stream is not a usable JPEG or PNG.
    """
    try:
        with Image.open(stream) as img:
            width, height = img.size
            image_format = (img.format or "").upper()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, SyntaxError) as e:
        log.warning("Could not decode image: %s", e)
        raise InvalidImageException("Could not process image")

    mime_type = FORMAT_MIME_TYPES.get(image_format)
    if mime_type is None or width <= 0 or height <= 0:
        raise InvalidImageException("Invalid image file")
    return width, height, mime_type

def sniff_mime_type(data: bytes) -> Optional[str]:
    """Detects JPEG/PNG from the leading magic bytes."""
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    return None
