import logging
from io import BytesIO
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

HEADER_BYTES = 65536


def sniff_image_dimensions(data: bytes, mime_type: str) -> Optional[Tuple[int, int]]:
    """
    Read width and height from the start of an image payload.

    Pillow only parses the header on open, so a 64 KiB prefix is enough for
    the common formats. Returns None for non-images or unreadable headers.
    """
    if not mime_type.lower().startswith("image/"):
        return None
    header = data[:HEADER_BYTES]
    try:
        with Image.open(BytesIO(header)) as img:
            width, height = img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        logger.warning("Failed to parse image dimensions (%s): %s", mime_type, exc)
        return None
    return width, height
