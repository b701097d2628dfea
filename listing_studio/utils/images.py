"""Image and data-URL utilities."""

import base64
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from .errors import ImageProcessingError
from .logger import get_logger

logger = get_logger(__name__)

DEFAULT_MIME_TYPE = "image/png"


def is_data_url(value: str) -> bool:
    return value.startswith("data:")


def extract_base64_data(data_url: str) -> str:
    """
    Strip the ``data:<mime>;base64,`` prefix from a data URL.

    Plain base64 strings are returned unchanged.
    """
    if "," in data_url:
        return data_url.split(",", 1)[1]
    return data_url


def get_mime_type(data_url: str, default: str = DEFAULT_MIME_TYPE) -> str:
    """Read the MIME type from a data URL header."""
    if not is_data_url(data_url) or ";" not in data_url:
        return default
    mime_type = data_url[len("data:"):data_url.index(";")]
    return mime_type or default


def bytes_to_data_url(image_bytes: bytes, mime_type: str = DEFAULT_MIME_TYPE) -> str:
    """Wrap raw bytes into a ``data:`` URL."""
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def detect_mime_type(image_bytes: bytes) -> str:
    """
    Sniff the MIME type of raw image bytes.

    Raises:
        ImageProcessingError: If the bytes are not a readable image
    """
    try:
        with Image.open(BytesIO(image_bytes)) as image:
            image_format = image.format
    except (UnidentifiedImageError, OSError) as e:
        raise ImageProcessingError(f"Failed to identify image: {e}")

    mime_type = Image.MIME.get(image_format or "", DEFAULT_MIME_TYPE)
    logger.debug("Detected image type", extra={"format": image_format, "mime_type": mime_type})
    return mime_type
