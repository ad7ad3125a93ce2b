# aravalli/imaging.py
import base64
import binascii
import io
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from .log import get_logger

logger = get_logger(__name__)


def decode_image_data_url(data_url: Optional[str]) -> Optional[Tuple[bytes, str]]:
    """Return (bytes, mime type) for a base64 `data:` URL holding a real image, else None."""
    if not data_url or not data_url.startswith("data:"):
        return None
    header, sep, payload = data_url.partition(",")
    if not sep or ";base64" not in header:
        return None
    try:
        image_bytes = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return None
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            img.verify()
            image_format = img.format
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        logger.info("Uploaded data is not a readable image: %s", e)
        return None
    mime_type = Image.MIME.get(image_format, "image/jpeg")
    return image_bytes, mime_type
