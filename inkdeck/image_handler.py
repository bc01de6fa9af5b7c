"""
This module contains the ImageHandler class for decoding and probing
attachments.
"""
import base64
import binascii
import io
import logging
from typing import Dict, Optional, Tuple

from PIL import Image

from .models import FileAttachment

logger = logging.getLogger(__name__)

MAX_ATTACHMENT_BYTES = 50 * 1024 * 1024


class ImageHandler:
    """Handles attachment decoding, caching, and dimension probing"""

    def __init__(self):
        self._cache: Dict[str, bytes] = {}

    @staticmethod
    def decode_data_url(data_url: str) -> bytes:
        """
        Decode a base64 data URL into raw bytes

        Args:
            data_url: ``data:<mime>;base64,<payload>`` string

        Returns:
            Decoded payload

        Raises:
            ValueError: if the URL is not a base64 data URL
        """
        header, sep, payload = data_url.partition(',')
        if not sep or not header.startswith('data:') or ';base64' not in header:
            raise ValueError("Not a base64 data URL")
        try:
            return base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Corrupt base64 payload: {e}") from e

    def get_bytes(self, attachment: FileAttachment) -> bytes:
        cached = self._cache.get(attachment.id)
        if cached is None:
            cached = self.decode_data_url(attachment.data_url)
            if len(cached) > MAX_ATTACHMENT_BYTES:
                raise ValueError(f"Attachment {attachment.id} too large: {len(cached)} bytes")
            self._cache[attachment.id] = cached
        return cached

    def load_image(self, attachment: FileAttachment) -> Image.Image:
        """Open an attachment as a fully loaded RGBA Pillow image"""
        with Image.open(io.BytesIO(self.get_bytes(attachment))) as img:
            img.load()
            return img.convert('RGBA')

    def get_image_info(self, attachment: FileAttachment) -> Optional[Tuple[int, int]]:
        """
        Get image dimensions without decoding the full raster

        Args:
            attachment: The attachment to measure

        Returns:
            Tuple of (width, height) or None if the payload is not an image
        """
        try:
            with Image.open(io.BytesIO(self.get_bytes(attachment))) as img:
                return img.size
        except (ValueError, OSError) as e:
            logger.error("Error reading image info for %s: %s", attachment.id, str(e))
            return None

    def clear_cache(self):
        count = len(self._cache)
        self._cache.clear()
        logger.info("Cleared %d cached attachments", count)
