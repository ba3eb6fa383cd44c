"""Image upload to the CDN (Bytescale)."""

import asyncio
import base64
import binascii
import re
from typing import Optional

import aiohttp
import structlog

from soonlist.models.config import SoonlistConfig

logger = structlog.get_logger(__name__)

_DATA_URL_PREFIX_RE = re.compile(r"^data:image/[\w.+-]+;base64,")


def decode_base64_image(base64_image: str) -> bytes:
    """Decode a bare or ``data:`` URL base64 image.

    Raises:
        binascii.Error: If the payload is not valid base64
    """
    return base64.b64decode(_DATA_URL_PREFIX_RE.sub("", base64_image), validate=True)


class CDNClient:
    """Best-effort image upload; failures yield None."""

    def __init__(self, upload_url: str, api_key: str, timeout: float = 30.0):
        self.upload_url = upload_url
        self.api_key = api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.logger = logger.bind(component="cdn_client")

    @classmethod
    def from_config(cls, config: SoonlistConfig) -> "CDNClient":
        return cls(upload_url=config.cdn_upload_url, api_key=config.cdn_api_key)

    @property
    def configured(self) -> bool:
        return bool(self.upload_url and self.api_key)

    async def upload_base64_image(self, base64_image: str) -> Optional[str]:
        """Upload a base64 image as WebP.

        Returns:
            Public file URL, or None if the upload failed
        """
        if not self.configured:
            self.logger.warning("CDN not configured, skipping image upload")
            return None

        try:
            data = decode_base64_image(base64_image)
        except (binascii.Error, ValueError) as e:
            self.logger.warning("Invalid base64 image", error=str(e))
            return None

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "image/webp",
        }

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            try:
                async with session.post(self.upload_url, data=data, headers=headers) as response:
                    if response.status >= 400:
                        self.logger.warning("Image upload failed", status=response.status)
                        return None
                    body = await response.json(content_type=None) or {}
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                self.logger.warning("Image upload failed", error=str(e))
                return None

        file_url = body.get("fileUrl")
        if file_url:
            self.logger.info("Image uploaded", file_url=file_url, size=len(data))
        return file_url
