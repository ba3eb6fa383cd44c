"""Readable-text extraction for web pages (Jina reader)."""

import asyncio

import aiohttp
import structlog

from soonlist.errors import BadRequestError
from soonlist.models.config import SoonlistConfig

logger = structlog.get_logger(__name__)

MIN_CONTENT_LENGTH = 100

_NETWORK_ERROR_MARKERS = (
    "failed to fetch",
    "network error",
    "dns resolution failed",
    "connection refused",
    "timeout",
)
_HTTP_ERROR_MARKERS = (
    "500 internal server error",
    "404 not found",
    "503 service unavailable",
    "error 500",
    "error 404",
)
_ROBOTS_MARKERS = ("disallow", "blocked", "not allowed")


def _is_robots_block(text: str) -> bool:
    lowered = text.lower()
    if "user-agent:" in lowered and "disallow:" in lowered:
        return True
    return "robots.txt" in lowered and any(marker in lowered for marker in _ROBOTS_MARKERS)


def check_page_text(url: str, text: str) -> None:
    """Reject reader output that is an error page, a robots.txt file or too short.

    Raises:
        BadRequestError: If the text carries no usable event content
    """
    lowered = text.lower()
    if any(marker in lowered for marker in _NETWORK_ERROR_MARKERS):
        raise BadRequestError("URL fetch failed: network error or invalid domain", data={"url": url})
    if any(marker in lowered for marker in _HTTP_ERROR_MARKERS):
        raise BadRequestError("URL returned an HTTP error page", data={"url": url})
    if _is_robots_block(text):
        raise BadRequestError("URL is blocked by robots.txt", data={"url": url})
    if len(text) < MIN_CONTENT_LENGTH:
        raise BadRequestError("Not enough text found at URL", data={"url": url, "length": len(text)})


class ReaderClient:
    """Fetch a URL as plain readable text."""

    def __init__(self, base_url: str = "https://r.jina.ai", timeout: float = 30.0):
        self.base_url = base_url.rstrip('/')
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.logger = logger.bind(component="reader_client")

    @classmethod
    def from_config(cls, config: SoonlistConfig) -> "ReaderClient":
        return cls(base_url=config.reader_base_url)

    async def fetch_text(self, url: str) -> str:
        """Fetch the readable text of ``url``.

        Raises:
            BadRequestError: If the page cannot be fetched or its text is
                an error page, a robots.txt file or too short to hold an event
        """
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            try:
                async with session.get(
                    f"{self.base_url}/{url}",
                    headers={"Accept": "text/plain"},
                ) as response:
                    text = await response.text()
                    status = response.status
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                self.logger.warning("Reader request failed", url=url, error=str(e))
                raise BadRequestError("Could not fetch URL", data={"url": url}, cause=e)

        if status >= 400:
            self.logger.warning("Reader returned error status", url=url, status=status)
            raise BadRequestError("Could not fetch URL", data={"url": url, "status": status})

        text = text.strip()
        if not text:
            raise BadRequestError("No text found at URL", data={"url": url})
        check_page_text(url, text)

        self.logger.debug("Fetched readable text", url=url, length=len(text))
        return text
