"""
Provider base class and shared HTTP helpers.

A provider maps one outbound HTTP call (or a small fan-out) to zero or more
FetchedItem objects. Providers hold no state between calls; the scheduler
passes in the shared httpx.AsyncClient.

``Provider.fetch()`` never raises for network or parse failures: subclasses
implement ``_fetch()`` and may raise ProviderError / httpx errors freely, the
base class logs them and returns an empty list. The caller records the empty
result as a crawl warning.
"""

import base64
import logging
import random
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import httpx
from bs4 import BeautifulSoup

from app.core.config import settings
from app.schemas.content import FetchedItem

logger = logging.getLogger(__name__)


# Browser-like UA for image hosts that refuse unknown clients
IMAGE_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


# ========================================
# Custom Exceptions
# ========================================


class ProviderError(Exception):
    """Raised when a provider request or response is unusable."""
    pass


# ========================================
# HTTP Helpers
# ========================================


async def fetch_json(
    client: httpx.AsyncClient,
    url: str,
    params: Optional[dict] = None,
    headers: Optional[dict] = None,
    expect: Optional[type] = None,
) -> Any:
    """
    GET a URL and decode the JSON body.

    Args:
        expect: When set, the decoded body must be an instance of this type

    Raises:
        ProviderError: On transport errors, non-2xx responses, invalid JSON
            or a body of the wrong shape
    """
    request_headers = {"User-Agent": settings.HTTP_USER_AGENT, "Accept": "application/json"}
    if headers:
        request_headers.update(headers)

    try:
        response = await client.get(url, params=params, headers=request_headers)
    except httpx.HTTPError as e:
        raise ProviderError(f"Request to {url} failed: {e}") from e

    if not response.is_success:
        raise ProviderError(f"{url} returned HTTP {response.status_code}")

    try:
        data = response.json()
    except ValueError as e:
        raise ProviderError(f"Invalid JSON from {url}: {e}") from e

    if expect is not None and not isinstance(data, expect):
        raise ProviderError(f"Unexpected {type(data).__name__} body from {url}")
    return data


async def fetch_bytes(
    client: httpx.AsyncClient,
    url: str,
    headers: Optional[dict] = None,
) -> bytes:
    """GET a URL and return the raw body (RSS feeds)."""
    request_headers = {"User-Agent": settings.HTTP_USER_AGENT}
    if headers:
        request_headers.update(headers)

    try:
        response = await client.get(url, headers=request_headers)
    except httpx.HTTPError as e:
        raise ProviderError(f"Request to {url} failed: {e}") from e

    if not response.is_success:
        raise ProviderError(f"{url} returned HTTP {response.status_code}")

    return response.content


def guess_image_mime(url: str) -> str:
    lowered = url.lower()
    if ".png" in lowered:
        return "image/png"
    if ".gif" in lowered:
        return "image/gif"
    if ".webp" in lowered:
        return "image/webp"
    return "image/jpeg"


async def download_image(client: httpx.AsyncClient, url: str) -> Optional[str]:
    """
    Download an image and inline it as a ``data:`` URI.

    Returns None on any failure; a missing thumbnail never drops the item.
    """
    try:
        response = await client.get(
            url,
            headers={"User-Agent": IMAGE_USER_AGENT, "Referer": "https://www.reddit.com/"},
        )
    except httpx.HTTPError as e:
        logger.debug(f"Thumbnail download failed for {url}: {e}")
        return None

    if not response.is_success:
        logger.debug(f"Thumbnail download for {url} returned HTTP {response.status_code}")
        return None

    encoded = base64.b64encode(response.content).decode("ascii")
    return f"data:{guess_image_mime(url)};base64,{encoded}"


def strip_html(html_text: Optional[str]) -> str:
    """Clean HTML tags from text."""
    if not html_text:
        return ""

    soup = BeautifulSoup(html_text, "lxml")
    return soup.get_text(separator=" ", strip=True)


def truncate(text: Optional[str], max_chars: Optional[int] = None) -> Optional[str]:
    """Cut text to ``max_chars`` characters; empty text becomes None."""
    if not text:
        return None
    limit = settings.DESCRIPTION_MAX_CHARS if max_chars is None else max_chars
    return text[:limit]


# ========================================
# Provider Base Class
# ========================================


class Provider(ABC):
    """
    Base class for content providers.

    Subclasses set ``name`` and ``category`` and implement ``_fetch()``.

    Attributes:
        name: Stable provider name; crawl diagnostics mention it, and the
            provider health view matches on it
        category: Category of the items it produces
    """

    name: str = ""
    category: str = ""

    def __init__(
        self,
        max_items: Optional[int] = None,
        download_thumbnails: Optional[bool] = None,
        rng: Optional[random.Random] = None,
    ):
        self.max_items = settings.PROVIDER_MAX_ITEMS if max_items is None else max_items
        self.download_thumbnails = (
            settings.DOWNLOAD_THUMBNAILS if download_thumbnails is None else download_thumbnails
        )
        self.rng = rng or random.Random()

    async def fetch(self, client: httpx.AsyncClient) -> List[FetchedItem]:
        """
        Fetch candidate items.

        Returns:
            Fetched items, or an empty list if the source was unreachable or
            returned something unparseable
        """
        try:
            return await self._fetch(client)
        except (ProviderError, httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Provider {self.name} fetch failed: {e}")
            return []

    @abstractmethod
    async def _fetch(self, client: httpx.AsyncClient) -> List[FetchedItem]:
        ...

    async def _thumbnail_data(self, client: httpx.AsyncClient, url: Optional[str]) -> Optional[str]:
        if not url or not self.download_thumbnails:
            return None
        return await download_image(client, url)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, category={self.category!r})"
