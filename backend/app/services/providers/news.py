"""
News providers.

RSS feeds are fetched with httpx and parsed with fastfeedparser; Hacker News
uses its Firebase JSON API.
"""

import logging
from typing import Any, List, Optional
from urllib.parse import urlparse

import fastfeedparser
import httpx

from app.models.content import ContentCategory
from app.schemas.content import FetchedItem
from app.services.providers.base import (
    Provider,
    ProviderError,
    fetch_bytes,
    fetch_json,
    strip_html,
    truncate,
)

logger = logging.getLogger(__name__)


def entry_thumbnail(entry: Any) -> Optional[str]:
    """First media:content / media:thumbnail URL of a feed entry."""
    for key in ("media_thumbnail", "media_content"):
        media = entry.get(key)
        if isinstance(media, list) and media:
            url = media[0].get("url") if isinstance(media[0], dict) else None
            if url:
                return url
    return None


class RssFeedProvider(Provider):
    """Items from a single RSS/Atom feed."""

    feed_url: str = ""
    source_label: str = ""
    description_chars: Optional[int] = None

    async def _fetch(self, client: httpx.AsyncClient) -> List[FetchedItem]:
        content = await fetch_bytes(client, self.feed_url)

        try:
            # fastfeedparser raises ValueError for invalid XML
            feed = fastfeedparser.parse(content)
        except ValueError as e:
            raise ProviderError(f"Invalid feed at {self.feed_url}: {e}") from e

        items: List[FetchedItem] = []
        for entry in feed.entries:
            if len(items) >= self.max_items:
                break

            title = (entry.get("title") or "").strip()
            link = (entry.get("link") or "").strip()
            if not title or not link:
                continue

            summary = entry.get("description") or entry.get("summary")
            items.append(FetchedItem(
                source=self.source_label,
                category=self.category,
                title=title,
                url=link,
                thumbnail_url=entry_thumbnail(entry),
                description=truncate(strip_html(summary), self.description_chars),
            ))

        logger.info(f"Parsed {len(items)} entries from {self.name} feed")
        return items


class GoogleNewsProvider(RssFeedProvider):
    name = "google-news"
    category = ContentCategory.NEWS.value
    feed_url = "https://news.google.com/rss?hl=en-US&gl=US&ceid=US:en"
    source_label = "Google News"


class BbcNewsProvider(RssFeedProvider):
    name = "bbc-news"
    category = ContentCategory.NEWS.value
    feed_url = "https://feeds.bbci.co.uk/news/rss.xml"
    source_label = "BBC News"
    description_chars = 150


class HackerNewsProvider(Provider):
    """
    Top stories from Hacker News.

    One request for the id list, then one per story; a story that fails to
    load is skipped.
    """

    name = "hackernews"
    category = ContentCategory.NEWS.value

    API_BASE_URL = "https://hacker-news.firebaseio.com/v0"

    async def _fetch(self, client: httpx.AsyncClient) -> List[FetchedItem]:
        story_ids = await fetch_json(client, f"{self.API_BASE_URL}/topstories.json", expect=list)

        items: List[FetchedItem] = []
        for story_id in story_ids[: self.max_items]:
            try:
                story = await fetch_json(client, f"{self.API_BASE_URL}/item/{story_id}.json")
            except ProviderError as e:
                logger.debug(f"Skipping HN story {story_id}: {e}")
                continue

            if not isinstance(story, dict) or not story.get("title"):
                continue

            url = story.get("url") or f"https://news.ycombinator.com/item?id={story_id}"
            domain = urlparse(story["url"]).netloc if story.get("url") else "news.ycombinator.com"
            items.append(FetchedItem(
                source="HackerNews",
                category=self.category,
                title=story["title"],
                url=url,
                description=domain or "news.ycombinator.com",
            ))

        return items
