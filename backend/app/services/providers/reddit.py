"""
Reddit providers.

All of them read the public ``/r/<subreddit>/hot.json`` listing (no OAuth),
skip NSFW and stickied posts, and link to the post's permalink so the item
identity is the Reddit thread rather than the hosted media.

Providers:
----------
- SubredditProvider: one fixed subreddit (memes, dadjokes, entertainment)
- RedditMemeProvider: a random meme subreddit per call, image posts only
- RedditVideoProvider: a random video subreddit per call, video posts only
- GossipProvider: a random entertainment subreddit per call
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence

import httpx

from app.models.content import ContentCategory
from app.schemas.content import FetchedItem
from app.services.providers.base import Provider, fetch_json, strip_html, truncate

logger = logging.getLogger(__name__)


REDDIT_BASE_URL = "https://www.reddit.com"

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")
IMAGE_HOSTS = ("i.redd.it", "i.imgur.com", "preview.redd.it")

# Values Reddit puts in ``thumbnail`` when there is no real thumbnail
PLACEHOLDER_THUMBNAILS = {"", "default", "self", "nsfw", "spoiler", "image"}


def is_image_url(url: str) -> bool:
    lowered = url.lower()
    return lowered.endswith(IMAGE_EXTENSIONS) or any(host in lowered for host in IMAGE_HOSTS)


def preview_image_url(post: Dict[str, Any]) -> Optional[str]:
    """First preview image source, if Reddit generated one."""
    images = (post.get("preview") or {}).get("images") or []
    if not images:
        return None
    url = (images[0].get("source") or {}).get("url")
    # Preview URLs come HTML-escaped in the JSON listing
    return url.replace("&amp;", "&") if url else None


def pick_thumbnail(post: Dict[str, Any]) -> Optional[str]:
    """
    Thumbnail preference: the linked image itself, then the listing
    thumbnail, then the preview image.
    """
    url = post.get("url") or ""
    if not post.get("is_self") and is_image_url(url):
        return url

    thumbnail = post.get("thumbnail") or ""
    if thumbnail.startswith("http") and thumbnail not in PLACEHOLDER_THUMBNAILS:
        return thumbnail

    return preview_image_url(post)


def iter_posts(listing: Any) -> Iterator[Dict[str, Any]]:
    """Yield the SFW, non-stickied posts of a listing that have a title and permalink."""
    children = ((listing or {}).get("data") or {}).get("children") or []
    for child in children:
        post = child.get("data") or {}
        if post.get("over_18") or post.get("stickied"):
            continue
        if not post.get("title") or not post.get("permalink"):
            continue
        yield post


def permalink_url(post: Dict[str, Any]) -> str:
    return f"https://reddit.com{post['permalink']}"


async def fetch_listing(client: httpx.AsyncClient, subreddit: str, limit: int = 10) -> Any:
    return await fetch_json(
        client,
        f"{REDDIT_BASE_URL}/r/{subreddit}/hot.json",
        params={"limit": limit},
        expect=dict,
    )


class SubredditProvider(Provider):
    """Hot posts of a single subreddit."""

    def __init__(self, subreddit: str, category: str, **kwargs):
        super().__init__(**kwargs)
        self.subreddit = subreddit
        self.name = subreddit
        self.category = category

    @classmethod
    def memes(cls, **kwargs) -> "SubredditProvider":
        return cls("memes", ContentCategory.MEME.value, **kwargs)

    @classmethod
    def dad_jokes(cls, **kwargs) -> "SubredditProvider":
        return cls("dadjokes", ContentCategory.JOKE.value, **kwargs)

    @classmethod
    def celebrity_gossip(cls, **kwargs) -> "SubredditProvider":
        return cls("entertainment", ContentCategory.GOSSIP.value, **kwargs)

    async def _fetch(self, client: httpx.AsyncClient) -> List[FetchedItem]:
        listing = await fetch_listing(client, self.subreddit, limit=10)

        items: List[FetchedItem] = []
        for post in iter_posts(listing):
            if len(items) >= self.max_items:
                break
            thumbnail = pick_thumbnail(post)
            items.append(FetchedItem(
                source=f"r/{self.subreddit}",
                category=self.category,
                title=post["title"],
                url=permalink_url(post),
                thumbnail_url=thumbnail,
                thumbnail_data=await self._thumbnail_data(client, thumbnail),
                description=truncate(strip_html(post.get("selftext_html")) or post.get("selftext")),
            ))

        logger.info(f"Fetched {len(items)} posts from r/{self.subreddit}")
        return items


class RandomSubredditProvider(Provider):
    """Picks one subreddit from ``subreddits`` at random on every call."""

    subreddits: Sequence[str] = ()
    listing_limit = 10

    def choose_subreddit(self) -> str:
        return self.rng.choice(list(self.subreddits))

    def accepts(self, post: Dict[str, Any]) -> bool:
        return True

    def thumbnail_for(self, post: Dict[str, Any]) -> Optional[str]:
        return pick_thumbnail(post)

    def source_label(self, subreddit: str) -> str:
        return f"r/{subreddit}"

    async def _fetch(self, client: httpx.AsyncClient) -> List[FetchedItem]:
        subreddit = self.choose_subreddit()
        listing = await fetch_listing(client, subreddit, limit=self.listing_limit)

        items: List[FetchedItem] = []
        for post in iter_posts(listing):
            if len(items) >= self.max_items:
                break
            if not self.accepts(post):
                continue
            thumbnail = self.thumbnail_for(post)
            items.append(FetchedItem(
                source=self.source_label(subreddit),
                category=self.category,
                title=post["title"],
                url=permalink_url(post),
                thumbnail_url=thumbnail,
                thumbnail_data=await self._thumbnail_data(client, thumbnail),
                description=None,
            ))

        logger.info(f"{self.name}: fetched {len(items)} posts from r/{subreddit}")
        return items


class RedditMemeProvider(RandomSubredditProvider):
    """Image posts from a random meme subreddit."""

    name = "reddit-memes"
    category = ContentCategory.MEME.value
    subreddits = ("dankmemes", "me_irl", "funny", "wholesomememes")

    def accepts(self, post: Dict[str, Any]) -> bool:
        return post.get("post_hint") == "image"

    def thumbnail_for(self, post: Dict[str, Any]) -> Optional[str]:
        url = post.get("url") or ""
        return url if url.startswith("http") else None


class RedditVideoProvider(RandomSubredditProvider):
    """Video posts (Reddit-hosted or YouTube links) from a random subreddit."""

    name = "reddit-videos"
    category = ContentCategory.VIDEO.value
    listing_limit = 25
    subreddits = (
        "videos", "Unexpected", "WhatCouldGoWrong", "ContagiousLaughter",
        "WinStupidPrizes", "IdiotsInCars", "InstantKarma", "JusticeServed",
        "PublicFreakout", "StreetFights", "TikTokCringe", "facepalm",
        "AnimalsBeingDerps", "aww", "punny", "me_irl",
    )

    def accepts(self, post: Dict[str, Any]) -> bool:
        return bool(post.get("is_video")) or "youtu" in (post.get("url") or "")

    def thumbnail_for(self, post: Dict[str, Any]) -> Optional[str]:
        thumbnail = post.get("thumbnail") or ""
        return thumbnail if thumbnail.startswith("http") else None


class GossipProvider(RandomSubredditProvider):
    """Entertainment news threads."""

    name = "gossip"
    category = ContentCategory.GOSSIP.value
    subreddits = ("entertainment", "popculturechat")

    def thumbnail_for(self, post: Dict[str, Any]) -> Optional[str]:
        thumbnail = post.get("thumbnail") or ""
        return thumbnail if thumbnail.startswith("http") else None

    def source_label(self, subreddit: str) -> str:
        return "gossip"
