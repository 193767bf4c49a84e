"""
Provider health deriver.

Health is not tracked explicitly anywhere: it is inferred from the last 24
hours of crawl diagnostics. For each known provider the events are scanned
newest first, looking for messages that mention the provider's name:

- the first ``crawl_success`` match marks the provider "ok" and ends the scan
- every error-severity match seen before that counts as a recent error and
  marks the provider "error"
- with no decisive match, the provider is "ok" if any item of its category
  was stored today (timestamp = today's date), otherwise "unknown"

This is a heuristic. With substring matching, short names that occur inside
longer ones ("memes" inside "reddit-memes", "gossip" inside "r/gossip")
attribute events to more than one provider. ``MatchMode.TOKEN`` restricts
matches to whole dash-separated tokens; substring remains the default.
"""

import enum
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Collection, Iterable, List, Optional, Sequence

from app.models.diagnostics import EventType, Severity
from app.schemas.diagnostics import ProviderStatus


@dataclass(frozen=True)
class KnownProvider:
    name: str
    category: str


KNOWN_PROVIDERS: Sequence[KnownProvider] = (
    KnownProvider("google-news", "news"),
    KnownProvider("dadjokes", "joke"),
    KnownProvider("reddit-memes", "meme"),
    KnownProvider("entertainment", "gossip"),
    KnownProvider("memes", "meme"),
    KnownProvider("gossip", "gossip"),
    KnownProvider("reddit-videos", "video"),
    KnownProvider("icanhazdadjoke", "joke"),
    KnownProvider("jokeapi", "joke"),
    KnownProvider("uselessfacts", "joke"),
    KnownProvider("chucknorris", "joke"),
    KnownProvider("hackernews", "news"),
    KnownProvider("bbc-news", "news"),
)


class MatchMode(str, enum.Enum):
    SUBSTRING = "substring"
    TOKEN = "token"


@dataclass(frozen=True)
class CrawlEvent:
    """The slice of a diagnostic event the deriver needs."""

    event_type: str
    severity: str
    message: str
    timestamp: datetime


def mentions(message: str, provider_name: str, mode: MatchMode = MatchMode.SUBSTRING) -> bool:
    """Whether ``message`` refers to ``provider_name`` (case-insensitive)."""
    text = message.lower()
    name = provider_name.lower()
    if mode == MatchMode.SUBSTRING:
        return name in text
    # Word characters and dashes both extend a token, so "memes" does not
    # match inside "reddit-memes" but does match "memes: 3 fetched"
    pattern = r"(?<![\w-])" + re.escape(name) + r"(?![\w-])"
    return re.search(pattern, text) is not None


def derive_status(
    provider: KnownProvider,
    events: Iterable[CrawlEvent],
    categories_with_items_today: Collection[str],
    today: date,
    match_mode: MatchMode = MatchMode.SUBSTRING,
) -> ProviderStatus:
    """
    Derive the status of one provider.

    Args:
        provider: Provider name and category
        events: Crawl events, newest first
        categories_with_items_today: Categories with at least one item
            stored for today's session
        today: Current session date
        match_mode: How messages are matched against the provider name
    """
    status = "unknown"
    timestamp: Optional[str] = None
    error_count = 0

    for event in events:
        if not mentions(event.message, provider.name, match_mode):
            continue

        if timestamp is None:
            timestamp = event.timestamp.isoformat()

        if event.event_type == EventType.CRAWL_SUCCESS:
            status = "ok"
            break
        if event.severity == Severity.ERROR.value:
            error_count += 1
            status = "error"

    if status == "unknown" and provider.category in categories_with_items_today:
        status = "ok"
        timestamp = today.isoformat()

    return ProviderStatus(
        provider_name=provider.name,
        category=provider.category,
        last_fetch_status=status,
        last_fetch_timestamp=timestamp,
        recent_error_count=error_count,
    )


def derive_provider_statuses(
    events: Sequence[CrawlEvent],
    categories_with_items_today: Collection[str],
    today: date,
    providers: Sequence[KnownProvider] = KNOWN_PROVIDERS,
    match_mode: MatchMode = MatchMode.SUBSTRING,
) -> List[ProviderStatus]:
    """Derive statuses for every known provider, in list order."""
    return [
        derive_status(provider, events, categories_with_items_today, today, match_mode)
        for provider in providers
    ]
