"""
Content providers.

``default_providers()`` returns the fixed, ordered list the crawl scheduler
walks. Order matters only in that each cycle starts at a random index and
wraps around.
"""

from typing import List

from app.services.providers.base import Provider, ProviderError, download_image, fetch_json, strip_html
from app.services.providers.jokes import (
    ChuckNorrisProvider,
    DadJokeProvider,
    JokeApiProvider,
    UselessFactsProvider,
)
from app.services.providers.news import BbcNewsProvider, GoogleNewsProvider, HackerNewsProvider
from app.services.providers.reddit import (
    GossipProvider,
    RedditMemeProvider,
    RedditVideoProvider,
    SubredditProvider,
)


def default_providers(**kwargs) -> List[Provider]:
    """The default provider set; ``kwargs`` are passed to every provider."""
    return [
        SubredditProvider.memes(**kwargs),
        SubredditProvider.dad_jokes(**kwargs),
        SubredditProvider.celebrity_gossip(**kwargs),
        DadJokeProvider(**kwargs),
        RedditMemeProvider(**kwargs),
        RedditVideoProvider(**kwargs),
        GossipProvider(**kwargs),
        GoogleNewsProvider(**kwargs),
        HackerNewsProvider(**kwargs),
        BbcNewsProvider(**kwargs),
    ]


__all__ = [
    "Provider",
    "ProviderError",
    "fetch_json",
    "download_image",
    "strip_html",
    "default_providers",
    "SubredditProvider",
    "RedditMemeProvider",
    "RedditVideoProvider",
    "GossipProvider",
    "DadJokeProvider",
    "JokeApiProvider",
    "UselessFactsProvider",
    "ChuckNorrisProvider",
    "GoogleNewsProvider",
    "BbcNewsProvider",
    "HackerNewsProvider",
]
