"""
Joke and trivia providers backed by small public JSON APIs.
"""

import logging
from typing import List

import httpx

from app.models.content import ContentCategory
from app.schemas.content import FetchedItem
from app.services.providers.base import Provider, fetch_json, truncate

logger = logging.getLogger(__name__)


class DadJokeProvider(Provider):
    """icanhazdadjoke.com search on a random topic."""

    name = "icanhazdadjoke"
    category = ContentCategory.JOKE.value

    SEARCH_URL = "https://icanhazdadjoke.com/search"
    TOPICS = ("work", "computer", "office", "coffee", "cat", "dog", "food", "money")

    async def _fetch(self, client: httpx.AsyncClient) -> List[FetchedItem]:
        topic = self.rng.choice(self.TOPICS)
        data = await fetch_json(
            client,
            self.SEARCH_URL,
            params={"term": topic, "limit": min(self.max_items, 5)},
            expect=dict,
        )

        items = [
            FetchedItem(
                source=self.name,
                category=self.category,
                title=joke["joke"],
                url=f"https://icanhazdadjoke.com/j/{joke['id']}",
                description=truncate(joke["joke"]),
            )
            for joke in data.get("results", [])
            if joke.get("id") and joke.get("joke")
        ]
        return items[: self.max_items]


class JokeApiProvider(Provider):
    """JokeAPI single-part jokes with the unsafe categories filtered out."""

    name = "jokeapi"
    category = ContentCategory.JOKE.value

    JOKES_URL = "https://v2.jokeapi.dev/joke/Any"

    async def _fetch(self, client: httpx.AsyncClient) -> List[FetchedItem]:
        data = await fetch_json(
            client,
            self.JOKES_URL,
            params={
                "type": "single",
                "amount": 10,
                "blacklistFlags": "nsfw,religious,political,racist,sexist,explicit",
            },
            expect=dict,
        )

        items: List[FetchedItem] = []
        for joke in data.get("jokes", []):
            text = joke.get("joke")
            if not text and joke.get("setup"):
                text = f"{joke['setup']} {joke.get('delivery') or ''}".strip()
            if not text or joke.get("id") is None:
                continue
            items.append(FetchedItem(
                source=self.name,
                category=self.category,
                title=text,
                url=f"https://sv443.net/jokeapi/v2/joke/Any?idRange={joke['id']}",
                description=truncate(text),
            ))
        return items[: self.max_items]


class UselessFactsProvider(Provider):
    """
    One random fact per call.

    Items are stored with the free-text category "fact", which the budget
    allocator costs as "other".
    """

    name = "uselessfacts"
    category = ContentCategory.JOKE.value

    FACT_URL = "https://uselessfacts.jsph.pl/random.json"

    async def _fetch(self, client: httpx.AsyncClient) -> List[FetchedItem]:
        fact = await fetch_json(client, self.FACT_URL, params={"language": "en"}, expect=dict)
        text = fact.get("text")
        if not text:
            return []
        return [FetchedItem(
            source=self.name,
            category="fact",
            title=text,
            url=fact.get("permalink") or f"https://uselessfacts.jsph.pl/{fact['id']}",
            description=truncate(text),
        )]


class ChuckNorrisProvider(Provider):
    """One random Chuck Norris joke per call."""

    name = "chucknorris"
    category = ContentCategory.JOKE.value

    JOKE_URL = "https://api.chucknorris.io/jokes/random"

    async def _fetch(self, client: httpx.AsyncClient) -> List[FetchedItem]:
        joke = await fetch_json(client, self.JOKE_URL, expect=dict)
        if not joke.get("value") or not joke.get("url"):
            return []
        return [FetchedItem(
            source=self.name,
            category=self.category,
            title=joke["value"],
            url=joke["url"],
            description=truncate(joke["value"]),
        )]
