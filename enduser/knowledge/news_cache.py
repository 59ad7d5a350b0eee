"""Cached context data: trending crypto, Hacker News insights, weather.

Fetched at most once per freshness window and shared by tweet
generation and chat. A failing source yields an empty string and never
blocks a post.
"""

import asyncio
import logging
import re
import time
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable

import httpx
from pydantic import BaseModel, Field
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from enduser.ai.prompts import STORY_ANALYSIS_PROMPT
from enduser.ai.providers.base import LLMProvider
from enduser.ai.providers.workers_ai import get_llm_provider
from enduser.config import Settings, get_settings
from enduser.storage.base import KeyValueStore
from enduser.storage.redis import redis_storage

logger = logging.getLogger(__name__)

COINGECKO_TRENDING_URL = "https://api.coingecko.com/api/v3/search/trending"
HN_BASE_URL = "https://hacker-news.firebaseio.com/v0"
OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"

TECH_KEYWORDS = (
    "ai", "artificial intelligence", "machine learning", "neural", "gpt", "llm",
    "tech", "programming", "software", "startup", "algorithm", "data", "computer",
    "developer", "crypto", "blockchain", "security", "web", "app", "cloud", "api",
    "open source", "github", "show hn", "ask hn",
)
MIN_STORY_SCORE = 10
MAX_STORIES = 3

# WMO weather interpretation codes, coarse groups
WEATHER_CODES = {
    0: "clear sky",
    1: "mainly clear",
    2: "partly cloudy",
    3: "overcast",
    45: "fog",
    48: "fog",
    51: "drizzle",
    53: "drizzle",
    55: "drizzle",
    61: "rain",
    63: "rain",
    65: "heavy rain",
    71: "snow",
    73: "snow",
    75: "heavy snow",
    80: "rain showers",
    81: "rain showers",
    82: "violent rain showers",
    95: "thunderstorm",
}


class CacheKeys:
    CRYPTO = "news:crypto"
    TECH = "news:tech"
    WEATHER = "news:weather"
    LAST_UPDATE = "news:last_update_ms"


class CachedData(BaseModel):
    """Context strings for prompts."""

    crypto_data: str = Field(default="", description="Trending crypto summary")
    tech_insights: str = Field(default="", description="Hacker News insights")
    weather_data: str = Field(default="", description="Current weather summary")
    last_update: int = Field(default=0, description="Last refresh time (ms), 0 if never")

    @property
    def age_hours(self) -> int:
        if not self.last_update:
            return 0
        return int((time.time() * 1000 - self.last_update) // (60 * 60 * 1000))


@retry(
    retry=retry_if_exception_type((httpx.TransportError, httpx.TimeoutException)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    reraise=True,
)
async def _get_json(client: httpx.AsyncClient, url: str, params: dict[str, Any] | None = None) -> Any:
    """GET JSON with retry on transport errors."""
    response = await client.get(url, params=params)
    response.raise_for_status()
    return response.json()


def _clean_html(text: str, limit: int = 600) -> str:
    text = re.sub(r"<[^>]*>", " ", text)
    return re.sub(r"\s+", " ", text).strip()[:limit]


def _story_kind(title: str) -> str:
    title_lower = title.lower()
    if "ask hn" in title_lower:
        return "Ask HN"
    if "show hn" in title_lower:
        return "Show HN"
    return "Top Story"


def _is_tech_story(story: dict[str, Any]) -> bool:
    content = f"{story.get('title', '')} {story.get('text', '')}".lower()
    return any(keyword in content for keyword in TECH_KEYWORDS)


class NewsCache:
    """Fetches and caches prompt context in the key-value store."""

    def __init__(
        self,
        store: KeyValueStore,
        llm: LLMProvider,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize news cache.

        Args:
            store: Key-value store for cached strings
            llm: Provider used to summarise stories
            settings: Settings override (defaults to environment settings)
            transport: Optional httpx transport (used by tests)
            clock: Returns current Unix time in seconds
        """
        self.store = store
        self.llm = llm
        self.settings = settings or get_settings()
        self.clock = clock
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.fetch_timeout_seconds,
            transport=self._transport,
        )

    async def is_fresh(self) -> bool:
        """Check if cached data is within the freshness window."""
        last_update = await self.store.get(CacheKeys.LAST_UPDATE)
        if not last_update:
            return False
        try:
            age_ms = self.clock() * 1000 - int(last_update)
        except ValueError:
            return False
        return age_ms < self.settings.news_cache_hours * 60 * 60 * 1000

    async def fetch_crypto(self, client: httpx.AsyncClient) -> str:
        """Summarise the top trending coin on CoinGecko."""
        try:
            data = await _get_json(client, COINGECKO_TRENDING_URL)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error fetching crypto data: {e!r}")
            return ""

        try:
            coins = data.get("coins") or []
            if not coins:
                return ""
            top = coins[0].get("item") or {}
            price_change = (top.get("data") or {}).get("price_change_percentage_24h") or {}
            change = float(price_change.get("usd") or 0.0)
        except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Unexpected crypto payload: {e!r}")
            return ""
        direction = "up" if change > 0 else "down" if change < 0 else "flat"
        sign = "+" if change > 0 else ""
        return (
            f"Today's trending crypto: {top.get('name')} ({top.get('symbol')}) "
            f"{direction} {sign}{change:.2f}% (24h)"
        )

    async def fetch_weather(self, client: httpx.AsyncClient) -> str:
        """Summarise current conditions at the configured location."""
        params = {
            "latitude": self.settings.weather_latitude,
            "longitude": self.settings.weather_longitude,
            "current_weather": "true",
        }
        try:
            data = await _get_json(client, OPEN_METEO_URL, params=params)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error fetching weather data: {e!r}")
            return ""

        if not isinstance(data, dict):
            logger.error(f"Unexpected weather payload: {str(data)[:200]}")
            return ""
        current = data.get("current_weather")
        if not isinstance(current, dict):
            return ""
        conditions = WEATHER_CODES.get(current.get("weathercode"), "mixed conditions")
        return (
            f"Weather in {self.settings.weather_location_name}: {conditions}, "
            f"{current.get('temperature')}°C, wind {current.get('windspeed')} km/h"
        )

    async def _fetch_story_ids(self, client: httpx.AsyncClient, kind: str) -> list[int]:
        try:
            ids = await _get_json(client, f"{HN_BASE_URL}/{kind}.json")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Could not fetch HN {kind}: {e!r}")
            return []
        return ids if isinstance(ids, list) else []

    async def _fetch_story(self, client: httpx.AsyncClient, story_id: int) -> dict[str, Any] | None:
        try:
            story = await _get_json(client, f"{HN_BASE_URL}/item/{story_id}.json")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Could not fetch HN item {story_id}: {e!r}")
            return None
        if not isinstance(story, dict):
            return None
        if story.get("type") != "story" or not story.get("title") or story.get("deleted"):
            return None
        if not isinstance(story.get("score", 0), int) or story.get("score", 0) <= MIN_STORY_SCORE:
            return None
        return story

    async def _analyze_story(self, story: dict[str, Any]) -> str:
        title = story["title"]
        score = story.get("score", 0)
        posted = datetime.fromtimestamp(story.get("time", 0), tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
        details = [
            f"Type: {_story_kind(title)}",
            f"Title: {title}",
            f"Score: {score} points",
            f"Comments: {story.get('descendants', 0)}",
            f"Posted: {posted}",
            f"URL: {story.get('url') or 'Discussion only'}",
        ]
        if story.get("text"):
            details.append(f"Content: {_clean_html(story['text'])}")

        try:
            response = await self.llm.call(
                [{"role": "user", "content": STORY_ANALYSIS_PROMPT.format(story="\n".join(details))}],
                max_tokens=100,
            )
            insight = response.text.strip().strip("\"'")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error analyzing story {title!r}: {e!r}")
            kind = {
                "Ask HN": "community discussion",
                "Show HN": "community project showcase",
            }.get(_story_kind(title), "trending tech story")
            insight = f"{kind} gaining significant tech community attention"

        return f'"{title}" ({score}pts): {insight}'

    async def fetch_tech_insights(self, client: httpx.AsyncClient) -> str:
        """Pick a few tech stories from Hacker News and summarise each."""
        top_ids, ask_ids, show_ids = await asyncio.gather(
            self._fetch_story_ids(client, "topstories"),
            self._fetch_story_ids(client, "askstories"),
            self._fetch_story_ids(client, "showstories"),
        )
        if not top_ids:
            return "Unable to fetch latest tech stories at this time"

        # Two top stories, one Ask HN, one Show HN
        selected = top_ids[:2] + ask_ids[:1] + show_ids[:1]
        fetched = await asyncio.gather(*(self._fetch_story(client, sid) for sid in selected))
        stories = [story for story in fetched if story is not None]

        tech_stories = [story for story in stories if _is_tech_story(story)]
        if len(tech_stories) >= 2:
            final = tech_stories[:MAX_STORIES]
        else:
            final = sorted(stories, key=lambda s: s.get("score", 0), reverse=True)[:MAX_STORIES]

        if not final:
            return "Unable to fetch quality tech stories from Hacker News at this time"

        logger.info(f"Analyzing {len(final)} stories from Hacker News")
        insights = [await self._analyze_story(story) for story in final]
        return f"Latest tech insights from Hacker News: {' | '.join(insights)}"

    async def refresh(self) -> CachedData:
        """Fetch every source and overwrite the cache."""
        logger.info("Refreshing news cache")
        async with self._client() as client:
            crypto, tech, weather = await asyncio.gather(
                self.fetch_crypto(client),
                self.fetch_tech_insights(client),
                self.fetch_weather(client),
            )

        now_ms = int(self.clock() * 1000)
        await self.store.set(CacheKeys.CRYPTO, crypto)
        await self.store.set(CacheKeys.TECH, tech)
        await self.store.set(CacheKeys.WEATHER, weather)
        await self.store.set(CacheKeys.LAST_UPDATE, str(now_ms))

        return CachedData(crypto_data=crypto, tech_insights=tech, weather_data=weather, last_update=now_ms)

    async def read(self) -> CachedData:
        """Read cached strings without refreshing."""
        crypto = await self.store.get(CacheKeys.CRYPTO)
        tech = await self.store.get(CacheKeys.TECH)
        weather = await self.store.get(CacheKeys.WEATHER)
        last_update = await self.store.get(CacheKeys.LAST_UPDATE)
        return CachedData(
            crypto_data=crypto or "",
            tech_insights=tech or "",
            weather_data=weather or "",
            last_update=int(last_update) if last_update and last_update.isdigit() else 0,
        )

    async def get_cached_data(self) -> CachedData:
        """Get cached data, refreshing first if stale or missing."""
        if not await self.is_fresh():
            return await self.refresh()
        return await self.read()


@lru_cache()
def get_news_cache() -> NewsCache:
    """Get news cache wired to Redis (lazy init)."""
    return NewsCache(store=redis_storage, llm=get_llm_provider())
