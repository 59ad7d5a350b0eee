"""Mention lookup on the X API v2 recent search endpoint (app bearer token)."""

import logging
from datetime import datetime
from functools import lru_cache
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from enduser.config import Settings, get_settings
from enduser.models import Mention

logger = logging.getLogger(__name__)

# Smallest page the search endpoint accepts
SEARCH_PAGE_SIZE = 10


class MentionRateLimitedError(Exception):
    """Mention lookup hit the platform rate limit (HTTP 429)."""


class MentionClient:
    """Reads the most recent mention of the bot handle."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize mention client.

        Args:
            settings: Settings override (defaults to environment settings)
            transport: Optional httpx transport (used by tests)
        """
        self.settings = settings or get_settings()
        self.base_url = self.settings.twitter_api_base.rstrip("/")
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create httpx client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Authorization": f"Bearer {self.settings.twitter_bearer_token}"},
                timeout=self.settings.fetch_timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @retry(
        retry=retry_if_exception_type((httpx.TransportError, httpx.TimeoutException)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _search(self, params: dict[str, Any]) -> dict[str, Any]:
        client = await self._get_client()
        response = await client.get("/2/tweets/search/recent", params=params)
        if response.status_code == 429:
            raise MentionRateLimitedError(response.text)
        response.raise_for_status()
        return response.json()

    async def latest_mention(self) -> Mention | None:
        """Fetch the newest tweet mentioning the bot.

        Returns:
            Newest mention, or None if there is none

        Raises:
            MentionRateLimitedError: On HTTP 429
            httpx.HTTPError: On any other request failure
        """
        if not self.settings.twitter_bearer_token:
            logger.warning("No bearer token configured, skipping mention lookup")
            return None

        params = {
            "query": f"@{self.settings.bot_handle} -is:retweet",
            "max_results": SEARCH_PAGE_SIZE,
            "expansions": "author_id",
            "tweet.fields": "created_at,author_id",
            "user.fields": "username",
        }
        data = await self._search(params)
        return self.parse_latest(data)

    @staticmethod
    def parse_latest(data: dict[str, Any]) -> Mention | None:
        """Build a Mention from the first tweet of a search response."""
        tweets = data.get("data") or []
        if not tweets:
            return None
        tweet = tweets[0]
        users = {user["id"]: user for user in (data.get("includes") or {}).get("users", [])}
        author_id = str(tweet.get("author_id", ""))
        author = users.get(author_id)
        if not author:
            logger.warning(f"Mention {tweet.get('id')} has no author in response, skipping")
            return None

        created_at = None
        if tweet.get("created_at"):
            created_at = datetime.fromisoformat(tweet["created_at"].replace("Z", "+00:00"))

        return Mention(
            id=str(tweet["id"]),
            text=tweet.get("text", ""),
            author_id=author_id,
            author_username=author["username"],
            created_at=created_at,
        )


@lru_cache()
def get_mention_client() -> MentionClient:
    """Get mention client instance (lazy init)."""
    return MentionClient()
