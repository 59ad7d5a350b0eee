"""Signed poster: one OAuth-signed POST to the tweet create endpoint.

No retries, no truncation and no store writes here. Rate limiting and
dedup belong to the gatekeeper that wraps this client.
"""

import json
import logging
from functools import lru_cache

import httpx

from enduser.config import Settings, get_settings
from enduser.models import ErrorKind, PostResult
from enduser.posting.oauth import OAuthCredentials, build_authorization_header

logger = logging.getLogger(__name__)


class SignedPoster:
    """X API v2 tweet poster with OAuth 1.0a user-context signing."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize poster.

        Args:
            settings: Settings override (defaults to environment settings)
            transport: Optional httpx transport (used by tests)
        """
        self.settings = settings or get_settings()
        self.url = self.settings.tweets_url
        self.credentials = OAuthCredentials(
            consumer_key=self.settings.twitter_api_key,
            consumer_secret=self.settings.twitter_api_secret,
            access_token=self.settings.twitter_access_token,
            access_token_secret=self.settings.twitter_access_secret,
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create persistent httpx client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.post_timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def build_payload(text: str, reply_target_id: str | None = None) -> dict:
        """Build the JSON body for the tweet create call."""
        payload: dict = {"text": text}
        if reply_target_id:
            payload["reply"] = {"in_reply_to_tweet_id": reply_target_id}
        return payload

    async def post(self, text: str, reply_target_id: str | None = None) -> PostResult:
        """Sign and send one post.

        Args:
            text: Final post text (already within the length limit)
            reply_target_id: Tweet ID to reply to, if any

        Returns:
            PostResult; failures are reported, never raised
        """
        headers = {
            "Authorization": build_authorization_header(self.credentials, "POST", self.url),
            "Content-Type": "application/json",
        }
        client = await self._get_client()

        try:
            response = await client.post(
                self.url,
                content=json.dumps(self.build_payload(text, reply_target_id)),
                headers=headers,
            )
        except httpx.TimeoutException as e:
            logger.error(f"Tweet request timed out: {e!r}")
            return PostResult(
                ok=False,
                error_kind=ErrorKind.TIMEOUT,
                message=f"Request timed out after {self.settings.post_timeout_seconds}s",
            )
        except httpx.HTTPError as e:
            logger.error(f"Tweet request failed: {e!r}")
            return PostResult(ok=False, error_kind=ErrorKind.UPSTREAM_ERROR, message=str(e))

        body = response.text
        if not response.is_success:
            logger.error(f"Tweet failed: {response.status_code} {body}")
            return PostResult(
                ok=False,
                status_code=response.status_code,
                body=body,
                error_kind=ErrorKind.UPSTREAM_ERROR,
                message=f"Upstream returned HTTP {response.status_code}",
            )

        return PostResult(
            ok=True,
            status_code=response.status_code,
            body=body,
            tweet_id=self._extract_tweet_id(body),
        )

    @staticmethod
    def _extract_tweet_id(body: str) -> str | None:
        """Pull data.id out of a success body, tolerating odd payloads."""
        try:
            data = json.loads(body)
        except ValueError:
            return None
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            tweet_id = data["data"].get("id")
            return str(tweet_id) if tweet_id is not None else None
        return None


@lru_cache()
def get_signed_poster() -> SignedPoster:
    """Get signed poster instance (lazy init)."""
    return SignedPoster()
