"""Cloudflare Workers AI provider (REST API)."""

import logging
from functools import lru_cache

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from enduser.ai.providers.base import LLMResponse
from enduser.config import Settings, get_settings

logger = logging.getLogger(__name__)


class WorkersAIProvider:
    """Workers AI chat model provider."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize Workers AI provider."""
        self.settings = settings or get_settings()
        self.api_token = self.settings.cloudflare_api_token
        self.model = self.settings.llm_model
        self.url = self.settings.workers_ai_url
        self._transport = transport
        # Persistent httpx client
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create persistent httpx client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=60.0, transport=self._transport)
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
    async def call(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = 256,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Run the configured model.

        Args:
            messages: List of message dicts with 'role' and 'content'
            max_tokens: Upper bound on generated tokens
            temperature: Sampling temperature (model default when None)

        Returns:
            LLMResponse with text and tokens_used

        Raises:
            httpx.HTTPError: On API errors
            ValueError: If the response has no text
        """
        payload: dict = {"messages": messages, "max_tokens": max_tokens}
        if temperature is not None:
            payload["temperature"] = temperature

        client = await self._get_client()
        response = await client.post(
            self.url,
            json=payload,
            headers={"Authorization": f"Bearer {self.api_token}"},
        )
        response.raise_for_status()
        data = response.json()

        if not data.get("success", True):
            raise ValueError(f"Workers AI call failed: {data.get('errors')}")

        result = data.get("result") or {}
        text = result.get("response")
        if text is None:
            raise ValueError("No response text in Workers AI result")

        usage = result.get("usage") or {}
        return LLMResponse(text=str(text), tokens_used=usage.get("total_tokens", 0))

    async def health_check(self) -> bool:
        """Check if Workers AI credentials are usable."""
        try:
            client = await self._get_client()
            response = await client.get(
                "https://api.cloudflare.com/client/v4/user/tokens/verify",
                headers={"Authorization": f"Bearer {self.api_token}"},
            )
            return response.status_code < 400
        except httpx.HTTPError as e:
            logger.warning(f"Workers AI health check failed: {e!r}")
            return False


@lru_cache()
def get_llm_provider() -> WorkersAIProvider:
    """Get Workers AI provider instance (lazy init)."""
    return WorkersAIProvider()
