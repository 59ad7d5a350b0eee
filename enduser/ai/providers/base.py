"""LLM provider protocol interface."""

from typing import Protocol

from pydantic import BaseModel, Field


class LLMResponse(BaseModel):
    """LLM response model."""

    text: str = Field(..., description="Response text")
    tokens_used: int = Field(default=0, description="Total tokens used")


class LLMProvider(Protocol):
    """Protocol for LLM providers."""

    async def call(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = 256,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Call LLM with chat messages.

        Args:
            messages: List of message dicts with 'role' and 'content'
            max_tokens: Upper bound on generated tokens
            temperature: Sampling temperature (provider default when None)

        Returns:
            LLMResponse with text and tokens_used

        Raises:
            httpx.HTTPError: On API errors
        """
        ...

    async def health_check(self) -> bool:
        """Check if provider is available.

        Returns:
            True if provider is healthy, False otherwise
        """
        ...
