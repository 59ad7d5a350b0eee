"""Pydantic v2 models for data boundaries."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from enduser.posting.fingerprint import compute_fingerprint


class ErrorKind(str, Enum):
    """Reasons a post attempt did not go through."""

    RATE_LIMITED = "rate-limited"
    DUPLICATE = "duplicate"
    ALREADY_HANDLED = "already-handled"
    INVALID = "invalid"
    UPSTREAM_ERROR = "upstream-error"
    TIMEOUT = "timeout"


class OutboundMessage(BaseModel):
    """Finished post text plus the optional tweet it replies to."""

    text: str = Field(..., description="Exact text that will be sent")
    reply_target_id: str | None = Field(default=None, description="Tweet ID this post replies to")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Construction time",
    )

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        """Reject empty or whitespace-only text."""
        if not v or not v.strip():
            raise ValueError("Post text must not be empty")
        return v

    @field_validator("reply_target_id")
    @classmethod
    def validate_reply_target(cls, v: str | None) -> str | None:
        """Treat an empty reply target as no reply."""
        return v or None

    @property
    def is_reply(self) -> bool:
        return self.reply_target_id is not None

    @property
    def fingerprint(self) -> str:
        return compute_fingerprint(self.text)


class PostResult(BaseModel):
    """Outcome of a post attempt, returned to callers instead of raising."""

    ok: bool = Field(..., description="True if the platform accepted the post")
    status_code: int | None = Field(default=None, description="Upstream HTTP status, if a request was made")
    body: str | None = Field(default=None, description="Raw upstream response body")
    error_kind: ErrorKind | None = Field(default=None, description="Failure reason when ok is False")
    message: str | None = Field(default=None, description="Human-readable detail")
    tweet_id: str | None = Field(default=None, description="ID of the created tweet")

    @classmethod
    def rejected(cls, error_kind: ErrorKind, message: str) -> "PostResult":
        """Policy rejection: no network call was made."""
        return cls(ok=False, error_kind=error_kind, message=message)


class Mention(BaseModel):
    """A tweet mentioning the bot."""

    id: str = Field(..., description="Tweet ID of the mention")
    text: str = Field(..., description="Mention text")
    author_id: str = Field(default="", description="Author user ID")
    author_username: str = Field(..., description="Author handle without @")
    created_at: datetime | None = Field(default=None, description="Mention creation time")


class JobResult(BaseModel):
    """Result of a scheduled or manually triggered job."""

    ok: bool
    text: str | None = None
    status_code: int | None = None
    body: str | None = None
    error_kind: ErrorKind | None = None
    error: str | None = None
    message: str | None = None

    @classmethod
    def from_post(cls, text: str, result: PostResult) -> "JobResult":
        return cls(
            ok=result.ok,
            text=text,
            status_code=result.status_code,
            body=result.body,
            error_kind=result.error_kind,
            error=None if result.ok else result.message,
        )
