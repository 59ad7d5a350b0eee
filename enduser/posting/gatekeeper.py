"""Post gatekeeper: rate limit, dedup and reply-once policy around the poster.

Every check re-reads the store; nothing is cached in-process between
attempts. The dedup guard is written with SET NX before the network call,
so two racing attempts with the same text cannot both send. The rate-limit
check has no such protection and is best-effort.
"""

import logging
import math
import time
from functools import lru_cache
from typing import Callable, Protocol

from pydantic import ValidationError

from enduser.config import Settings, get_settings
from enduser.models import ErrorKind, OutboundMessage, PostResult
from enduser.posting.client import get_signed_poster
from enduser.posting.fingerprint import RATE_LIMIT_KEY, get_dedup_key, get_response_key
from enduser.storage.base import KeyValueStore
from enduser.storage.redis import redis_storage

logger = logging.getLogger(__name__)


class Poster(Protocol):
    """Anything that can send a finished post."""

    async def post(self, text: str, reply_target_id: str | None = None) -> PostResult:
        ...


class PostGatekeeper:
    """Decides whether a post may be sent now and records the outcome."""

    def __init__(
        self,
        store: KeyValueStore,
        poster: Poster,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize gatekeeper.

        Args:
            store: Key-value store holding guards and markers
            poster: Signed poster performing the network call
            settings: Settings override (defaults to environment settings)
            clock: Returns current Unix time in seconds
        """
        self.store = store
        self.poster = poster
        self.settings = settings or get_settings()
        self.clock = clock

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    async def last_post_ms(self) -> int | None:
        """Timestamp (ms) of the last successful non-reply post."""
        value = await self.store.get(RATE_LIMIT_KEY)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Ignoring malformed rate limit value: {value!r}")
            return None

    async def remaining_interval_ms(self, now_ms: int | None = None) -> int:
        """Milliseconds until the next non-reply post is allowed (0 if allowed now)."""
        last = await self.last_post_ms()
        if last is None:
            return 0
        now_ms = self._now_ms() if now_ms is None else now_ms
        min_interval_ms = self.settings.min_post_interval_seconds * 1000
        return max(0, min_interval_ms - (now_ms - last))

    async def has_responded(self, target_id: str) -> bool:
        """Whether a reply to this target already succeeded."""
        return await self.store.get(get_response_key(target_id)) is not None

    def _validate(self, text: str, reply_target_id: str | None) -> OutboundMessage | PostResult:
        try:
            message = OutboundMessage(text=text, reply_target_id=reply_target_id)
        except ValidationError as e:
            return PostResult.rejected(ErrorKind.INVALID, e.errors()[0]["msg"])
        if len(message.text) > self.settings.max_post_length:
            return PostResult.rejected(
                ErrorKind.INVALID,
                f"Post is {len(message.text)} characters (max {self.settings.max_post_length})",
            )
        return message

    async def post_message(self, text: str, reply_target_id: str | None = None) -> PostResult:
        """Post text if policy allows it.

        Args:
            text: Final post text, already truncated by the caller
            reply_target_id: Tweet ID being replied to (replies skip the rate limit)

        Returns:
            PostResult with error_kind set on rejection or failure
        """
        checked = self._validate(text, reply_target_id)
        if isinstance(checked, PostResult):
            logger.warning(f"Rejected invalid post: {checked.message}")
            return checked
        message = checked

        now_ms = self._now_ms()
        fingerprint = message.fingerprint
        dedup_key = get_dedup_key(fingerprint)

        if message.is_reply and await self.has_responded(message.reply_target_id):
            logger.info(f"Already replied to {message.reply_target_id}, skipping")
            return PostResult.rejected(
                ErrorKind.ALREADY_HANDLED,
                f"Already replied to {message.reply_target_id}",
            )

        if await self.store.get(dedup_key) is not None:
            logger.info(f"Duplicate post blocked (fingerprint {fingerprint[:12]})")
            return PostResult.rejected(ErrorKind.DUPLICATE, "Identical text was posted recently")

        if not message.is_reply:
            remaining_ms = await self.remaining_interval_ms(now_ms)
            if remaining_ms > 0:
                minutes = math.ceil(remaining_ms / 60_000)
                logger.info(f"Rate limited, next post allowed in {minutes} min")
                return PostResult.rejected(
                    ErrorKind.RATE_LIMITED,
                    f"Rate limited: next post allowed in {minutes} minute(s)",
                )

        # Written before sending; kept even if the send fails
        acquired = await self.store.setnx(dedup_key, str(now_ms), ex=self.settings.dedup_ttl_seconds)
        if not acquired:
            logger.info(f"Lost dedup race (fingerprint {fingerprint[:12]})")
            return PostResult.rejected(ErrorKind.DUPLICATE, "Identical text is already being posted")

        result = await self.poster.post(message.text, message.reply_target_id)

        if not result.ok:
            logger.error(
                f"Post failed ({result.error_kind.value if result.error_kind else 'unknown'}): "
                f"status={result.status_code}"
            )
            return result

        if message.is_reply:
            await self.store.set(
                get_response_key(message.reply_target_id),
                str(now_ms),
                ex=self.settings.response_record_ttl_seconds,
            )
            logger.info(f"Replied to {message.reply_target_id} (tweet {result.tweet_id})")
        else:
            await self.store.set(RATE_LIMIT_KEY, str(now_ms))
            logger.info(f"Posted tweet {result.tweet_id}")

        return result


@lru_cache()
def get_post_gatekeeper() -> PostGatekeeper:
    """Get gatekeeper wired to Redis and the signed poster (lazy init)."""
    return PostGatekeeper(store=redis_storage, poster=get_signed_poster())
