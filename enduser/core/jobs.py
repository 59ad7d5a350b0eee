"""Bot jobs: scheduled tweets, mention replies and cache refresh.

Shared by the HTTP triggers and the worker loop. Every post goes through
the gatekeeper; jobs never call the signed poster directly.
"""

import logging
import time
from functools import lru_cache
from typing import Callable

import httpx

from enduser.ai.providers.base import LLMProvider
from enduser.ai.providers.workers_ai import get_llm_provider
from enduser.config import Settings, get_settings
from enduser.content.composer import TweetComposer, get_tweet_composer, is_worthy_mention
from enduser.integrations.x.mentions import MentionClient, MentionRateLimitedError, get_mention_client
from enduser.knowledge.journal import JournalService, get_journal_service
from enduser.knowledge.news_cache import CachedData, NewsCache, get_news_cache
from enduser.models import ErrorKind, JobResult
from enduser.posting.gatekeeper import PostGatekeeper, get_post_gatekeeper
from enduser.storage.base import KeyValueStore
from enduser.storage.redis import redis_storage

logger = logging.getLogger(__name__)

MENTION_BACKOFF_KEY = "mention:rate_limit"


class BotJobs:
    """Job entry points, wired with their collaborators."""

    def __init__(
        self,
        gatekeeper: PostGatekeeper,
        composer: TweetComposer,
        journal: JournalService,
        mentions: MentionClient,
        news_cache: NewsCache,
        llm: LLMProvider,
        store: KeyValueStore,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.gatekeeper = gatekeeper
        self.composer = composer
        self.journal = journal
        self.mentions = mentions
        self.news_cache = news_cache
        self.llm = llm
        self.store = store
        self.settings = settings or get_settings()
        self.clock = clock

    async def run_scheduled_tweet(self, override_text: str | None = None) -> JobResult:
        """Compose and post the daily tweet, then journal it.

        Args:
            override_text: Post this body instead of a generated one

        Returns:
            JobResult describing the attempt
        """
        try:
            text, insights = await self.composer.compose_daily_tweet(override_text)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Daily tweet generation failed: {e!r}")
            return JobResult(ok=False, error=f"Tweet generation failed: {e}")

        if not text:
            logger.warning("Daily tweet generation produced no text")
            return JobResult(ok=False, error="No tweet text generated")

        result = await self.gatekeeper.post_message(text)
        job_result = JobResult.from_post(text, result)
        if result.ok:
            await self.journal.add_entry(insights, text)
            job_result.message = "Tweet posted and journal updated"
        return job_result

    async def run_good_night_tweet(self) -> JobResult:
        """Compose and post the evening reflection."""
        try:
            text = await self.composer.compose_good_night()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Good night tweet generation failed: {e!r}")
            return JobResult(ok=False, error=f"Tweet generation failed: {e}")

        if not text:
            return JobResult(ok=False, error="No good night text generated")

        result = await self.gatekeeper.post_message(text)
        job_result = JobResult.from_post(text, result)
        if result.ok:
            job_result.message = "Good night tweet posted"
        return job_result

    async def mention_backoff_active(self) -> bool:
        return await self.store.get(MENTION_BACKOFF_KEY) is not None

    async def check_mentions(self) -> JobResult:
        """Reply to the newest mention if it has not been answered yet."""
        if await self.mention_backoff_active():
            logger.info("Mention lookup in backoff, skipping")
            return JobResult(ok=True, message="Mention lookup backing off after rate limit")

        try:
            mention = await self.mentions.latest_mention()
        except MentionRateLimitedError:
            await self.store.set(
                MENTION_BACKOFF_KEY,
                str(int(self.clock() * 1000)),
                ex=self.settings.mention_backoff_seconds,
            )
            logger.warning(f"Mention lookup rate limited, backing off {self.settings.mention_backoff_seconds}s")
            return JobResult(
                ok=False,
                error_kind=ErrorKind.RATE_LIMITED,
                error="Mention lookup rate limited",
            )
        except httpx.HTTPError as e:
            logger.error(f"Mention lookup failed: {e!r}")
            return JobResult(ok=False, error_kind=ErrorKind.UPSTREAM_ERROR, error=str(e))

        if mention is None:
            return JobResult(ok=True, message="No mentions found")

        if mention.author_username.lower() == self.settings.bot_handle.lower():
            return JobResult(ok=True, message="Skipped own tweet")

        if await self.gatekeeper.has_responded(mention.id):
            return JobResult(ok=True, message=f"Already replied to {mention.id}")

        if not is_worthy_mention(mention.text):
            logger.info(f"Mention {mention.id} not worth a reply")
            return JobResult(ok=True, message=f"Skipped mention {mention.id}")

        reply = await self.composer.compose_mention_reply(mention)
        result = await self.gatekeeper.post_message(reply, reply_target_id=mention.id)
        job_result = JobResult.from_post(reply, result)
        if result.ok:
            job_result.message = f"Replied to @{mention.author_username}"
        return job_result

    async def refresh_cache(self) -> CachedData:
        """Force a refresh of the cached context data."""
        return await self.news_cache.refresh()

    async def chat(self, messages: list[dict[str, str]]) -> str:
        """Answer a chat conversation in persona.

        Raises:
            httpx.HTTPError: If the model call fails
            ValueError: If the model returns no text
        """
        system_prompt = await self.composer.chat_system_prompt()
        history = [m for m in messages if m.get("role") != "system"]
        response = await self.llm.call(
            [{"role": "system", "content": system_prompt}, *history],
            max_tokens=512,
        )
        return response.text


@lru_cache()
def get_bot_jobs() -> BotJobs:
    """Get jobs wired to the shared services (lazy init)."""
    return BotJobs(
        gatekeeper=get_post_gatekeeper(),
        composer=get_tweet_composer(),
        journal=get_journal_service(),
        mentions=get_mention_client(),
        news_cache=get_news_cache(),
        llm=get_llm_provider(),
        store=redis_storage,
    )
