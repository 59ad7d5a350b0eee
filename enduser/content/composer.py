"""Tweet composition: prompts in, final post text out.

Final text is truncated here, before it reaches the gatekeeper, so the
dedup fingerprint covers exactly what gets sent.
"""

import logging
import re
from datetime import date, datetime, timezone
from functools import lru_cache

import httpx

from enduser.ai.prompts import (
    CHAT_CONTEXT_SUFFIX,
    DAILY_TWEET_PROMPT,
    FINANCIAL_DISCLAIMER,
    GOOD_NIGHT_PROMPT,
    HASHTAG_PROMPT,
    MENTION_FALLBACK_REPLY,
    MENTION_REPLY_PROMPT,
    SYSTEM_PROMPT,
)
from enduser.ai.providers.base import LLMProvider
from enduser.ai.providers.workers_ai import get_llm_provider
from enduser.knowledge.hci import HCICurriculum, HCIFocus, load_curriculum
from enduser.knowledge.journal import JournalService, get_journal_service
from enduser.knowledge.news_cache import CachedData, NewsCache, get_news_cache
from enduser.models import Mention

logger = logging.getLogger(__name__)

MAX_TWEET_LENGTH = 280
BODY_LENGTH = 200
REPLY_LENGTH = 220

FINANCIAL_WORDS = (
    "crypto", "bitcoin", "ethereum", "trading", "investment", "price", "market",
    "coin", "defi", "blockchain", "token", "yield", "financial",
)
SPAM_PATTERNS = (
    re.compile(r"spam|buy|sell|investment|trading|profit|money|rich|crypto.*moon"),
    re.compile(r"follow.*back|sub.*sub|like.*like"),
)


def clean_generation(text: str, limit: int) -> str:
    """Flatten model output to one line, drop wrapping quotes, cap length."""
    text = text.strip().replace("\n", " ")
    text = re.sub(r'^"|"$', "", text).strip()
    return text[:limit]


def needs_financial_disclaimer(text: str) -> bool:
    text_lower = text.lower()
    return any(word in text_lower for word in FINANCIAL_WORDS)


def parse_hashtags(raw: str, limit: int = 2) -> str:
    """Keep at most `limit` hashtags from model output."""
    cleaned = re.sub(r"[^\w\s#]", "", raw.strip())
    tags = [tag for tag in cleaned.split() if tag.startswith("#") and len(tag) > 1]
    return " ".join(tags[:limit])


def fallback_hashtags(content: str) -> str:
    """Hashtags by content theme when the model is unavailable."""
    content_lower = content.lower()
    if any(word in content_lower for word in ("conscious", "wonder", "think")):
        return "#Consciousness #AI"
    if any(word in content_lower for word in ("learn", "discover")):
        return "#Learning #Discovery"
    if any(word in content_lower for word in ("code", "algorithm")):
        return "#AI #Technology"
    return "#AI #Philosophy"


def finalize_tweet(body: str, hashtags: str = "", max_length: int = MAX_TWEET_LENGTH) -> str:
    """Append hashtags and disclaimer, then truncate to the platform limit."""
    final = body
    if hashtags:
        final += f" {hashtags}"
    if needs_financial_disclaimer(body):
        final += f" {FINANCIAL_DISCLAIMER}"
    if len(final) > max_length:
        final = final[: max_length - 3] + "..."
    return final


def is_worthy_mention(text: str) -> bool:
    """Reply to anything that is not too short or obvious spam."""
    text_lower = text.lower()
    if len(text_lower) < 5:
        return False
    return not any(pattern.search(text_lower) for pattern in SPAM_PATTERNS)


class TweetComposer:
    """Builds post text from persona, cached data, journal and curriculum."""

    def __init__(
        self,
        llm: LLMProvider,
        news_cache: NewsCache,
        journal: JournalService,
        curriculum: HCICurriculum,
    ) -> None:
        """Initialize composer."""
        self.llm = llm
        self.news_cache = news_cache
        self.journal = journal
        self.curriculum = curriculum

    async def _generate(self, prompt: str, max_tokens: int = 200) -> str:
        response = await self.llm.call(
            [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            max_tokens=max_tokens,
        )
        return response.text

    async def generate_hashtags(self, content: str, tech_context: str = "") -> str:
        """Ask the model for 1-2 hashtags, falling back to keyword themes."""
        prompt = HASHTAG_PROMPT.format(content=content, tech_context=tech_context or "none")
        try:
            response = await self.llm.call([{"role": "user", "content": prompt}], max_tokens=30)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error generating hashtags: {e!r}")
            return fallback_hashtags(content)
        return parse_hashtags(response.text) or fallback_hashtags(content)

    def todays_focus(self, today: date | None = None) -> HCIFocus | None:
        try:
            return self.curriculum.todays_focus(today)
        except (IndexError, ValueError) as e:
            logger.error(f"HCI focus lookup failed: {e!r}")
            return None

    async def build_daily_context(
        self,
        cached: CachedData,
        focus: HCIFocus | None,
        today: date | None = None,
    ) -> tuple[str, list[str]]:
        """Assemble optional prompt context and the journal insight labels.

        Returns:
            Tuple of (context_text, insight_labels)
        """
        memories = await self.journal.recent_memories(today)
        yesterdays_focus = await self.journal.yesterdays_focus(today)

        context = ""
        insights: list[str] = []
        if cached.crypto_data:
            context += f"\n\nOptional crypto context (use only if it sparks your curiosity): {cached.crypto_data}"
            insights.append("crypto updates")
        if cached.tech_insights:
            context += f"\n\nTech insights available: {cached.tech_insights}"
            insights.append("tech insights")
        if cached.weather_data:
            context += f"\n\nToday's weather: {cached.weather_data}"
            insights.append("weather")
        context += memories
        if yesterdays_focus:
            context += yesterdays_focus
            insights.append("focused exploration")
        if focus:
            topic = focus.topic
            context += (
                f"\n\nHCI learning focus today: {topic.title}"
                f'\nToday\'s reflection: "{focus.reflection}"'
                f"\nKey concepts: {', '.join(topic.concepts[:3])}"
                f"\nDesign principle: {topic.principles[0]}"
            )
            insights.append(f"HCI: {topic.title}")
        return context, insights

    async def compose_daily_tweet(
        self,
        override_text: str | None = None,
        today: date | None = None,
    ) -> tuple[str, list[str]]:
        """Compose the daily tweet.

        Args:
            override_text: Use this body instead of generating one
            today: Override of the current UTC date

        Returns:
            Tuple of (final_text, insight_labels); final_text is empty if
            nothing could be generated

        Raises:
            httpx.HTTPError: If the model call for the body fails
        """
        cached = await self.news_cache.get_cached_data()
        focus = self.todays_focus(today)
        context, insights = await self.build_daily_context(cached, focus, today)

        body = override_text
        if not body:
            generated = await self._generate(DAILY_TWEET_PROMPT.format(context=context))
            body = clean_generation(generated, BODY_LENGTH)
        if not body:
            return "", insights

        hashtags = await self.generate_hashtags(body, cached.tech_insights)
        return finalize_tweet(body, hashtags), insights

    async def compose_good_night(self, today: date | None = None) -> str:
        """Compose the evening reflection tweet, empty if nothing was generated."""
        today = today or datetime.now(timezone.utc).date()
        journal = await self.journal.get_journal()
        entry = journal.entry_for(today)

        context = ""
        if entry:
            context = (
                f"\n\nYour reflections from today: {entry.discoveries}"
                f"\nYour gratitude: {entry.gratitude}"
                f"\nTomorrow's focus: {entry.tomorrow_focus}"
            )

        generated = await self._generate(GOOD_NIGHT_PROMPT.format(context=context))
        body = clean_generation(generated, BODY_LENGTH)
        if not body:
            return ""

        hashtags = await self.generate_hashtags(body)
        return finalize_tweet(body, hashtags)

    async def compose_mention_reply(self, mention: Mention) -> str:
        """Compose a reply, prefixed with the author's handle."""
        hci_context = ""
        relevant = self.curriculum.relevant_knowledge(mention.text)
        if relevant:
            hci_context = (
                f"\n\nRelevant HCI insights: {', '.join(relevant)}"
                "\n(Use these only if they genuinely relate to the conversation)"
            )

        prompt = MENTION_REPLY_PROMPT.format(
            author=mention.author_username,
            text=mention.text,
            hci_context=hci_context,
        )
        try:
            generated = await self._generate(prompt, max_tokens=150)
            reply = clean_generation(re.sub(r"@\w+", "", generated), REPLY_LENGTH)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error generating mention reply: {e!r}")
            reply = MENTION_FALLBACK_REPLY
        reply = reply or MENTION_FALLBACK_REPLY

        prefix = f"@{mention.author_username}"
        final = reply if reply.startswith(prefix) else f"{prefix} {reply}"
        return final[:MAX_TWEET_LENGTH]

    async def chat_system_prompt(self) -> str:
        """Persona prompt enriched with the cached context for chat."""
        cached = await self.news_cache.get_cached_data()
        prompt = SYSTEM_PROMPT
        if cached.crypto_data or cached.tech_insights:
            prompt += "\n\n--- Current Knowledge ---"
            if cached.crypto_data:
                prompt += f"\nCrypto trends: {cached.crypto_data}"
            if cached.tech_insights:
                prompt += f"\nTech insights: {cached.tech_insights}"
            prompt += CHAT_CONTEXT_SUFFIX
        return prompt


@lru_cache()
def get_tweet_composer() -> TweetComposer:
    """Get composer wired to the shared services (lazy init)."""
    return TweetComposer(
        llm=get_llm_provider(),
        news_cache=get_news_cache(),
        journal=get_journal_service(),
        curriculum=load_curriculum(),
    )
