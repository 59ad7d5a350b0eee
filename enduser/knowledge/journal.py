"""Personal knowledge journal.

A rolling diary of daily reflections kept under a single store key. Recent
entries feed back into tomorrow's prompts.
"""

import logging
import time
from datetime import date, datetime, timedelta, timezone
from functools import lru_cache

import httpx
from pydantic import BaseModel, Field, ValidationError

from enduser.ai.prompts import JOURNAL_PROMPT
from enduser.ai.providers.base import LLMProvider
from enduser.ai.providers.workers_ai import get_llm_provider
from enduser.storage.base import KeyValueStore
from enduser.storage.redis import redis_storage

logger = logging.getLogger(__name__)

JOURNAL_KEY = "gpt-enduser:journal"
MAX_ENTRIES = 30


class JournalEntry(BaseModel):
    """One day's reflection."""

    date: str = Field(..., description="Entry date (YYYY-MM-DD, UTC)")
    insights: list[str] = Field(default_factory=list, description="Context sources used today")
    questions: list[str] = Field(default_factory=list, description="Questions for tomorrow")
    discoveries: str = Field(default="", description="Meaningful discovery of the day")
    tomorrow_focus: str = Field(default="", description="What to focus on tomorrow")
    gratitude: str = Field(default="", description="Gratitude note")
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000), description="Creation time (ms)")


class Journal(BaseModel):
    """Journal document, newest entry first."""

    entries: list[JournalEntry] = Field(default_factory=list)
    current_streak: int = Field(default=0, description="Consecutive days with an entry")
    total_entries: int = Field(default=0, description="Entries ever written")
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def entry_for(self, day: date) -> JournalEntry | None:
        """Get the entry written on a given day."""
        day_str = day.isoformat()
        for entry in self.entries:
            if entry.date == day_str:
                return entry
        return None


def parse_reflection(reflection: str) -> dict[str, str | list[str]]:
    """Split a free-form reflection into journal fields.

    First two lines become the discovery, the first line with a question
    mark the question, a line mentioning gratitude the gratitude note and
    the last line tomorrow's focus.
    """
    lines = [line.strip() for line in reflection.split("\n") if line.strip()]
    gratitude = next(
        (line for line in lines if "grateful" in line.lower() or "thankful" in line.lower()),
        "Grateful for another day of learning.",
    )
    return {
        "discoveries": " ".join(lines[:2]),
        "questions": [line for line in lines if "?" in line][:1],
        "gratitude": gratitude,
        "tomorrow_focus": lines[-1] if lines else "Continue exploring with curiosity.",
    }


class JournalService:
    """Reads and writes the journal in the key-value store."""

    def __init__(self, store: KeyValueStore, llm: LLMProvider) -> None:
        """Initialize journal service.

        Args:
            store: Key-value store holding the journal document
            llm: Provider used to write reflections
        """
        self.store = store
        self.llm = llm

    async def get_journal(self) -> Journal:
        """Load the journal, empty if missing or unreadable."""
        stored = await self.store.get(JOURNAL_KEY)
        if stored:
            try:
                return Journal.model_validate_json(stored)
            except ValidationError as e:
                logger.error(f"Stored journal is invalid, starting fresh: {e}")
        return Journal()

    async def save_journal(self, journal: Journal) -> None:
        await self.store.set(JOURNAL_KEY, journal.model_dump_json())

    async def _write_reflection(self, insights: list[str], tweet_text: str | None) -> str:
        tweet_line = f'Your tweet today: "{tweet_text}"\n' if tweet_text else ""
        prompt = JOURNAL_PROMPT.format(insights=", ".join(insights), tweet_line=tweet_line)
        response = await self.llm.call([{"role": "user", "content": prompt}], max_tokens=300)
        return response.text

    async def add_entry(
        self,
        insights: list[str],
        tweet_text: str | None = None,
        today: date | None = None,
    ) -> JournalEntry:
        """Write today's entry, replacing an existing one for the same day.

        Args:
            insights: Names of the context sources used today
            tweet_text: Text posted today, if any
            today: Override of the current UTC date

        Returns:
            The stored entry (a canned one if the LLM call fails)
        """
        today = today or datetime.now(timezone.utc).date()
        today_str = today.isoformat()
        journal = await self.get_journal()
        journal.entries = [entry for entry in journal.entries if entry.date != today_str]

        try:
            reflection = await self._write_reflection(insights, tweet_text)
            entry = JournalEntry(date=today_str, insights=insights, **parse_reflection(reflection))
            yesterday_str = (today - timedelta(days=1)).isoformat()
            if journal.entries and journal.entries[0].date == yesterday_str:
                journal.current_streak += 1
            else:
                journal.current_streak = 1
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Journal reflection failed, using fallback entry: {e!r}")
            entry = JournalEntry(
                date=today_str,
                insights=insights,
                questions=["What will tomorrow bring?"],
                discoveries="Another day of learning and growth.",
                tomorrow_focus="Stay curious and keep exploring.",
                gratitude="Grateful for the opportunity to learn.",
            )
            journal.current_streak = 1

        journal.entries.insert(0, entry)
        journal.entries = journal.entries[:MAX_ENTRIES]
        journal.total_entries += 1
        journal.last_updated = datetime.now(timezone.utc)

        await self.save_journal(journal)
        return entry

    async def recent_memories(self, today: date | None = None, limit: int = 5) -> str:
        """Prompt context built from the last few entries."""
        journal = await self.get_journal()
        if not journal.entries:
            return ""

        today_str = (today or datetime.now(timezone.utc).date()).isoformat()
        memories = "\n\nYour recent journal memories:"
        for entry in journal.entries[:limit]:
            label = date.fromisoformat(entry.date).strftime("%a, %b %d")
            memories += f"\n{label}: {entry.discoveries}"
            if entry.tomorrow_focus and entry.date != today_str:
                memories += f"\n  Focus: {entry.tomorrow_focus}"

        if journal.current_streak > 1:
            memories += f"\n\nYou're on a {journal.current_streak}-day learning streak!"
        return memories

    async def yesterdays_focus(self, today: date | None = None) -> str:
        """Prompt context with what yesterday's entry planned for today."""
        journal = await self.get_journal()
        today = today or datetime.now(timezone.utc).date()
        entry = journal.entry_for(today - timedelta(days=1))
        if entry and entry.tomorrow_focus:
            return f"\n\nYesterday you wanted to focus on: {entry.tomorrow_focus}"
        return ""


@lru_cache()
def get_journal_service() -> JournalService:
    """Get journal service wired to Redis (lazy init)."""
    return JournalService(store=redis_storage, llm=get_llm_provider())
