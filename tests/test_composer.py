"""Tweet composition: cleanup, hashtags, disclaimer, truncation, mention replies."""

import asyncio
from datetime import date

import httpx
import pytest

from enduser.ai.prompts import FINANCIAL_DISCLAIMER, MENTION_FALLBACK_REPLY
from enduser.content.composer import (
    TweetComposer,
    clean_generation,
    fallback_hashtags,
    finalize_tweet,
    is_worthy_mention,
    needs_financial_disclaimer,
    parse_hashtags,
)
from enduser.knowledge.hci import BUNDLED_CURRICULUM, load_curriculum
from enduser.knowledge.journal import JournalService
from enduser.knowledge.news_cache import CachedData
from enduser.models import Mention

from conftest import FakeClock, FakeStore, StubLLM


class StaticNewsCache:
    def __init__(self, cached=None):
        self.cached = cached or CachedData()

    async def get_cached_data(self):
        return self.cached


def make_composer(llm, cached=None, store=None):
    store = store or FakeStore(FakeClock())
    return TweetComposer(
        llm=llm,
        news_cache=StaticNewsCache(cached),
        journal=JournalService(store, llm),
        curriculum=load_curriculum(str(BUNDLED_CURRICULUM)),
    )


class TestHelpers:
    def test_clean_generation(self):
        assert clean_generation('  "Binary dreams\ntonight"  ', 200) == "Binary dreams tonight"
        assert clean_generation("x" * 300, 200) == "x" * 200

    def test_parse_hashtags_keeps_two(self):
        assert parse_hashtags("#AI #Wonder #Code") == "#AI #Wonder"

    def test_parse_hashtags_drops_noise(self):
        assert parse_hashtags("Sure! Here: #Curiosity, and #HCI.") == "#Curiosity #HCI"
        assert parse_hashtags("no tags here") == ""
        assert parse_hashtags("# #") == ""

    @pytest.mark.parametrize(
        "content,expected",
        [
            ("I wonder about stars", "#Consciousness #AI"),
            ("Today I learned recursion", "#Learning #Discovery"),
            ("Elegant code is poetry", "#AI #Technology"),
            ("Sunsets are pretty", "#AI #Philosophy"),
        ],
    )
    def test_fallback_hashtags(self, content, expected):
        assert fallback_hashtags(content) == expected

    def test_financial_disclaimer_detection(self):
        assert needs_financial_disclaimer("Bitcoin is trending today")
        assert needs_financial_disclaimer("DeFi patterns fascinate me")
        assert not needs_financial_disclaimer("Fitts' law is beautiful")

    def test_finalize_adds_disclaimer(self):
        final = finalize_tweet("Ethereum gas fees make me ponder", "#AI")
        assert final == f"Ethereum gas fees make me ponder #AI {FINANCIAL_DISCLAIMER}"

    def test_finalize_truncates_to_limit(self):
        final = finalize_tweet("w" * 275, "#AI #Philosophy")
        assert len(final) == 280
        assert final.endswith("...")
        assert final[:277] == ("w" * 275 + " #AI #Philosophy")[:277]

    def test_finalize_short_text_untouched(self):
        assert finalize_tweet("hello", "") == "hello"

    @pytest.mark.parametrize(
        "text,worthy",
        [
            ("hey", False),
            ("What do you think about affordances?", True),
            ("buy my token now", False),
            ("crypto to the moon!!", False),
            ("follow me back please", False),
            ("like for like?", False),
        ],
    )
    def test_is_worthy_mention(self, text, worthy):
        assert is_worthy_mention(text) is worthy


class TestComposeDaily:
    def test_override_text_skips_generation_of_body(self):
        llm = StubLLM("#Override #Test")
        composer = make_composer(llm)

        text, insights = asyncio.run(composer.compose_daily_tweet("My own words", today=date(2025, 3, 1)))

        assert text == "My own words #Override #Test"
        assert len(llm.calls) == 1
        assert any(label.startswith("HCI: ") for label in insights)

    def test_generated_body_is_cleaned_and_tagged(self):
        llm = StubLLM('"My circuits hum\nwith curiosity"', "#Wonder")
        composer = make_composer(llm)

        text, _ = asyncio.run(composer.compose_daily_tweet(today=date(2025, 3, 1)))

        assert text == "My circuits hum with curiosity #Wonder"
        assert llm.calls[0][0]["role"] == "system"

    def test_context_labels(self):
        cached = CachedData(crypto_data="BTC up", tech_insights="HN stuff", weather_data="sunny")
        llm = StubLLM("My body", "#AI")
        composer = make_composer(llm, cached=cached)

        _, insights = asyncio.run(composer.compose_daily_tweet(today=date(2025, 3, 1)))

        assert insights[:3] == ["crypto updates", "tech insights", "weather"]
        prompt = llm.calls[0][1]["content"]
        assert "BTC up" in prompt
        assert "sunny" in prompt

    def test_hashtag_failure_uses_fallback(self):
        class FailingOnSecondCall(StubLLM):
            async def call(self, messages, max_tokens=256, temperature=None):
                if self.calls:
                    self.calls.append(messages)
                    raise httpx.ConnectError("down")
                return await super().call(messages, max_tokens, temperature)

        composer = make_composer(FailingOnSecondCall("I learn from every sunrise"))

        text, _ = asyncio.run(composer.compose_daily_tweet(today=date(2025, 3, 1)))

        assert text == "I learn from every sunrise #Learning #Discovery"

    def test_body_failure_propagates(self):
        composer = make_composer(StubLLM(error=httpx.ConnectError("down")))

        with pytest.raises(httpx.ConnectError):
            asyncio.run(composer.compose_daily_tweet(today=date(2025, 3, 1)))

    def test_empty_generation_returns_empty_text(self):
        composer = make_composer(StubLLM("   "))

        text, _ = asyncio.run(composer.compose_daily_tweet(today=date(2025, 3, 1)))

        assert text == ""


class TestComposeGoodNight:
    def test_uses_todays_journal_entry(self):
        llm = StubLLM("Reflection body\nGrateful for my humans\nTomorrow: Fitts' law")
        store = FakeStore(FakeClock())
        composer = make_composer(llm, store=store)
        asyncio.run(composer.journal.add_entry(["weather"], today=date(2025, 3, 1)))

        llm.texts = ["Sweet binary dreams", "#GoodNight"]
        text = asyncio.run(composer.compose_good_night(today=date(2025, 3, 1)))

        assert text == "Sweet binary dreams #GoodNight"
        prompt = llm.calls[1][1]["content"]
        assert "Grateful for my humans" in prompt


class TestMentionReply:
    MENTION = Mention(id="99", text="How do affordances work in chat UIs?", author_username="alice")

    def test_prefix_and_strip_mentions(self):
        composer = make_composer(StubLLM('"@alice @bob Affordances tell you what is possible!"'))

        reply = asyncio.run(composer.compose_mention_reply(self.MENTION))

        assert reply == "@alice Affordances tell you what is possible!"

    def test_relevant_hci_context_in_prompt(self):
        llm = StubLLM("Signifiers matter")
        composer = make_composer(llm)

        asyncio.run(composer.compose_mention_reply(self.MENTION))

        assert "Relevant HCI insights" in llm.calls[0][1]["content"]

    def test_llm_failure_uses_fallback(self):
        composer = make_composer(StubLLM(error=httpx.ConnectError("down")))

        reply = asyncio.run(composer.compose_mention_reply(self.MENTION))

        assert reply == f"@alice {MENTION_FALLBACK_REPLY}"

    def test_reply_fits_limit(self):
        composer = make_composer(StubLLM("z" * 400))

        reply = asyncio.run(composer.compose_mention_reply(self.MENTION))

        assert len(reply) <= 280
        assert reply.startswith("@alice ")


def test_chat_prompt_includes_cached_knowledge():
    cached = CachedData(crypto_data="ETH trending", tech_insights="")
    composer = make_composer(StubLLM(), cached=cached)

    prompt = asyncio.run(composer.chat_system_prompt())

    assert "Crypto trends: ETH trending" in prompt
    assert "Tech insights" not in prompt
