"""Mention lookup against a mocked search endpoint."""

import asyncio

import httpx
import pytest

from enduser.integrations.x.mentions import MentionClient, MentionRateLimitedError

from conftest import make_settings

SEARCH_RESPONSE = {
    "data": [
        {
            "id": "1900",
            "text": "@GPTEndUser what is a mental model?",
            "author_id": "77",
            "created_at": "2025-05-01T12:00:00.000Z",
        },
        {"id": "1899", "text": "@GPTEndUser older", "author_id": "78"},
    ],
    "includes": {"users": [{"id": "77", "username": "alice"}, {"id": "78", "username": "bob"}]},
}


def run_lookup(handler, **settings_overrides):
    client = MentionClient(settings=make_settings(**settings_overrides), transport=httpx.MockTransport(handler))

    async def go():
        try:
            return await client.latest_mention()
        finally:
            await client.close()

    return asyncio.run(go())


def test_latest_mention_parsed():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=SEARCH_RESPONSE)

    mention = run_lookup(handler)

    assert mention.id == "1900"
    assert mention.author_username == "alice"
    assert mention.created_at.year == 2025
    request = seen[0]
    assert request.url.path == "/2/tweets/search/recent"
    assert request.url.params["query"] == "@GPTEndUser -is:retweet"
    assert request.headers["Authorization"] == "Bearer test-bearer"


def test_no_mentions():
    mention = run_lookup(lambda request: httpx.Response(200, json={"meta": {"result_count": 0}}))

    assert mention is None


def test_rate_limited():
    with pytest.raises(MentionRateLimitedError):
        run_lookup(lambda request: httpx.Response(429, text="Too Many Requests"))


def test_other_errors_raise_http_error():
    with pytest.raises(httpx.HTTPStatusError):
        run_lookup(lambda request: httpx.Response(401, text="Unauthorized"))


def test_no_bearer_token_skips_lookup():
    def handler(request):
        raise AssertionError("no request expected")

    assert run_lookup(handler, twitter_bearer_token="") is None


def test_missing_author_is_skipped():
    data = {"data": [{"id": "1", "text": "hi", "author_id": "5"}]}

    assert MentionClient.parse_latest(data) is None
