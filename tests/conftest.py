"""
Pytest configuration and shared fakes.

Credentials are set BEFORE any enduser imports so get_settings() works
without a .env file.
"""
import fnmatch
import os

os.environ.setdefault("TWITTER_API_KEY", "test-consumer-key")
os.environ.setdefault("TWITTER_API_SECRET", "test-consumer-secret")
os.environ.setdefault("TWITTER_ACCESS_TOKEN", "test-access-token")
os.environ.setdefault("TWITTER_ACCESS_SECRET", "test-access-secret")

import pytest

from enduser.ai.providers.base import LLMResponse
from enduser.config import Settings
from enduser.models import ErrorKind, PostResult
from enduser.posting.gatekeeper import PostGatekeeper

START_TIME = 1_700_000_000.0


class FakeClock:
    """Controllable Unix-time clock (seconds)."""

    def __init__(self, start: float = START_TIME):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStore:
    """In-memory key-value store with TTL driven by a FakeClock."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.data: dict[str, tuple[str, float | None]] = {}
        self.set_calls: list[tuple[str, str, int | None]] = []

    def _live(self, key):
        item = self.data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and self.clock() >= expires_at:
            del self.data[key]
            return None
        return value

    def ttl(self, key):
        item = self.data.get(key)
        if item is None or item[1] is None:
            return None
        return item[1] - self.clock()

    async def get(self, key):
        return self._live(key)

    async def set(self, key, value, ex=None):
        self.set_calls.append((key, value, ex))
        self.data[key] = (value, self.clock() + ex if ex else None)
        return True

    async def setnx(self, key, value, ex=None):
        if self._live(key) is not None:
            return False
        return await self.set(key, value, ex=ex)

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    async def count_keys(self, pattern):
        return sum(1 for key in list(self.data) if fnmatch.fnmatch(key, pattern) and self._live(key) is not None)


class StubPoster:
    """Records post calls and returns queued results (success by default)."""

    def __init__(self, results=None):
        self.results = list(results or [])
        self.calls: list[tuple[str, str | None]] = []

    async def post(self, text, reply_target_id=None):
        self.calls.append((text, reply_target_id))
        if self.results:
            return self.results.pop(0)
        return PostResult(ok=True, status_code=201, body='{"data":{"id":"1"}}', tweet_id="1")


def upstream_failure(status_code=503):
    return PostResult(
        ok=False,
        status_code=status_code,
        body="Service Unavailable",
        error_kind=ErrorKind.UPSTREAM_ERROR,
        message=f"Upstream returned HTTP {status_code}",
    )


class StubLLM:
    """Returns queued texts (repeating the last one) or raises a given error."""

    def __init__(self, *texts, error=None):
        self.texts = list(texts) or ["A thought from my circuits."]
        self.error = error
        self.calls: list[list[dict]] = []

    async def call(self, messages, max_tokens=256, temperature=None):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        text = self.texts.pop(0) if len(self.texts) > 1 else self.texts[0]
        return LLMResponse(text=text)

    async def health_check(self):
        return self.error is None


def make_settings(**overrides) -> Settings:
    values = dict(
        twitter_api_key="test-consumer-key",
        twitter_api_secret="test-consumer-secret",
        twitter_access_token="test-access-token",
        twitter_access_secret="test-access-secret",
        twitter_bearer_token="test-bearer",
        admin_token="admin-secret",
        cloudflare_account_id="acct",
        cloudflare_api_token="cf-token",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return FakeStore(clock)


@pytest.fixture
def poster():
    return StubPoster()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def gatekeeper(store, poster, settings, clock):
    return PostGatekeeper(store=store, poster=poster, settings=settings, clock=clock)
