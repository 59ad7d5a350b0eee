"""Post gatekeeper: rate limit, duplicate guard and reply-once policy."""

import asyncio

from enduser.models import ErrorKind
from enduser.posting.fingerprint import (
    RATE_LIMIT_KEY,
    compute_fingerprint,
    get_dedup_key,
    get_response_key,
)
from enduser.posting.gatekeeper import PostGatekeeper

from conftest import FakeStore, StubPoster, upstream_failure

MIN_INTERVAL = 30 * 60


def post(gatekeeper, text, reply_target_id=None):
    return asyncio.run(gatekeeper.post_message(text, reply_target_id))


class TestRateLimit:
    def test_first_post_goes_through(self, gatekeeper, poster, store, clock):
        result = post(gatekeeper, "Hello world")

        assert result.ok is True
        assert poster.calls == [("Hello world", None)]
        assert store.data[RATE_LIMIT_KEY][0] == str(int(clock() * 1000))

    def test_blocks_just_inside_interval(self, gatekeeper, poster, clock):
        assert post(gatekeeper, "first").ok

        clock.advance(MIN_INTERVAL - 0.001)
        result = post(gatekeeper, "second")

        assert result.ok is False
        assert result.error_kind == ErrorKind.RATE_LIMITED
        assert "minute" in result.message
        assert len(poster.calls) == 1

    def test_allows_just_after_interval(self, gatekeeper, poster, clock):
        assert post(gatekeeper, "first").ok

        clock.advance(MIN_INTERVAL + 0.001)
        result = post(gatekeeper, "second")

        assert result.ok is True
        assert len(poster.calls) == 2

    def test_rejection_does_not_touch_store(self, gatekeeper, store, clock):
        assert post(gatekeeper, "first").ok
        before = dict(store.data)

        clock.advance(60)
        post(gatekeeper, "second")

        assert store.data == before

    def test_replies_bypass_interval(self, gatekeeper, poster, clock):
        assert post(gatekeeper, "original").ok

        clock.advance(1)
        first = post(gatekeeper, "@a thanks", reply_target_id="t1")
        second = post(gatekeeper, "@b thanks", reply_target_id="t2")

        assert first.ok and second.ok
        assert [call[1] for call in poster.calls] == [None, "t1", "t2"]

    def test_reply_does_not_update_rate_state(self, gatekeeper, store):
        assert post(gatekeeper, "@a hi", reply_target_id="t1").ok

        assert RATE_LIMIT_KEY not in store.data

    def test_remaining_interval(self, gatekeeper, clock):
        assert asyncio.run(gatekeeper.remaining_interval_ms()) == 0
        post(gatekeeper, "first")
        clock.advance(600)

        assert asyncio.run(gatekeeper.remaining_interval_ms()) == (MIN_INTERVAL - 600) * 1000

    def test_malformed_rate_state_is_ignored(self, gatekeeper, store, poster):
        asyncio.run(store.set(RATE_LIMIT_KEY, "garbage"))

        assert post(gatekeeper, "hello").ok
        assert len(poster.calls) == 1


class TestDuplicateGuard:
    def test_same_text_rejected(self, gatekeeper, poster, clock):
        assert post(gatekeeper, "same text").ok

        clock.advance(MIN_INTERVAL + 1)
        result = post(gatekeeper, "same text")

        assert result.error_kind == ErrorKind.DUPLICATE
        assert len(poster.calls) == 1

    def test_duplicate_wins_over_rate_limit(self, gatekeeper, clock):
        assert post(gatekeeper, "same text").ok

        clock.advance(1)
        assert post(gatekeeper, "same text").error_kind == ErrorKind.DUPLICATE

    def test_duplicate_reply_text_rejected(self, gatekeeper, poster):
        assert post(gatekeeper, "@a thanks!", reply_target_id="t1").ok

        result = post(gatekeeper, "@a thanks!", reply_target_id="t2")

        assert result.error_kind == ErrorKind.DUPLICATE
        assert len(poster.calls) == 1

    def test_guard_written_before_send_with_ttl(self, store, clock, settings):
        seen_guard = []

        class CheckingPoster(StubPoster):
            async def post(self, text, reply_target_id=None):
                seen_guard.append(await store.get(get_dedup_key(compute_fingerprint(text))))
                return await super().post(text, reply_target_id)

        gatekeeper = PostGatekeeper(store, CheckingPoster(), settings=settings, clock=clock)
        post(gatekeeper, "guarded")

        assert seen_guard[0] is not None
        assert store.ttl(get_dedup_key(compute_fingerprint("guarded"))) == settings.dedup_ttl_seconds

    def test_guard_expires(self, gatekeeper, poster, clock, settings):
        assert post(gatekeeper, "again tomorrow").ok

        clock.advance(settings.dedup_ttl_seconds + 1)

        assert post(gatekeeper, "again tomorrow").ok
        assert len(poster.calls) == 2

    def test_lost_race_is_duplicate(self, poster, clock, settings):
        class RacingStore(FakeStore):
            async def get(self, key):
                # Reader never sees the guard; the conditional write still does
                if key.startswith("tweet:dedup:"):
                    return None
                return await super().get(key)

        store = RacingStore(clock)
        gatekeeper = PostGatekeeper(store, poster, settings=settings, clock=clock)
        assert post(gatekeeper, "@a race", reply_target_id="t1").ok

        result = post(gatekeeper, "@a race", reply_target_id="t2")

        assert result.error_kind == ErrorKind.DUPLICATE
        assert len(poster.calls) == 1

    def test_concurrent_same_text_sends_once(self, gatekeeper, poster):
        async def both():
            return await asyncio.gather(
                gatekeeper.post_message("@a parallel", "t1"),
                gatekeeper.post_message("@a parallel", "t2"),
            )

        results = asyncio.run(both())

        assert sorted(r.ok for r in results) == [False, True]
        assert len(poster.calls) == 1


class TestUpstreamFailure:
    def test_failure_keeps_guard_and_skips_rate_state(self, store, clock, settings):
        poster = StubPoster([upstream_failure(503)])
        gatekeeper = PostGatekeeper(store, poster, settings=settings, clock=clock)

        result = post(gatekeeper, "will fail")

        assert result.ok is False
        assert result.status_code == 503
        assert result.body == "Service Unavailable"
        assert result.error_kind == ErrorKind.UPSTREAM_ERROR
        assert get_dedup_key(compute_fingerprint("will fail")) in store.data
        assert RATE_LIMIT_KEY not in store.data

    def test_failed_reply_leaves_no_response_record(self, store, clock, settings):
        poster = StubPoster([upstream_failure(429)])
        gatekeeper = PostGatekeeper(store, poster, settings=settings, clock=clock)

        result = post(gatekeeper, "@a hi", reply_target_id="t1")

        assert result.status_code == 429
        assert get_response_key("t1") not in store.data

    def test_failed_text_cannot_be_retried_immediately(self, store, clock, settings):
        poster = StubPoster([upstream_failure(500)])
        gatekeeper = PostGatekeeper(store, poster, settings=settings, clock=clock)

        post(gatekeeper, "retry me")

        assert post(gatekeeper, "retry me").error_kind == ErrorKind.DUPLICATE


class TestReplyOnce:
    def test_response_record_written(self, gatekeeper, store, settings):
        assert post(gatekeeper, "@a hi", reply_target_id="t1").ok

        assert get_response_key("t1") in store.data
        assert store.ttl(get_response_key("t1")) == settings.response_record_ttl_seconds
        assert asyncio.run(gatekeeper.has_responded("t1")) is True

    def test_second_reply_to_same_target_rejected(self, gatekeeper, poster):
        assert post(gatekeeper, "@a hi", reply_target_id="t1").ok

        result = post(gatekeeper, "@a different words", reply_target_id="t1")

        assert result.error_kind == ErrorKind.ALREADY_HANDLED
        assert len(poster.calls) == 1


class TestValidation:
    def test_empty_text(self, gatekeeper, poster):
        result = post(gatekeeper, "   ")

        assert result.error_kind == ErrorKind.INVALID
        assert poster.calls == []

    def test_too_long(self, gatekeeper, poster, store):
        result = post(gatekeeper, "x" * 281)

        assert result.error_kind == ErrorKind.INVALID
        assert poster.calls == []
        assert store.data == {}

    def test_exactly_at_limit(self, gatekeeper):
        assert post(gatekeeper, "x" * 280).ok

    def test_empty_reply_target_is_original_post(self, gatekeeper, poster, store):
        assert post(gatekeeper, "not a reply", reply_target_id="").ok

        assert poster.calls == [("not a reply", None)]
        assert RATE_LIMIT_KEY in store.data


def test_scenario(gatekeeper, poster, clock):
    assert post(gatekeeper, "Hello #1").ok

    clock.advance(1)
    assert post(gatekeeper, "Hello #1").error_kind == ErrorKind.DUPLICATE
    assert post(gatekeeper, "Hello #2").error_kind == ErrorKind.RATE_LIMITED

    reply = post(gatekeeper, "Hello #2", reply_target_id="abc")
    assert reply.ok is True
    assert poster.calls == [("Hello #1", None), ("Hello #2", "abc")]
