"""Worker entry point: fires scheduled bot jobs on UTC wall-clock slots."""

import asyncio
import logging
from datetime import datetime, timezone

import httpx
from redis.exceptions import RedisError

from enduser.config import Settings, get_settings
from enduser.core.jobs import BotJobs, get_bot_jobs
from enduser.knowledge.hci import load_curriculum
from enduser.logging_config import setup_logging
from enduser.storage.redis import redis_storage

logger = logging.getLogger(__name__)

TICK_SECONDS = 30

DAILY_TWEET = "daily_tweet"
GOOD_NIGHT = "good_night"
MENTIONS = "mentions"


def parse_slot(value: str) -> tuple[int, int]:
    """Parse "HH:MM" into (hour, minute)."""
    hour, minute = value.split(":")
    return int(hour), int(minute)


def due_jobs(now: datetime, settings: Settings, fired: set[str]) -> list[str]:
    """Jobs whose slot matches the current minute and has not fired yet.

    Args:
        now: Current UTC time
        settings: Schedule settings
        fired: Slot keys already fired; updated in place

    Returns:
        Job names to run now
    """
    minute_key = now.strftime("%Y-%m-%dT%H:%M")
    current = (now.hour, now.minute)
    candidates = []

    if current == parse_slot(settings.daily_tweet_time):
        candidates.append(DAILY_TWEET)
    if current == parse_slot(settings.good_night_time):
        candidates.append(GOOD_NIGHT)
    if settings.mentions_enabled and now.minute % settings.mention_check_interval_minutes == 0:
        candidates.append(MENTIONS)

    due = []
    for name in candidates:
        slot = f"{name}@{minute_key}"
        if slot not in fired:
            fired.add(slot)
            due.append(name)

    # Only the current minute's slots can match again
    fired.intersection_update({slot for slot in fired if slot.endswith(minute_key)})
    return due


async def run_job(jobs: BotJobs, name: str) -> None:
    """Run one job and log its outcome."""
    logger.info(f"Running scheduled job {name}")
    try:
        if name == DAILY_TWEET:
            result = await jobs.run_scheduled_tweet()
        elif name == GOOD_NIGHT:
            result = await jobs.run_good_night_tweet()
        else:
            result = await jobs.check_mentions()
    except (RedisError, httpx.HTTPError) as e:
        logger.error(f"Job {name} crashed: {e!r}")
        return
    except Exception:
        # Keep the loop alive; the next slot gets a fresh attempt
        logger.exception(f"Job {name} crashed unexpectedly")
        return

    if result.ok:
        logger.info(f"Job {name} finished: {result.message or 'ok'}")
    else:
        logger.warning(f"Job {name} failed: {result.error_kind} {result.error}")


async def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_level)
    await redis_storage.connect()
    load_curriculum()
    jobs = get_bot_jobs()

    logger.info(
        f"Worker started (daily tweet {settings.daily_tweet_time} UTC, "
        f"good night {settings.good_night_time} UTC, mentions "
        f"{'every ' + str(settings.mention_check_interval_minutes) + ' min' if settings.mentions_enabled else 'off'})"
    )

    fired: set[str] = set()
    try:
        while True:
            for name in due_jobs(datetime.now(timezone.utc), settings, fired):
                await run_job(jobs, name)
            await asyncio.sleep(TICK_SECONDS)
    finally:
        await redis_storage.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
