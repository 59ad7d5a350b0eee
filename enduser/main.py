"""FastAPI application entry point: manual triggers, admin pages, status."""

import json
import logging
import time
from contextlib import asynccontextmanager

import httpx
from fastapi import BackgroundTasks, Depends, FastAPI, Query, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field
from redis.exceptions import RedisError

from enduser.ai.providers.workers_ai import get_llm_provider
from enduser.auth import require_admin_basic, require_admin_token
from enduser.config import Settings, get_settings
from enduser.content.dashboard import render_cache_page, render_refresh_error, render_refresh_page
from enduser.core.jobs import MENTION_BACKOFF_KEY, BotJobs, get_bot_jobs
from enduser.integrations.x.mentions import get_mention_client
from enduser.knowledge.hci import load_curriculum
from enduser.knowledge.journal import Journal, JournalService, get_journal_service
from enduser.knowledge.news_cache import NewsCache, get_news_cache
from enduser.logging_config import setup_logging
from enduser.models import ErrorKind, JobResult, PostResult
from enduser.posting.client import get_signed_poster
from enduser.posting.fingerprint import get_response_key
from enduser.posting.gatekeeper import PostGatekeeper, get_post_gatekeeper
from enduser.storage.base import KeyValueStore
from enduser.storage.redis import redis_storage

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.DUPLICATE: 409,
    ErrorKind.ALREADY_HANDLED: 409,
    ErrorKind.INVALID: 422,
    ErrorKind.UPSTREAM_ERROR: 502,
    ErrorKind.TIMEOUT: 504,
}

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: logging, storage, curriculum."""
    settings = get_settings()
    setup_logging(settings.log_level)

    await redis_storage.connect()

    # Fail fast on an invalid curriculum
    load_curriculum()

    yield

    await get_signed_poster().close()
    await get_llm_provider().close()
    await get_mention_client().close()
    await redis_storage.disconnect()


app = FastAPI(
    title="GPT Enduser",
    description="Autonomous tweeting bot with a posting gatekeeper",
    lifespan=lifespan,
)


def get_store() -> KeyValueStore:
    return redis_storage


class PostRequest(BaseModel):
    """Body of a direct post request."""

    text: str = Field(..., description="Final post text")
    reply_target_id: str | None = Field(default=None, description="Tweet ID to reply to")


class ChatMessage(BaseModel):
    role: str = Field(..., description="user or assistant")
    content: str


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(..., min_length=1)


def post_response(result: PostResult) -> JSONResponse:
    """Serialize a PostResult with the status code for its outcome."""
    if result.ok:
        code = status.HTTP_200_OK
    else:
        code = ERROR_STATUS.get(result.error_kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(status_code=code, content=result.model_dump(mode="json"))


def job_response(result: JobResult) -> JSONResponse:
    """Serialize a JobResult; failures without a known kind are 500."""
    if result.ok:
        code = status.HTTP_200_OK
    else:
        code = ERROR_STATUS.get(result.error_kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(status_code=code, content=result.model_dump(mode="json", exclude_none=True))


async def _override_text(request: Request) -> str | None:
    """Optional {"text": ...} body; anything unparsable is ignored."""
    body = await request.body()
    if not body:
        return None
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if isinstance(data, dict) and isinstance(data.get("text"), str):
        return data["text"]
    return None


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "GPT Enduser API", "version": "0.1.0"}


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint.

    Returns: {status, redis}
    """
    redis_healthy = await redis_storage.health_check()
    overall_status = "healthy" if redis_healthy else "degraded"

    return JSONResponse(
        status_code=status.HTTP_200_OK if redis_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": overall_status,
            "redis": "healthy" if redis_healthy else "unhealthy",
        },
    )


@app.post("/api/post", dependencies=[Depends(require_admin_token)])
async def post_message(
    body: PostRequest,
    gatekeeper: PostGatekeeper = Depends(get_post_gatekeeper),
) -> JSONResponse:
    """Post finished text through the gatekeeper."""
    result = await gatekeeper.post_message(body.text, body.reply_target_id)
    return post_response(result)


@app.post("/api/tweet", dependencies=[Depends(require_admin_token)])
async def trigger_tweet(
    request: Request,
    background_tasks: BackgroundTasks,
    debug: bool = Query(default=False),
    jobs: BotJobs = Depends(get_bot_jobs),
):
    """Trigger the daily tweet, optionally with override text.

    With debug set the job runs inline and its result is returned;
    otherwise it is scheduled after the response.
    """
    override_text = await _override_text(request)
    if debug:
        return job_response(await jobs.run_scheduled_tweet(override_text))

    background_tasks.add_task(jobs.run_scheduled_tweet, override_text)
    return PlainTextResponse("ok")


@app.get("/api/tweet", dependencies=[Depends(require_admin_basic)])
async def debug_tweet(
    debug: bool = Query(default=False),
    jobs: BotJobs = Depends(get_bot_jobs),
) -> JSONResponse:
    """Run the daily tweet inline from a browser (debug only)."""
    if not debug:
        return JSONResponse(
            status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
            content={"error": "Method not allowed"},
        )
    return job_response(await jobs.run_scheduled_tweet())


@app.post("/api/goodnight", dependencies=[Depends(require_admin_basic)])
async def trigger_good_night(jobs: BotJobs = Depends(get_bot_jobs)) -> JSONResponse:
    """Post the good night tweet now."""
    return job_response(await jobs.run_good_night_tweet())


@app.post("/api/mentions/check", dependencies=[Depends(require_admin_basic)])
async def trigger_mention_check(jobs: BotJobs = Depends(get_bot_jobs)) -> JSONResponse:
    """Run one mention check now."""
    return job_response(await jobs.check_mentions())


@app.get("/api/cache", response_class=HTMLResponse, dependencies=[Depends(require_admin_basic)])
async def cache_view(
    news_cache: NewsCache = Depends(get_news_cache),
    journal_service: JournalService = Depends(get_journal_service),
    store: KeyValueStore = Depends(get_store),
) -> HTMLResponse:
    """Admin page with the cached context data."""
    cached = await news_cache.get_cached_data()
    journal = await journal_service.get_journal()
    journal_stats = f"{journal.total_entries} entries, {journal.current_streak} day streak"
    response_count = await store.count_keys(get_response_key("*"))
    return HTMLResponse(render_cache_page(cached, journal_stats, response_count))


@app.post("/api/cache/refresh", response_class=HTMLResponse, dependencies=[Depends(require_admin_basic)])
async def cache_refresh(jobs: BotJobs = Depends(get_bot_jobs)) -> HTMLResponse:
    """Force a cache refresh and show the result."""
    try:
        cached = await jobs.refresh_cache()
    except RedisError as e:
        logger.error(f"Cache refresh failed: {e!r}")
        return HTMLResponse(render_refresh_error(str(e)), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTMLResponse(render_refresh_page(cached))


@app.get("/api/journal", dependencies=[Depends(require_admin_basic)])
async def journal_view(journal_service: JournalService = Depends(get_journal_service)) -> Journal:
    """Full journal document."""
    return await journal_service.get_journal()


@app.get("/api/recent-insights")
async def recent_insights(journal_service: JournalService = Depends(get_journal_service)) -> JSONResponse:
    """Public summary of recent journal themes."""
    journal = await journal_service.get_journal()
    themes = []
    for entry in journal.entries[:5]:
        discovery = entry.discoveries
        if len(discovery) > 100:
            discovery = discovery[:100] + "..."
        themes.append(
            {
                "date": entry.date,
                "key_insights": entry.insights[:3],
                "main_discovery": discovery,
                "questions_count": len(entry.questions),
            }
        )

    return JSONResponse(
        content={
            "total_entries": journal.total_entries,
            "current_streak": journal.current_streak,
            "last_updated": journal.last_updated.isoformat(),
            "recent_themes": themes,
        },
        headers=CORS_HEADERS,
    )


@app.get("/api/status")
async def system_status(
    settings: Settings = Depends(get_settings),
    gatekeeper: PostGatekeeper = Depends(get_post_gatekeeper),
    journal_service: JournalService = Depends(get_journal_service),
    store: KeyValueStore = Depends(get_store),
) -> JSONResponse:
    """Public status: posting interval, mention backoff, journal."""
    now_ms = int(gatekeeper.clock() * 1000)

    backoff_value = await store.get(MENTION_BACKOFF_KEY)
    backoff_status = "OK"
    backoff_info = ""
    if backoff_value is not None and backoff_value.isdigit():
        remaining_ms = settings.mention_backoff_seconds * 1000 - (now_ms - int(backoff_value))
        backoff_status = "RATE_LIMITED"
        backoff_info = f"Backing off for {max(1, -(-remaining_ms // 60_000))} more minutes"

    remaining_ms = await gatekeeper.remaining_interval_ms()
    last_post_ms = await gatekeeper.last_post_ms()
    response_count = await store.count_keys(get_response_key("*"))
    journal = await journal_service.get_journal()

    return JSONResponse(
        content={
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(now_ms / 1000)),
            "system": "OPERATIONAL",
            "posting": {
                "last_post_ms": last_post_ms,
                "next_post_allowed_in_seconds": -(-remaining_ms // 1000),
            },
            "mentions": {
                "enabled": settings.mentions_enabled,
                "status": backoff_status,
                "info": backoff_info,
                "total_responses": response_count,
            },
            "journal": {
                "total_entries": journal.total_entries,
                "current_streak": journal.current_streak,
                "last_entry": journal.entries[0].date if journal.entries else None,
            },
        },
        headers=CORS_HEADERS,
    )


@app.post("/api/chat")
async def chat(body: ChatRequest, jobs: BotJobs = Depends(get_bot_jobs)) -> JSONResponse:
    """Chat with the bot persona."""
    try:
        reply = await jobs.chat([message.model_dump() for message in body.messages])
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Chat failed: {e!r}")
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"error": "Failed to process chat request"},
        )
    return JSONResponse(content={"response": reply})
