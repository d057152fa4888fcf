# twitter_agent/main.py
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from twitter_agent.auth import AuthProvider, BearerTokenAuth
from twitter_agent.cache import SearchResultCache
from twitter_agent.config import Settings, load_settings
from twitter_agent.errors import envelope_from_http_exception
from twitter_agent.fetcher import RateLimitAwareFetcher
from twitter_agent.intent_filters import IntentFilterStore
from twitter_agent.logging_conf import setup_logging

# --- Observability ---
from twitter_agent.observability import metrics_endpoint, timing_middleware

# --- Routers ---
from twitter_agent.routers import account as account_routes
from twitter_agent.routers import cache as cache_routes
from twitter_agent.routers import intent_filters as filter_routes
from twitter_agent.routers import twitter as twitter_routes
from twitter_agent.schemas import HealthResponse, VersionResponse
from twitter_agent.twitter_client import TwitterClient
from twitter_agent.utils import utc_now_iso
from twitter_agent.version import version_payload

logger = logging.getLogger("twitter_agent.main")


async def _sweep_cache(cache: SearchResultCache, interval_sec: float) -> None:
    """Periodic housekeeping; lazy expiry on read still applies without it."""
    while True:
        await asyncio.sleep(interval_sec)
        removed = cache.evict_expired()
        if removed:
            logger.info("expired cache entries swept", extra={"context": {"removed": removed}})


@asynccontextmanager
async def lifespan(app: FastAPI):
    interval = app.state.settings.cache_sweep_sec
    task = asyncio.create_task(_sweep_cache(app.state.cache, interval)) if interval > 0 else None
    try:
        yield
    finally:
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        app.state.cache.clear()


def create_app(
    settings: Settings | None = None,
    *,
    cache: SearchResultCache | None = None,
    twitter_client: TwitterClient | None = None,
    store: IntentFilterStore | None = None,
    auth: AuthProvider | None = None,
) -> FastAPI:
    """Build the app and the objects it owns (cache, Twitter client, store, auth)."""
    settings = settings or load_settings()
    app = FastAPI(title="Twitter Agent API", version="0.1.0", lifespan=lifespan)

    app.state.settings = settings
    app.state.cache = cache or SearchResultCache()
    app.state.twitter_client = twitter_client or TwitterClient(
        bearer_token=settings.twitter_bearer_token,
        base_url=settings.twitter_base_url,
        timeout_sec=settings.http_timeout_sec,
    )
    app.state.fetcher = RateLimitAwareFetcher(app.state.cache, app.state.twitter_client)
    app.state.store = store or IntentFilterStore()
    app.state.auth = auth or BearerTokenAuth(settings.api_tokens)

    # --- Include routers ---
    app.include_router(twitter_routes.router)
    app.include_router(cache_routes.router)
    app.include_router(filter_routes.router)
    app.include_router(account_routes.router)

    # --- Observability ---
    app.middleware("http")(timing_middleware)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        envelope = envelope_from_http_exception(exc)
        return JSONResponse(
            status_code=exc.status_code,
            content=envelope.model_dump(mode="json"),
            headers=getattr(exc, "headers", None),
        )

    # --- Utility endpoints ---
    @app.get("/health", response_model=HealthResponse)
    def health():
        creds = settings.has_twitter_credentials
        return {
            "status": "ok" if creds else "degraded",
            "as_of": utc_now_iso(),
            "twitter_credentials": creds,
        }

    @app.get("/version", response_model=VersionResponse)
    def version():
        return VersionResponse(**version_payload())

    @app.get("/metrics")
    def metrics():
        return metrics_endpoint()

    return app


setup_logging()
app = create_app()
