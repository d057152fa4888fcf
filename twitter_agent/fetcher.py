"""
Live search with cache-first lookup and rate-limit degradation.

Terminal states (FetchResult.source):
  cache         -> served from SearchResultCache, no network call
  live          -> upstream success, written through to the cache
  rate_limited  -> 429: empty tweets + retry hint, nothing cached
  unauthorized  -> 401: credentials need fixing, not retried
  error         -> 500: sanitized message, upstream message kept in details/logs
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Literal

from pydantic import BaseModel, Field

from twitter_agent.cache import CacheEntry, SearchResultCache, normalize_tweets
from twitter_agent.observability import FETCH_OUTCOMES
from twitter_agent.schemas import CachedTweet, TweetFilter
from twitter_agent.twitter_client import (
    RateLimited,
    SearchOk,
    TwitterClient,
    Unauthorized,
    build_search_query,
)
from twitter_agent.utils import timer_ms

logger = logging.getLogger(__name__)

LIVE_RESULT_CEILING = 10
CONNECTION_CHECK_CEILING = 1
RETRY_HINT = "15 minutes"


class FetchResult(BaseModel):
    source: Literal["cache", "live", "rate_limited", "unauthorized", "error"]
    status_code: int = 200
    tweets: list[CachedTweet] = Field(default_factory=list)
    search_query: str
    keywords: list[str]
    stale: bool = False
    message: str | None = None
    retry_after: str | None = None
    error: str | None = None
    details: str | None = None

    @property
    def ok(self) -> bool:
        return self.status_code == 200


class RateLimitAwareFetcher:
    def __init__(self, cache: SearchResultCache, client: TwitterClient):
        self.cache = cache
        self.client = client

    async def search(
        self,
        keywords: Sequence[str],
        query: str,
        filters: TweetFilter | None = None,
        max_results: int = LIVE_RESULT_CEILING,
        *,
        use_cache: bool = True,
        refresh_stale: bool = False,
    ) -> FetchResult:
        """
        Serve from cache when possible, else call Twitter and classify the outcome.

        refresh_stale=True lets a hit older than the freshness window trigger a
        live call; if that call is rate limited the stale hit is served instead.
        use_cache=False neither reads nor writes the cache (connection checks).
        """
        keywords = list(keywords)
        filters = filters or TweetFilter(keywords=keywords)
        search_query = build_search_query(query, filters)
        ctx = {"query": search_query, "keywords": keywords}

        hit: CacheEntry | None = None
        if use_cache:
            hit = self.cache.get(keywords, search_query)
            if hit is not None and (not refresh_stale or self.cache.is_entry_fresh(hit)):
                return self._from_cache(hit, ctx)

        with timer_ms() as elapsed_ms:
            outcome = await self.client.search_recent(query, filters, max_results)
        ctx["latency_ms"] = elapsed_ms()

        if isinstance(outcome, SearchOk):
            batch = outcome.batch
            if use_cache:
                entry = self.cache.put(keywords, search_query, batch.data, batch.author_lookup())
                tweets = list(entry.tweets)
            else:
                tweets = list(normalize_tweets(batch.data, batch.author_lookup()))
            FETCH_OUTCOMES.labels(outcome="live").inc()
            logger.info(
                "search served live", extra={"context": {**ctx, "result_count": len(tweets)}}
            )
            return FetchResult(
                source="live", tweets=tweets, search_query=search_query, keywords=keywords
            )

        if isinstance(outcome, RateLimited):
            if hit is not None:
                logger.warning(
                    "rate limited, serving stale cache entry",
                    extra={"context": {**ctx, "error": outcome.message}},
                )
                return self._from_cache(hit, ctx)
            FETCH_OUTCOMES.labels(outcome="rate_limited").inc()
            logger.warning(
                "Twitter API rate limited", extra={"context": {**ctx, "error": outcome.message}}
            )
            return FetchResult(
                source="rate_limited",
                status_code=429,
                search_query=search_query,
                keywords=keywords,
                message="Twitter API rate limited. Please try again later.",
                retry_after=RETRY_HINT,
                error="rate_limited",
                details=outcome.message,
            )

        if isinstance(outcome, Unauthorized):
            FETCH_OUTCOMES.labels(outcome="unauthorized").inc()
            logger.error(
                "Twitter API credentials error",
                extra={"context": {**ctx, "error": outcome.message}},
            )
            return FetchResult(
                source="unauthorized",
                status_code=401,
                search_query=search_query,
                keywords=keywords,
                message="Twitter API credentials error. Please check your configuration.",
                error="unauthorized",
                details=outcome.message,
            )

        FETCH_OUTCOMES.labels(outcome="error").inc()
        logger.error(
            "Twitter search failed",
            extra={"context": {**ctx, "error": outcome.message, "status": outcome.status_code}},
        )
        return FetchResult(
            source="error",
            status_code=500,
            search_query=search_query,
            keywords=keywords,
            message="Failed to search Twitter. Please try again.",
            error="upstream_error",
            details=outcome.message,
        )

    def _from_cache(self, entry: CacheEntry, ctx: dict) -> FetchResult:
        stale = not self.cache.is_entry_fresh(entry)
        FETCH_OUTCOMES.labels(outcome="cache").inc()
        logger.info(
            "search served from cache",
            extra={"context": {**ctx, "result_count": len(entry.tweets), "stale": stale}},
        )
        return FetchResult(
            source="cache",
            tweets=list(entry.tweets),
            search_query=entry.search_query,
            keywords=list(entry.keywords),
            stale=stale,
        )

