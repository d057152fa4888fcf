"""
Twitter API v2 client: recent search plus the account actions the dashboard uses.

Every call returns a tagged outcome instead of raising:
  SearchOk(batch) / ActionOk(data) -> 2xx with a parsed body
  RateLimited(...)    -> 429, or the endpoint is still inside a known limit window
  Unauthorized(...)   -> 401, or no bearer token configured
  UpstreamFailed(...) -> anything else (403, 5xx, timeouts, bad payloads)

Notes / Pitfalls:
- recent search rejects max_results < 10, so smaller ceilings are requested as 10
  and truncated locally.
- Rate-limit state is tracked per endpoint from x-rate-limit-* / retry-after
  headers; while an endpoint is limited we short-circuit without a network call.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Literal

import httpx
from pydantic import BaseModel

from twitter_agent.observability import UPSTREAM_LATENCY
from twitter_agent.schemas import SearchBatch, TweetFilter

logger = logging.getLogger(__name__)

SEARCH_ENDPOINT = "/tweets/search/recent"
API_MIN_RESULTS = 10
API_MAX_RESULTS = 100
DEFAULT_BACKOFF_SEC = 15 * 60

_TWEET_FIELDS = "created_at,public_metrics,lang,referenced_tweets,author_id"
_USER_FIELDS = "username,name,profile_image_url"


# --------------------------------------------------------------------------------------
# Outcomes
# --------------------------------------------------------------------------------------
class SearchOk(BaseModel):
    kind: Literal["ok"] = "ok"
    batch: SearchBatch


class ActionOk(BaseModel):
    kind: Literal["ok"] = "ok"
    data: dict[str, Any]


class RateLimited(BaseModel):
    kind: Literal["rate_limited"] = "rate_limited"
    message: str
    retry_after_sec: float | None = None


class Unauthorized(BaseModel):
    kind: Literal["unauthorized"] = "unauthorized"
    message: str


class UpstreamFailed(BaseModel):
    kind: Literal["failed"] = "failed"
    message: str
    status_code: int | None = None


Failure = RateLimited | Unauthorized | UpstreamFailed
SearchOutcome = SearchOk | Failure
ActionOutcome = ActionOk | Failure


# --------------------------------------------------------------------------------------
# Query building
# --------------------------------------------------------------------------------------
def keyword_query(keywords: Iterable[str]) -> str:
    """["startup", "designer"] -> '"startup" OR "designer"'"""
    return " OR ".join(f'"{k}"' for k in keywords)


def build_search_query(query: str, filters: TweetFilter) -> str:
    """Append search operators for the filter options to the base query."""
    parts = [query]
    if filters.exclude_retweets:
        parts.append("-is:retweet")
    if filters.exclude_replies:
        parts.append("-is:reply")
    if filters.languages:
        parts.append("lang:" + " OR lang:".join(filters.languages))
    if filters.authors:
        parts.append("from:" + " OR from:".join(filters.authors))
    return " ".join(parts)


# --------------------------------------------------------------------------------------
# Rate-limit tracking
# --------------------------------------------------------------------------------------
def _header_float(headers: Mapping[str, str], name: str) -> float | None:
    raw = headers.get(name)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


class RateLimitTracker:
    """Remembers, per endpoint, when the upstream quota window reopens."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._limited_until: dict[str, float] = {}
        self._remaining: dict[str, int] = {}
        self._reset_at: dict[str, float] = {}
        self._lock = threading.Lock()

    def update_from_headers(self, endpoint: str, headers: Mapping[str, str]) -> None:
        remaining = _header_float(headers, "x-rate-limit-remaining")
        reset_at = _header_float(headers, "x-rate-limit-reset")
        with self._lock:
            if remaining is not None:
                self._remaining[endpoint] = int(remaining)
            if reset_at is not None:
                self._reset_at[endpoint] = reset_at
            if remaining == 0 and reset_at is not None:
                self._limited_until[endpoint] = reset_at

    def mark_limited(self, endpoint: str, retry_after_sec: float | None = None) -> float:
        """Record a 429. Returns the delay (seconds) until the endpoint may be retried."""
        now = self._clock()
        with self._lock:
            if retry_after_sec is not None:
                until = now + retry_after_sec
            elif self._reset_at.get(endpoint, 0) > now:
                until = self._reset_at[endpoint]
            else:
                until = now + DEFAULT_BACKOFF_SEC
            self._limited_until[endpoint] = until
        return until - now

    def is_limited(self, endpoint: str) -> bool:
        return self.retry_delay(endpoint) > 0

    def retry_delay(self, endpoint: str) -> float:
        now = self._clock()
        with self._lock:
            until = self._limited_until.get(endpoint)
            if until is None:
                return 0.0
            if until <= now:
                del self._limited_until[endpoint]
                return 0.0
            return until - now

    def status(self) -> dict[str, dict[str, Any]]:
        now = self._clock()
        with self._lock:
            limited_until = dict(self._limited_until)
            remaining = dict(self._remaining)
            reset_at = dict(self._reset_at)
        out = {}
        for endpoint in sorted(set(limited_until) | set(remaining)):
            delay = max(0.0, limited_until.get(endpoint, now) - now)
            out[endpoint] = {
                "limited": delay > 0,
                "retry_in_sec": round(delay, 1),
                "remaining": remaining.get(endpoint),
                "reset_at": reset_at.get(endpoint),
            }
        return out

    def reset(self) -> None:
        with self._lock:
            self._limited_until.clear()
            self._remaining.clear()
            self._reset_at.clear()


def retry_message(delay_sec: float) -> str:
    minutes = max(1, round(delay_sec / 60))
    return f"Rate limited, retry in ~{minutes} minute{'s' if minutes != 1 else ''}"


# --------------------------------------------------------------------------------------
# Client
# --------------------------------------------------------------------------------------
class TwitterClient:
    def __init__(
        self,
        bearer_token: str,
        base_url: str = "https://api.twitter.com/2",
        timeout_sec: float = 10.0,
        rate_limits: RateLimitTracker | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.bearer_token = bearer_token
        self.base_url = base_url
        self.timeout_sec = timeout_sec
        self.rate_limits = rate_limits or RateLimitTracker()
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        endpoint: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response | Failure:
        """
        Send one request. `endpoint` is the rate-limit bucket ("/users/:id/likes"),
        `path` the concrete URL path. Returns the 2xx response or a classified failure.
        """
        if not self.bearer_token:
            return Unauthorized(message="Twitter API credentials missing")

        delay = self.rate_limits.retry_delay(endpoint)
        if delay > 0:
            logger.warning(
                "request skipped, endpoint still rate limited",
                extra={"context": {"endpoint": endpoint, "retry_in_sec": round(delay, 1)}},
            )
            return RateLimited(message=retry_message(delay), retry_after_sec=delay)

        headers = {"Authorization": f"Bearer {self.bearer_token}"}
        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout_sec, transport=self._transport
            ) as client:
                r = await client.request(method, path, params=params, json=json, headers=headers)
        except httpx.TimeoutException as e:
            return UpstreamFailed(message=f"Twitter API timeout after {self.timeout_sec}s: {e}")
        except httpx.RequestError as e:
            return UpstreamFailed(message=f"Twitter API request failed: {e}")
        finally:
            UPSTREAM_LATENCY.observe(time.perf_counter() - start)

        self.rate_limits.update_from_headers(endpoint, r.headers)
        if r.status_code >= 400:
            return self._classify_error(r, endpoint)
        return r

    async def search_recent(
        self,
        query: str,
        filters: TweetFilter | None = None,
        max_results: int = API_MIN_RESULTS,
    ) -> SearchOutcome:
        """Run a recent search for query + filter operators, at most max_results tweets."""
        filters = filters or TweetFilter()
        params = {
            "query": build_search_query(query, filters),
            "max_results": str(min(max(max_results, API_MIN_RESULTS), API_MAX_RESULTS)),
            "tweet.fields": _TWEET_FIELDS,
            "user.fields": _USER_FIELDS,
            "expansions": "author_id",
        }
        r = await self._request("GET", SEARCH_ENDPOINT, SEARCH_ENDPOINT, params=params)
        if not isinstance(r, httpx.Response):
            return r

        try:
            batch = SearchBatch.model_validate(r.json())
        except ValueError as e:
            return UpstreamFailed(message=f"Unexpected Twitter API payload: {e}")
        if len(batch.data) > max_results:
            batch.data = batch.data[:max_results]
        return SearchOk(batch=batch)

    async def _action(
        self,
        method: str,
        path: str,
        endpoint: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> ActionOutcome:
        r = await self._request(method, path, endpoint, params=params, json=json)
        if not isinstance(r, httpx.Response):
            return r
        try:
            body = r.json()
        except ValueError as e:
            return UpstreamFailed(message=f"Unexpected Twitter API payload: {e}")
        if not isinstance(body, dict):
            return UpstreamFailed(message="Unexpected Twitter API payload: not an object")
        return ActionOk(data=body)

    async def post_tweet(self, text: str) -> ActionOutcome:
        return await self._action("POST", "/tweets", "/tweets", json={"text": text})

    async def reply_to_tweet(self, text: str, reply_to_tweet_id: str) -> ActionOutcome:
        body = {"text": text, "reply": {"in_reply_to_tweet_id": reply_to_tweet_id}}
        return await self._action("POST", "/tweets", "/tweets", json=body)

    async def like_tweet(self, tweet_id: str, user_id: str) -> ActionOutcome:
        return await self._action(
            "POST", f"/users/{user_id}/likes", "/users/:id/likes", json={"tweet_id": tweet_id}
        )

    async def retweet(self, tweet_id: str, user_id: str) -> ActionOutcome:
        return await self._action(
            "POST", f"/users/{user_id}/retweets", "/users/:id/retweets", json={"tweet_id": tweet_id}
        )

    async def get_user(
        self, username: str | None = None, user_id: str | None = None
    ) -> ActionOutcome:
        """Look a user up by handle (preferred) or id."""
        params = {"user.fields": _USER_FIELDS}
        if username:
            return await self._action(
                "GET",
                f"/users/by/username/{username}",
                "/users/by/username/:username",
                params=params,
            )
        return await self._action("GET", f"/users/{user_id}", "/users/:id", params=params)

    async def validate_credentials(self) -> ActionOutcome:
        return await self._action("GET", "/users/me", "/users/me")

    def _classify_error(self, r: httpx.Response, endpoint: str) -> Failure:
        status = r.status_code
        try:
            body = r.json()
        except ValueError:
            body = {}
        detail = (body.get("detail") or body.get("title")) if isinstance(body, dict) else None

        logger.error(
            "Twitter API error",
            extra={"context": {"endpoint": endpoint, "status": status, "detail": detail}},
        )

        if status == 429:
            delay = self.rate_limits.mark_limited(
                endpoint, _header_float(r.headers, "retry-after")
            )
            return RateLimited(message=retry_message(delay), retry_after_sec=delay)
        if status == 401:
            return Unauthorized(message="Twitter API credentials invalid")
        if status == 403:
            return UpstreamFailed(message="Twitter API access forbidden", status_code=status)
        return UpstreamFailed(
            message=f"Twitter API error: {status} {detail or 'Unknown error'}", status_code=status
        )
