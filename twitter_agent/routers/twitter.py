# twitter_agent/routers/twitter.py
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from twitter_agent.auth import require_user
from twitter_agent.config import Settings
from twitter_agent.deps import get_fetcher, get_settings, get_store, get_twitter_client
from twitter_agent.errors import http_error
from twitter_agent.fetcher import (
    LIVE_RESULT_CEILING,
    CONNECTION_CHECK_CEILING,
    RETRY_HINT,
    FetchResult,
    RateLimitAwareFetcher,
)
from twitter_agent.intent_filters import DEFAULT_KEYWORD, IntentFilterStore, StoreError
from twitter_agent.schemas import ErrorCode, TweetFilter, TwitterActionRequest
from twitter_agent.twitter_client import (
    ActionOk,
    ActionOutcome,
    RateLimited,
    TwitterClient,
    Unauthorized,
    keyword_query,
)
from twitter_agent.utils import utc_now_iso

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/twitter", tags=["twitter"])


def _search_response(result: FetchResult) -> JSONResponse:
    """Shape a FetchResult into the JSON the dashboard expects."""
    body: dict[str, Any] = {
        "searchQuery": result.search_query,
        "keywords": result.keywords,
        "source": result.source,
    }
    if result.source in ("cache", "live"):
        body["tweets"] = [t.model_dump() for t in result.tweets]
        body["meta"] = {"result_count": len(result.tweets)}
        body["stale"] = result.stale
    elif result.source == "rate_limited":
        # Degraded but valid: the UI renders "try again soon", not an error page
        body.update(
            tweets=[],
            includes={},
            meta={"result_count": 0},
            message=result.message,
            retryAfter=result.retry_after,
            error=result.error,
        )
    else:
        body.update(error=result.message, code=result.error, details=result.details)
    return JSONResponse(status_code=result.status_code, content=body)


@router.get("/search-live")
def rate_limit_status(
    user_id: str = Depends(require_user),
    client: TwitterClient = Depends(get_twitter_client),
):
    """Current per-endpoint rate-limit state."""
    return {
        "message": "Rate limit status",
        "rateLimits": client.rate_limits.status(),
        "timestamp": utc_now_iso(),
    }


@router.post("/search-live")
async def search_live(
    refresh: int = Query(0, description="1 = refresh cache hits older than 5 minutes"),
    user_id: str = Depends(require_user),
    fetcher: RateLimitAwareFetcher = Depends(get_fetcher),
    store: IntentFilterStore = Depends(get_store),
):
    """Search recent tweets matching the caller's intent filters."""
    store.get_or_create_profile(user_id)
    keywords = store.list_keywords(user_id)

    if not keywords:
        # New users get a starter filter so the feed is not empty
        try:
            store.add_filter(user_id, DEFAULT_KEYWORD)
        except StoreError as e:
            logger.warning(
                "failed to create default filter",
                extra={"context": {"user_id": user_id, "error": str(e)}},
            )
            return {
                "tweets": [],
                "message": "No intent filters found. Please add some keywords first.",
                "suggestion": 'Try adding keywords like "startup", "designer", "developer", etc.',
                "action": "add_filters",
            }
        logger.info(
            "created default intent filter",
            extra={"context": {"user_id": user_id, "keyword": DEFAULT_KEYWORD}},
        )
        keywords = [DEFAULT_KEYWORD]

    filters = TweetFilter(
        keywords=keywords, exclude_retweets=True, exclude_replies=False, languages=["en"]
    )
    try:
        result = await fetcher.search(
            keywords,
            keyword_query(keywords),
            filters,
            LIVE_RESULT_CEILING,
            refresh_stale=bool(refresh),
        )
    except Exception as e:
        logger.exception("live search crashed", extra={"context": {"user_id": user_id}})
        raise http_error(
            ErrorCode.INTERNAL_ERROR,
            "Failed to search Twitter. Please try again.",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        ) from e
    return _search_response(result)


@router.get("/test-connection")
async def test_connection(
    user_id: str = Depends(require_user),
    settings: Settings = Depends(get_settings),
    fetcher: RateLimitAwareFetcher = Depends(get_fetcher),
):
    """Check the Twitter API with a single-result search that bypasses the cache."""
    env_check = settings.credential_check()
    if not settings.has_twitter_credentials:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Missing required Twitter API credentials",
                "envCheck": env_check,
                "message": "Set TWITTER_BEARER_TOKEN in the service environment",
            },
        )

    result = await fetcher.search(
        ["test"],
        "test",
        TweetFilter(keywords=["test"], exclude_retweets=True, languages=["en"]),
        CONNECTION_CHECK_CEILING,
        use_cache=False,
    )
    if result.ok:
        return {
            "success": True,
            "message": "Twitter API connection successful",
            "testResult": {"tweetCount": len(result.tweets), "hasData": bool(result.tweets)},
            "envCheck": env_check,
        }
    return JSONResponse(
        status_code=result.status_code,
        content={
            "success": False,
            "error": "Twitter API test failed",
            "classification": result.source,
            "details": result.details,
            "envCheck": env_check,
        },
    )


@router.post("/reset-rate-limits")
def reset_rate_limits(
    user_id: str = Depends(require_user),
    client: TwitterClient = Depends(get_twitter_client),
):
    client.rate_limits.reset()
    logger.info("rate limits reset", extra={"context": {"user_id": user_id}})
    return {
        "success": True,
        "message": "Rate limits reset successfully",
        "timestamp": utc_now_iso(),
    }


_ACTION_LABELS = {
    "post-tweet": "post tweet",
    "reply-tweet": "post reply",
    "like-tweet": "like tweet",
    "retweet": "retweet",
    "search-tweets": "search tweets",
    "get-user-info": "get user info",
    "validate-credentials": "validate credentials",
}


def _bad_request(message: str):
    return http_error(ErrorCode.INVALID_REQUEST, message)


def _action_response(action: str, outcome: ActionOutcome, ctx: dict) -> JSONResponse:
    """Map an action outcome onto the same status split as live search (429 / 401 / 500)."""
    if isinstance(outcome, ActionOk):
        logger.info("twitter action succeeded", extra={"context": ctx})
        return JSONResponse(content={"success": True, "result": outcome.data})

    label = _ACTION_LABELS[action]
    logger.error(
        "twitter action failed",
        extra={"context": {**ctx, "kind": outcome.kind, "error": outcome.message}},
    )
    if isinstance(outcome, RateLimited):
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "error": "rate_limited",
                "message": f"Failed to {label}: Twitter API rate limited",
                "retryAfter": RETRY_HINT,
                "details": outcome.message,
            },
        )
    if isinstance(outcome, Unauthorized):
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={
                "error": f"Failed to {label}",
                "code": "unauthorized",
                "details": outcome.message,
            },
        )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": f"Failed to {label}",
            "code": "upstream_error",
            "details": outcome.message,
        },
    )


@router.post("/actions")
async def twitter_action(
    req: TwitterActionRequest,
    user_id: str = Depends(require_user),
    client: TwitterClient = Depends(get_twitter_client),
    fetcher: RateLimitAwareFetcher = Depends(get_fetcher),
):
    """Dispatch one dashboard action (post, reply, like, retweet, search, lookup, validate)."""
    action = req.action
    if action not in _ACTION_LABELS:
        raise _bad_request("Invalid action")
    ctx: dict[str, Any] = {"user_id": user_id, "action": action}

    if action == "post-tweet":
        if not req.text:
            raise _bad_request("Tweet text is required")
        outcome = await client.post_tweet(req.text)
    elif action == "reply-tweet":
        if not req.text or not req.reply_to_tweet_id:
            raise _bad_request("Reply text and tweet ID are required")
        ctx["reply_to_tweet_id"] = req.reply_to_tweet_id
        outcome = await client.reply_to_tweet(req.text, req.reply_to_tweet_id)
    elif action in ("like-tweet", "retweet"):
        if not req.tweet_id or not req.user_id:
            raise _bad_request("Tweet ID and user ID are required")
        ctx["tweet_id"] = req.tweet_id
        call = client.like_tweet if action == "like-tweet" else client.retweet
        outcome = await call(req.tweet_id, req.user_id)
    elif action == "search-tweets":
        if not req.query:
            raise _bad_request("Search query is required")
        filters = req.filters or TweetFilter()
        keywords = filters.keywords or [req.query]
        result = await fetcher.search(
            keywords, req.query, filters, req.max_results or LIVE_RESULT_CEILING
        )
        return _search_response(result)
    elif action == "get-user-info":
        if not req.username and not req.user_id:
            raise _bad_request("Username or user ID is required")
        outcome = await client.get_user(username=req.username, user_id=req.user_id)
    else:
        outcome = await client.validate_credentials()
        if isinstance(outcome, Unauthorized):
            return {
                "success": True,
                "valid": False,
                "message": "Twitter API credentials are invalid",
            }
        if isinstance(outcome, ActionOk):
            return {"success": True, "valid": True, "message": "Twitter API credentials are valid"}

    return _action_response(action, outcome, ctx)
