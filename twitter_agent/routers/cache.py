# twitter_agent/routers/cache.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from twitter_agent.auth import require_user
from twitter_agent.cache import SearchResultCache
from twitter_agent.deps import get_cache, get_twitter_client
from twitter_agent.errors import http_error
from twitter_agent.schemas import CacheActionRequest, ErrorCode
from twitter_agent.twitter_client import TwitterClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cache", tags=["cache"])


@router.get("/status")
def cache_status(
    user_id: str = Depends(require_user),
    cache: SearchResultCache = Depends(get_cache),
    client: TwitterClient = Depends(get_twitter_client),
):
    return {
        "success": True,
        "cache": {
            "status": "active",
            "stats": cache.stats(),
            "policy": {
                "ttl_sec": cache.ttl_sec,
                "fresh_window_sec": cache.fresh_window_sec,
                "max_entries": cache.max_entries,
                "eviction": "insertion_order",
            },
        },
        "rateLimiting": {
            "status": "active",
            "endpoints": client.rate_limits.status(),
        },
    }


@router.post("/status")
def manage_cache(
    req: CacheActionRequest,
    user_id: str = Depends(require_user),
    cache: SearchResultCache = Depends(get_cache),
):
    """Actions: clear | stats | evict_expired."""
    if req.action == "clear":
        cache.clear()
        logger.info("cache cleared", extra={"context": {"user_id": user_id}})
        return {"success": True, "message": "Cache cleared"}
    if req.action == "stats":
        return {"success": True, "stats": cache.stats()}
    if req.action == "evict_expired":
        removed = cache.evict_expired()
        return {"success": True, "removed": removed, "stats": cache.stats()}
    raise http_error(
        ErrorCode.INVALID_REQUEST, "Invalid action", hint="clear | stats | evict_expired"
    )
