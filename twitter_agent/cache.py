# twitter_agent/cache.py
# Purpose: In-memory cache for Twitter recent-search results.
# Why: The search endpoint is rate limited per 15-minute window; repeat queries
#      from the dashboard should not spend quota.
# Pitfalls: Not persistent; resets if the process restarts. Each worker process
#           owns its own cache, so instances may over-fetch against a shared quota.

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping, Sequence

from pydantic import BaseModel, ConfigDict

from twitter_agent.observability import CACHE_EVICTIONS, CACHE_LOOKUPS
from twitter_agent.schemas import CachedTweet, RawTweet, TwitterUser

logger = logging.getLogger(__name__)

CACHE_TTL_SEC = 15 * 60
FRESH_WINDOW_SEC = 5 * 60
MAX_CACHE_ENTRIES = 100
UNKNOWN_AUTHOR = "unknown"


class CacheEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    tweets: tuple[CachedTweet, ...]
    keywords: tuple[str, ...]
    search_query: str
    cached_at: float
    expires_at: float


def build_cache_key(keywords: Iterable[str], search_query: str) -> str:
    """Keyword order and repeats do not matter: ["b", "a", "a"] and ["a", "b"] share a key."""
    return f"{','.join(sorted(set(keywords)))}:{search_query}"


def normalize_tweets(
    tweets: Sequence[RawTweet], author_lookup: Mapping[str, TwitterUser] | None
) -> tuple[CachedTweet, ...]:
    """Attach author handles; authors missing from the lookup become UNKNOWN_AUTHOR."""
    lookup = author_lookup or {}
    out = []
    for tweet in tweets:
        author = lookup.get(tweet.author_id)
        fields = tweet.model_dump()
        fields["author_username"] = author.username if author else UNKNOWN_AUTHOR
        out.append(CachedTweet(**fields))
    return tuple(out)


class SearchResultCache:
    """
    Size- and time-bounded map of search fingerprint -> CacheEntry.

    Expired entries are dropped lazily on read and by evict_expired(). When full,
    the earliest-inserted entry still present is evicted (FIFO, not LRU).
    A lock guards the check-then-act sequences because sync handlers run
    in a thread pool.
    """

    def __init__(
        self,
        ttl_sec: float = CACHE_TTL_SEC,
        fresh_window_sec: float = FRESH_WINDOW_SEC,
        max_entries: int = MAX_CACHE_ENTRIES,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_sec = ttl_sec
        self.fresh_window_sec = fresh_window_sec
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, keywords: Iterable[str], search_query: str) -> CacheEntry | None:
        """Return the entry if present and not expired, else None."""
        key = build_cache_key(keywords, search_query)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                CACHE_LOOKUPS.labels(result="miss").inc()
                return None
            if entry.expires_at <= self._clock():
                # expired
                del self._entries[key]
                CACHE_LOOKUPS.labels(result="expired").inc()
                CACHE_EVICTIONS.labels(reason="expired").inc()
                return None
        CACHE_LOOKUPS.labels(result="hit").inc()
        return entry

    def put(
        self,
        keywords: Iterable[str],
        search_query: str,
        tweets: Sequence[RawTweet],
        author_lookup: Mapping[str, TwitterUser] | None = None,
    ) -> CacheEntry:
        """Store a normalized batch, replacing any entry under the same key."""
        keywords = tuple(keywords)
        key = build_cache_key(keywords, search_query)
        now = self._clock()
        entry = CacheEntry(
            tweets=normalize_tweets(tweets, author_lookup),
            keywords=keywords,
            search_query=search_query,
            cached_at=now,
            expires_at=now + self.ttl_sec,
        )
        with self._lock:
            if key in self._entries:
                # replacement moves the key to the back of the eviction order
                del self._entries[key]
            elif len(self._entries) >= self.max_entries:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                CACHE_EVICTIONS.labels(reason="capacity").inc()
                logger.debug("cache full, evicted oldest entry", extra={"context": {"key": oldest}})
            self._entries[key] = entry
        return entry

    def is_fresh(self, keywords: Iterable[str], search_query: str) -> bool:
        """True if a live entry exists and is younger than the freshness window."""
        entry = self.get(keywords, search_query)
        return entry is not None and self.is_entry_fresh(entry)

    def is_entry_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.cached_at < self.fresh_window_sec

    def evict_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.expires_at <= now]
            for k in expired:
                del self._entries[k]
        if expired:
            CACHE_EVICTIONS.labels(reason="expired").inc(len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict:
        with self._lock:
            return {"size": len(self._entries), "keys": list(self._entries)}
