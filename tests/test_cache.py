# Search cache: key symmetry, TTL vs freshness, FIFO capacity eviction, replacement.
from __future__ import annotations

from conftest import FakeClock, make_tweets

from twitter_agent.cache import (
    CACHE_TTL_SEC,
    MAX_CACHE_ENTRIES,
    UNKNOWN_AUTHOR,
    SearchResultCache,
    build_cache_key,
)

QUERY = '"startup" OR "designer"'


def test_keyword_order_does_not_change_the_slot(cache, lookup) -> None:
    cache.put(["designer", "startup"], QUERY, make_tweets(2), lookup)
    hit = cache.get(["startup", "designer"], QUERY)
    assert hit is not None
    assert [t.id for t in hit.tweets] == ["t0", "t1"]
    assert build_cache_key(["b", "a"], "q") == build_cache_key(["a", "b"], "q") == "a,b:q"


def test_repeated_keywords_share_the_slot(cache, lookup) -> None:
    cache.put(["a", "b"], "q", make_tweets(1), lookup)
    assert cache.get(["a", "a", "b"], "q") is not None
    assert build_cache_key(["b", "a", "a"], "q") == "a,b:q"
    assert cache.stats()["size"] == 1


def test_different_query_is_a_different_slot(cache, lookup) -> None:
    cache.put(["startup"], QUERY, make_tweets(1), lookup)
    assert cache.get(["startup"], QUERY + " lang:en") is None


def test_entry_survives_until_ttl_then_is_deleted_on_read(
    cache: SearchResultCache, clock: FakeClock, lookup
) -> None:
    cache.put(["startup"], QUERY, make_tweets(1), lookup)
    clock.advance(14 * 60 + 59)
    assert cache.get(["startup"], QUERY) is not None
    clock.advance(2)  # T + 15:01
    assert cache.get(["startup"], QUERY) is None
    assert cache.stats()["size"] == 0


def test_expiry_is_exactly_creation_plus_ttl(cache, clock, lookup) -> None:
    entry = cache.put(["startup"], QUERY, make_tweets(1), lookup)
    assert entry.cached_at == clock.now
    assert entry.expires_at == clock.now + CACHE_TTL_SEC
    clock.advance(CACHE_TTL_SEC)
    assert cache.get(["startup"], QUERY) is None


def test_fresh_window_is_shorter_than_ttl(cache, clock, lookup) -> None:
    cache.put(["startup"], QUERY, make_tweets(1), lookup)
    clock.advance(4 * 60 + 59)
    assert cache.is_fresh(["startup"], QUERY)
    clock.advance(2)  # T + 5:01
    assert not cache.is_fresh(["startup"], QUERY)
    assert cache.get(["startup"], QUERY) is not None
    clock.advance(9 * 60 + 57)  # T + 14:58
    assert not cache.is_fresh(["startup"], QUERY)
    assert cache.get(["startup"], QUERY) is not None


def test_is_fresh_false_when_absent(cache) -> None:
    assert cache.is_fresh(["nothing"], "q") is False


def test_capacity_evicts_earliest_inserted(cache, lookup) -> None:
    for i in range(MAX_CACHE_ENTRIES):
        cache.put([f"kw{i}"], f"q{i}", make_tweets(1), lookup)
    assert cache.stats()["size"] == MAX_CACHE_ENTRIES

    cache.put(["kw-new"], "q-new", make_tweets(1), lookup)

    stats = cache.stats()
    assert stats["size"] == MAX_CACHE_ENTRIES
    assert "kw0:q0" not in stats["keys"]
    assert "kw1:q1" in stats["keys"]
    assert cache.get(["kw-new"], "q-new") is not None


def test_eviction_ignores_read_recency(clock) -> None:
    cache = SearchResultCache(max_entries=2, clock=clock)
    cache.put(["a"], "q", make_tweets(1))
    cache.put(["b"], "q", make_tweets(1))
    cache.get(["a"], "q")  # a read does not protect "a"
    cache.put(["c"], "q", make_tweets(1))
    assert cache.stats()["keys"] == ["b:q", "c:q"]


def test_put_same_key_replaces(cache, clock, lookup) -> None:
    cache.put(["startup"], QUERY, make_tweets(2), lookup)
    clock.advance(60)
    cache.put(["startup"], QUERY, make_tweets(1, prefix="n"), lookup)
    assert cache.stats()["size"] == 1
    hit = cache.get(["startup"], QUERY)
    assert [t.id for t in hit.tweets] == ["n0"]
    assert hit.cached_at == clock.now


def test_replacing_at_capacity_does_not_evict_others(clock) -> None:
    cache = SearchResultCache(max_entries=2, clock=clock)
    cache.put(["a"], "q", make_tweets(1))
    cache.put(["b"], "q", make_tweets(1))
    cache.put(["a"], "q", make_tweets(2))
    assert sorted(cache.stats()["keys"]) == ["a:q", "b:q"]
    # "a" was re-inserted, so "b" is now the oldest
    cache.put(["c"], "q", make_tweets(1))
    assert cache.stats()["keys"] == ["a:q", "c:q"]


def test_missing_author_gets_sentinel_handle(cache, lookup) -> None:
    tweets = make_tweets(1, author_id="a1") + make_tweets(1, author_id="ghost", prefix="g")
    cache.put(["startup"], QUERY, tweets, lookup)
    hit = cache.get(["startup"], QUERY)
    assert [t.author_username for t in hit.tweets] == ["founder", UNKNOWN_AUTHOR]


def test_no_lookup_at_all_still_caches(cache) -> None:
    cache.put(["startup"], QUERY, make_tweets(1), None)
    assert cache.get(["startup"], QUERY).tweets[0].author_username == UNKNOWN_AUTHOR


def test_round_trip_preserves_ids_and_order(cache, lookup) -> None:
    tweets = make_tweets(5)
    cache.put(["startup"], QUERY, tweets, lookup)
    hit = cache.get(["startup"], QUERY)
    assert [t.id for t in hit.tweets] == [t.id for t in tweets]
    assert all(t.author_username == "founder" for t in hit.tweets)
    assert hit.keywords == ("startup",)
    assert hit.search_query == QUERY


def test_evict_expired_counts_removed(cache, clock, lookup) -> None:
    cache.put(["old1"], "q", make_tweets(1), lookup)
    cache.put(["old2"], "q", make_tweets(1), lookup)
    clock.advance(10 * 60)
    cache.put(["new"], "q", make_tweets(1), lookup)
    clock.advance(6 * 60)

    assert cache.evict_expired() == 2
    assert cache.stats()["keys"] == ["new:q"]
    assert cache.evict_expired() == 0


def test_clear_and_stats(cache, lookup) -> None:
    cache.put(["a"], "q", make_tweets(1), lookup)
    cache.put(["b"], "q", make_tweets(1), lookup)
    assert cache.stats() == {"size": 2, "keys": ["a:q", "b:q"]}
    cache.clear()
    assert cache.stats() == {"size": 0, "keys": []}
