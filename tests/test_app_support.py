# Settings parsing, JSON log lines, intent-filter store, app lifecycle.
from __future__ import annotations

import asyncio
import json
import logging
from contextlib import suppress

import pytest
from conftest import make_tweets
from fastapi.testclient import TestClient

from twitter_agent.config import Settings, _parse_tokens, settings_from_env
from twitter_agent.intent_filters import DuplicateFilterError, IntentFilterStore
from twitter_agent.logging_conf import JsonFormatter
from twitter_agent.main import _sweep_cache


def test_parse_tokens_skips_malformed_pairs() -> None:
    assert _parse_tokens("a:u1, b:u2,broken,:u3,c:") == {"a": "u1", "b": "u2"}
    assert _parse_tokens("") == {}


def test_settings_from_env(monkeypatch) -> None:
    monkeypatch.setenv("TWITTER_BEARER_TOKEN", "xyz")
    monkeypatch.setenv("TA_HTTP_TIMEOUT_SEC", "3.5")
    monkeypatch.setenv("TA_API_TOKENS", "tok:alice")
    s = settings_from_env()
    assert s.has_twitter_credentials
    assert s.http_timeout_sec == 3.5
    assert s.api_tokens == {"tok": "alice"}
    assert s.credential_check()["TWITTER_API_KEY"] is False


def test_json_formatter_renders_context() -> None:
    record = logging.LogRecord(
        "twitter_agent.fetcher", logging.INFO, __file__, 1, "hit", None, None
    )
    record.context = {"query": "q", "result_count": 2}
    line = json.loads(JsonFormatter().format(record))
    assert line["message"] == "hit"
    assert line["level"] == "INFO"
    assert line["context"] == {"query": "q", "result_count": 2}


def test_store_filters_newest_first_and_scoped_per_user() -> None:
    store = IntentFilterStore()
    a = store.add_filter("u1", "startup")
    store.add_filter("u1", "designer")
    store.add_filter("u2", "startup")

    assert store.list_keywords("u1") == ["designer", "startup"]
    assert store.list_keywords("u2") == ["startup"]
    assert store.remove_filter(a.id, "u2") is False
    assert store.remove_filter(a.id, "u1") is True
    assert store.list_keywords("u1") == ["designer"]


def test_store_rejects_blank_and_duplicate() -> None:
    store = IntentFilterStore()
    store.add_filter("u1", "startup")
    with pytest.raises(DuplicateFilterError):
        store.add_filter("u1", " startup ")
    with pytest.raises(ValueError):
        store.add_filter("u1", "  ")


def test_profile_created_once() -> None:
    store = IntentFilterStore()
    first = store.get_or_create_profile("u1", "u1@example.com")
    again = store.get_or_create_profile("u1", "other@example.com")
    assert again is first
    assert again.email == "u1@example.com"


def test_sweep_task_evicts_expired(cache, clock) -> None:
    cache.put(["a"], "q", make_tweets(1))
    clock.advance(16 * 60)

    async def run() -> None:
        task = asyncio.create_task(_sweep_cache(cache, 0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    asyncio.run(run())
    assert cache.stats()["size"] == 0


def test_shutdown_clears_cache(app) -> None:
    app.state.settings = Settings(cache_sweep_sec=0.5)
    with TestClient(app):
        app.state.cache.put(["a"], "q", make_tweets(1))
        assert app.state.cache.stats()["size"] == 1
    assert app.state.cache.stats()["size"] == 0
