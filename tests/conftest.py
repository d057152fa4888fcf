from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from twitter_agent.cache import SearchResultCache
from twitter_agent.config import Settings
from twitter_agent.main import create_app
from twitter_agent.schemas import RawTweet, TwitterUser
from twitter_agent.twitter_client import RateLimitTracker, TwitterClient

API_TOKEN = "test-token"
USER_ID = "user-1"
AUTH = {"Authorization": f"Bearer {API_TOKEN}"}


class FakeClock:
    """Manually advanced stand-in for time.time."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_tweets(n: int, author_id: str = "a1", prefix: str = "t") -> list[RawTweet]:
    return [
        RawTweet(id=f"{prefix}{i}", text=f"tweet {i}", author_id=author_id, lang="en")
        for i in range(n)
    ]


def search_payload(n: int = 2) -> dict:
    return {
        "data": [
            {
                "id": f"t{i}",
                "text": f"looking for a startup designer #{i}",
                "author_id": "a1",
                "created_at": "2025-01-01T00:00:00.000Z",
                "public_metrics": {
                    "retweet_count": 1,
                    "reply_count": 0,
                    "like_count": 3,
                    "quote_count": 0,
                },
                "lang": "en",
            }
            for i in range(n)
        ],
        "includes": {"users": [{"id": "a1", "username": "founder", "name": "Founder"}]},
        "meta": {"result_count": n},
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> SearchResultCache:
    return SearchResultCache(clock=clock)


@pytest.fixture
def lookup() -> dict[str, TwitterUser]:
    return {"a1": TwitterUser(id="a1", username="founder", name="Founder")}


class UpstreamStub:
    """Scripted Twitter API: queue responses, record requests."""

    def __init__(self):
        self.responses: list[httpx.Response] = []
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            return self.responses.pop(0)
        return httpx.Response(200, json=search_payload())


@pytest.fixture
def upstream() -> UpstreamStub:
    return UpstreamStub()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        twitter_bearer_token="bearer",
        api_tokens={API_TOKEN: USER_ID},
        cache_sweep_sec=0,
    )


@pytest.fixture
def app(settings: Settings, upstream: UpstreamStub, clock: FakeClock):
    client = TwitterClient(
        bearer_token=settings.twitter_bearer_token,
        rate_limits=RateLimitTracker(clock=clock),
        transport=httpx.MockTransport(upstream.handler),
    )
    return create_app(settings, cache=SearchResultCache(clock=clock), twitter_client=client)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
