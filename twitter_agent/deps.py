# twitter_agent/deps.py
# Request-scoped accessors for the objects owned by the app (see main.create_app).

from fastapi import Request

from twitter_agent.cache import SearchResultCache
from twitter_agent.config import Settings
from twitter_agent.fetcher import RateLimitAwareFetcher
from twitter_agent.intent_filters import IntentFilterStore
from twitter_agent.twitter_client import TwitterClient


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_cache(request: Request) -> SearchResultCache:
    return request.app.state.cache


def get_twitter_client(request: Request) -> TwitterClient:
    return request.app.state.twitter_client


def get_fetcher(request: Request) -> RateLimitAwareFetcher:
    return request.app.state.fetcher


def get_store(request: Request) -> IntentFilterStore:
    return request.app.state.store
