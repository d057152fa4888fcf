# twitter_agent/config.py
# Purpose: Process settings from environment variables.

from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, Field

DEFAULT_TWITTER_BASE_URL = "https://api.twitter.com/2"


def _parse_tokens(raw: str) -> dict[str, str]:
    """'tok1:user1,tok2:user2' -> token table; malformed pairs are skipped."""
    tokens: dict[str, str] = {}
    for pair in raw.split(","):
        token, sep, user_id = pair.strip().partition(":")
        if sep and token and user_id:
            tokens[token] = user_id
    return tokens


class Settings(BaseModel):
    twitter_bearer_token: str = ""
    twitter_api_key: str = ""
    twitter_api_secret: str = ""
    twitter_base_url: str = DEFAULT_TWITTER_BASE_URL
    http_timeout_sec: float = 10.0
    cache_sweep_sec: float = 60.0
    api_tokens: dict[str, str] = Field(default_factory=dict)

    @property
    def has_twitter_credentials(self) -> bool:
        return bool(self.twitter_bearer_token)

    def credential_check(self) -> dict[str, bool]:
        return {
            "TWITTER_API_KEY": bool(self.twitter_api_key),
            "TWITTER_API_SECRET": bool(self.twitter_api_secret),
            "TWITTER_BEARER_TOKEN": bool(self.twitter_bearer_token),
            "hasRequiredCredentials": self.has_twitter_credentials,
        }


def settings_from_env() -> Settings:
    return Settings(
        twitter_bearer_token=os.getenv("TWITTER_BEARER_TOKEN", ""),
        twitter_api_key=os.getenv("TWITTER_API_KEY", ""),
        twitter_api_secret=os.getenv("TWITTER_API_SECRET", ""),
        twitter_base_url=os.getenv("TWITTER_API_BASE_URL", DEFAULT_TWITTER_BASE_URL),
        http_timeout_sec=float(os.getenv("TA_HTTP_TIMEOUT_SEC", "10")),
        cache_sweep_sec=float(os.getenv("TA_CACHE_SWEEP_SEC", "60")),
        api_tokens=_parse_tokens(os.getenv("TA_API_TOKENS", "")),
    )


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Settings for this process; read once."""
    return settings_from_env()
