from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


# --- Twitter v2 payloads (only the fields we read) ---
class PublicMetrics(BaseModel):
    retweet_count: int = 0
    reply_count: int = 0
    like_count: int = 0
    quote_count: int = 0


class TwitterUser(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str
    username: str
    name: str = ""
    profile_image_url: str | None = None


class RawTweet(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str
    text: str
    author_id: str
    created_at: str | None = None
    public_metrics: PublicMetrics | None = None
    lang: str | None = None


class CachedTweet(RawTweet):
    """A tweet with its author handle resolved; never mutated once built."""

    model_config = ConfigDict(extra="ignore", frozen=True)
    author_username: str


class SearchIncludes(BaseModel):
    users: list[TwitterUser] = Field(default_factory=list)


class SearchMeta(BaseModel):
    result_count: int = 0
    next_token: str | None = None


class SearchBatch(BaseModel):
    data: list[RawTweet] = Field(default_factory=list)
    includes: SearchIncludes = Field(default_factory=SearchIncludes)
    meta: SearchMeta = Field(default_factory=SearchMeta)

    def author_lookup(self) -> dict[str, TwitterUser]:
        return {u.id: u for u in self.includes.users}


class TweetFilter(BaseModel):
    """Recognized search options; everything else is ignored upstream."""

    model_config = ConfigDict(populate_by_name=True)
    keywords: list[str] = Field(default_factory=list)
    exclude_retweets: bool = Field(False, alias="excludeRetweets")
    exclude_replies: bool = Field(False, alias="excludeReplies")
    languages: list[str] = Field(default_factory=list)
    authors: list[str] = Field(default_factory=list)


# --- Health payload ---
class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"] = "ok"
    as_of: str
    service: str = "twitter-agent"
    twitter_credentials: bool


# --- Version payload ---
class VersionResponse(BaseModel):
    service: str  # "twitter-agent-api:0.1.0"
    service_version: str


# --- Error taxonomy ---
class ErrorCode(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_REQUEST = "INVALID_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    RATE_LIMITED = "RATE_LIMITED"
    UPSTREAM_AUTH = "UPSTREAM_AUTH"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorDetail(BaseModel):
    code: ErrorCode
    message: str
    hint: str | None = None


class ErrorResponse(BaseModel):
    error: ErrorDetail


# --- Intent filters ---
class KeywordRequest(BaseModel):
    keyword: Any = None


class CacheActionRequest(BaseModel):
    action: str | None = None


# --- Twitter actions (dashboard sends camelCase) ---
class TwitterActionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    action: str | None = None
    text: str | None = None
    reply_to_tweet_id: str | None = Field(None, alias="replyToTweetId")
    tweet_id: str | None = Field(None, alias="tweetId")
    user_id: str | None = Field(None, alias="userId")
    username: str | None = None
    query: str | None = None
    filters: TweetFilter | None = None
    max_results: int | None = Field(None, alias="maxResults", ge=1, le=100)
