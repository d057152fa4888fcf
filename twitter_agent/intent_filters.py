"""
User profiles and intent filters.

The production deployment keeps these rows in a managed database; this module
holds the in-process store the API talks to. Rows are plain pydantic models.
"""

from __future__ import annotations

import logging
import threading
import uuid

from pydantic import BaseModel

from twitter_agent.utils import utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_KEYWORD = "startup"


class StoreError(Exception):
    """Raised when the backing store cannot complete an operation."""


class DuplicateFilterError(StoreError):
    pass


class UserProfile(BaseModel):
    id: str
    email: str = ""
    full_name: str | None = None
    created_at: str


class IntentFilter(BaseModel):
    id: str
    user_id: str
    keyword: str
    created_at: str


class IntentFilterStore:
    def __init__(self):
        self._profiles: dict[str, UserProfile] = {}
        self._filters: list[IntentFilter] = []
        self._lock = threading.Lock()

    def get_or_create_profile(
        self, user_id: str, email: str = "", full_name: str | None = None
    ) -> UserProfile:
        with self._lock:
            profile = self._profiles.get(user_id)
            if profile is None:
                profile = UserProfile(
                    id=user_id, email=email, full_name=full_name, created_at=utc_now_iso()
                )
                self._profiles[user_id] = profile
                logger.info("profile created", extra={"context": {"user_id": user_id}})
            return profile

    def get_profile(self, user_id: str) -> UserProfile | None:
        with self._lock:
            return self._profiles.get(user_id)

    def list_filters(self, user_id: str) -> list[IntentFilter]:
        """Newest first."""
        with self._lock:
            return [f for f in reversed(self._filters) if f.user_id == user_id]

    def list_keywords(self, user_id: str) -> list[str]:
        return [f.keyword for f in self.list_filters(user_id)]

    def add_filter(self, user_id: str, keyword: str) -> IntentFilter:
        keyword = keyword.strip()
        if not keyword:
            raise ValueError("keyword must be a non-empty string")
        with self._lock:
            if any(f.user_id == user_id and f.keyword == keyword for f in self._filters):
                raise DuplicateFilterError(f"filter already exists: {keyword}")
            row = IntentFilter(
                id=str(uuid.uuid4()), user_id=user_id, keyword=keyword, created_at=utc_now_iso()
            )
            self._filters.append(row)
        logger.info(
            "filter added",
            extra={"context": {"user_id": user_id, "keyword": keyword, "filter_id": row.id}},
        )
        return row

    def remove_filter(self, filter_id: str, user_id: str) -> bool:
        """Delete the caller's filter. False if the caller owns no such filter."""
        with self._lock:
            for i, f in enumerate(self._filters):
                if f.id == filter_id and f.user_id == user_id:
                    del self._filters[i]
                    break
            else:
                return False
        logger.info(
            "filter removed", extra={"context": {"user_id": user_id, "filter_id": filter_id}}
        )
        return True
