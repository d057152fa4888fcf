# twitter_agent/routers/intent_filters.py
from __future__ import annotations

from fastapi import APIRouter, Depends, status

from twitter_agent.auth import require_user
from twitter_agent.deps import get_store
from twitter_agent.errors import http_error
from twitter_agent.intent_filters import DuplicateFilterError, IntentFilterStore
from twitter_agent.schemas import ErrorCode, KeywordRequest

router = APIRouter(prefix="/api/intent-filters", tags=["intent-filters"])


@router.get("")
def list_filters(
    user_id: str = Depends(require_user),
    store: IntentFilterStore = Depends(get_store),
):
    store.get_or_create_profile(user_id)
    return {"filters": [f.model_dump() for f in store.list_filters(user_id)]}


@router.post("", status_code=status.HTTP_201_CREATED)
def add_filter(
    req: KeywordRequest,
    user_id: str = Depends(require_user),
    store: IntentFilterStore = Depends(get_store),
):
    if not isinstance(req.keyword, str) or not req.keyword.strip():
        raise http_error(
            ErrorCode.INVALID_REQUEST, "Keyword is required and must be a non-empty string"
        )
    store.get_or_create_profile(user_id)
    try:
        row = store.add_filter(user_id, req.keyword)
    except DuplicateFilterError as e:
        raise http_error(ErrorCode.CONFLICT, str(e), status.HTTP_409_CONFLICT) from e
    return {"success": True, "filter": row.model_dump()}


@router.delete("/{filter_id}")
def remove_filter(
    filter_id: str,
    user_id: str = Depends(require_user),
    store: IntentFilterStore = Depends(get_store),
):
    if not store.remove_filter(filter_id, user_id):
        raise http_error(ErrorCode.NOT_FOUND, "Filter not found", status.HTTP_404_NOT_FOUND)
    return {"success": True, "message": "Filter removed successfully"}
