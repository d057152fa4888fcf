# twitter_agent/routers/account.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from twitter_agent.deps import get_store
from twitter_agent.intent_filters import IntentFilterStore
from twitter_agent.utils import utc_now_iso

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/status")
def auth_status(request: Request, store: IntentFilterStore = Depends(get_store)):
    """Who is calling. Unauthenticated callers get 200 with authenticated=false."""
    user_id = request.app.state.auth.authenticate(request)
    if not user_id:
        return {"authenticated": False, "user": None, "timestamp": utc_now_iso()}

    profile = store.get_profile(user_id)
    return {
        "authenticated": True,
        "user": {"id": user_id},
        "profile": profile.model_dump() if profile else None,
        "filterCount": len(store.list_filters(user_id)),
        "timestamp": utc_now_iso(),
    }
