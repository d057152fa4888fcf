# twitter_agent/auth.py
# Purpose: Resolve the calling user for API routes.
# The identity provider is external; the service only needs "request -> user id or none".

from __future__ import annotations

from typing import Protocol

from fastapi import Request, status

from twitter_agent.errors import http_error
from twitter_agent.schemas import ErrorCode


class AuthProvider(Protocol):
    def authenticate(self, request: Request) -> str | None: ...


class BearerTokenAuth:
    """Maps `Authorization: Bearer <token>` to a user id via a static token table."""

    def __init__(self, tokens: dict[str, str]):
        self._tokens = dict(tokens)

    def authenticate(self, request: Request) -> str | None:
        header = request.headers.get("authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token:
            return None
        return self._tokens.get(token.strip())


def require_user(request: Request) -> str:
    """FastAPI dependency: the authenticated user id, or 401."""
    provider: AuthProvider = request.app.state.auth
    user_id = provider.authenticate(request)
    if not user_id:
        raise http_error(ErrorCode.UNAUTHORIZED, "Unauthorized", status.HTTP_401_UNAUTHORIZED)
    return user_id
