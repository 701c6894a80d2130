"""Resolve the acting user for a profile operation."""

from __future__ import annotations

from typing import Optional, Protocol

from fastapi import Request

USER_ID_HEADER = "X-User-Id"


class IdentityResolver(Protocol):
    def current_actor(self) -> Optional[str]:
        ...


class HeaderIdentityResolver:
    """Take the actor's user id from the `X-User-Id` request header."""

    def __init__(self, request: Request) -> None:
        self._request = request

    def current_actor(self) -> Optional[str]:
        value = (self._request.headers.get(USER_ID_HEADER) or "").strip()
        return value or None


class StaticIdentityResolver:
    """Always resolve to a fixed user id (or to nobody)."""

    def __init__(self, user_id: Optional[str]) -> None:
        self._user_id = user_id

    def current_actor(self) -> Optional[str]:
        return self._user_id
