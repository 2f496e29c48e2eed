"""
Auth dependencies for FastAPI routes.

Both variants read the same `Authorization: Bearer <token>` header. A route
that requires a user rejects a missing header; a route with optional auth
treats it as an anonymous caller. A header that is present but malformed, or
a token whose session is gone, is a 401 either way.
"""

from __future__ import annotations

from fastapi import Header, HTTPException, status

from . import service

BEARER_SCHEME = "bearer"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _extract_bearer_token(authorization: str | None) -> str:
    scheme, _, token = (authorization or "").strip().partition(" ")
    if not scheme:
        raise _unauthorized("Missing Authorization header.")
    if scheme.lower() != BEARER_SCHEME or not token.strip():
        raise _unauthorized("Authorization must be: Bearer <token>.")
    return token.strip()


async def _resolve_user(authorization: str | None, *, required: bool) -> dict | None:
    if not required and not (authorization or "").strip():
        return None
    return await service.get_user_from_access_token(_extract_bearer_token(authorization))


async def get_bearer_token(authorization: str | None = Header(default=None)) -> str:
    return _extract_bearer_token(authorization)


async def get_current_user(authorization: str | None = Header(default=None)) -> dict:
    return await _resolve_user(authorization, required=True)


async def get_optional_user(authorization: str | None = Header(default=None)) -> dict | None:
    return await _resolve_user(authorization, required=False)
