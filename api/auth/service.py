"""
Auth business logic.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import HTTPException, status

from core import cache, config

from . import repository, schemas, security, sessions

logger = logging.getLogger(__name__)


def _to_user_response(user_row: dict) -> schemas.UserResponse:
    return schemas.UserResponse(id=str(user_row["id"]), login=str(user_row["login"]))


async def register(payload: schemas.RegisterRequest) -> schemas.UserResponse:
    if not security.is_strong_password(payload.password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password must contain lowercase, uppercase, digit and symbol characters.",
        )

    existing = await repository.get_user_by_login(payload.login)
    if existing is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Login is already registered.",
        )

    user_row = await repository.create_user(
        user_id=str(uuid.uuid4()),
        login=payload.login,
        pass_hash=security.hash_password(payload.password),
    )
    if user_row is None:
        # Lost a race with a concurrent registration of the same login.
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Login is already registered.",
        )

    logger.info("user_registered user_id=%s", user_row["id"])
    return _to_user_response(user_row)


async def login(payload: schemas.LoginRequest) -> schemas.SessionResponse:
    user_row = await repository.get_user_by_login(payload.login)
    if user_row is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid login or password.",
        )

    is_valid = security.verify_password(payload.password, str(user_row.get("pass_hash") or ""))
    if not is_valid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid login or password.",
        )

    ttl_s = config.session_ttl_s()
    session_id = security.new_session_id()
    try:
        await sessions.save_session(session_id, user_row, ttl_s=ttl_s)
    except cache.CacheError as exc:
        logger.error("session_save_failed user_id=%s error=%s", user_row["id"], exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error.",
        ) from exc

    token = security.build_access_token(
        user_id=str(user_row["id"]),
        login=str(user_row["login"]),
        session_id=session_id,
        ttl_s=ttl_s,
    )
    return schemas.SessionResponse(access_token=token, expires_in=ttl_s)


async def logout(access_token: str) -> dict[str, bool]:
    try:
        payload = security.decode_access_token(access_token)
    except security.AuthSecurityError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc

    try:
        removed = await sessions.delete_session(str(payload["jti"]))
    except cache.CacheError as exc:
        logger.error("session_delete_failed error=%s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error.",
        ) from exc

    if not removed:
        logger.warning("session_not_found sub=%s", payload.get("sub"))
    return {"ok": True}


async def get_user_from_access_token(access_token: str) -> dict:
    try:
        payload = security.decode_access_token(access_token)
    except security.AuthSecurityError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc

    try:
        session = await sessions.get_session(str(payload["jti"]))
    except cache.CacheError as exc:
        logger.error("session_lookup_failed error=%s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error.",
        ) from exc

    if session is None or str(session["id"]) != str(payload["sub"]):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired or logged out.",
        )
    return session
