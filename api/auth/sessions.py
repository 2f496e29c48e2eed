"""
Login sessions stored in Redis.

A session is `session:<jti>` -> user JSON, expiring after SESSION_TTL_S.
Deleting the key is what logs a token out.
"""

from __future__ import annotations

import json

from core import cache

SESSION_PREFIX = "session:"


def _key(session_id: str) -> str:
    return SESSION_PREFIX + session_id


def _store() -> cache.CacheClient:
    return cache.CacheClient(cache.client())


async def save_session(session_id: str, user: dict, *, ttl_s: int) -> None:
    payload = json.dumps({"id": str(user["id"]), "login": str(user["login"])}, ensure_ascii=True)
    await _store().set(_key(session_id), payload, ttl_s)


async def get_session(session_id: str) -> dict | None:
    raw = await _store().get(_key(session_id))
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(data, dict) or not data.get("id"):
        return None
    return data


async def delete_session(session_id: str) -> bool:
    return await _store().delete(_key(session_id)) > 0
