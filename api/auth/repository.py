"""
User persistence helpers.
"""

from __future__ import annotations

import asyncpg

from core import db


async def create_user(*, user_id: str, login: str, pass_hash: str) -> dict | None:
    """
    Insert a user. Returns None when the login is already taken.
    """
    try:
        row = await db.fetch_one(
            """
            INSERT INTO users (id, login, pass_hash)
            VALUES ($1, $2, $3)
            RETURNING id, login, created_at
            """,
            user_id,
            login,
            pass_hash,
        )
    except asyncpg.UniqueViolationError:
        return None
    if row is None:
        raise RuntimeError("Failed to create user.")
    return row


async def get_user_by_login(login: str) -> dict | None:
    return await db.fetch_one(
        """
        SELECT id, login, pass_hash, created_at
        FROM users
        WHERE login = $1
        """,
        login,
    )

