"""
Auth security helpers: password hashing and signed access tokens.
"""

from __future__ import annotations

import secrets
import time
import unicodedata
from typing import Any

import bcrypt
import jwt

from core import config


class AuthSecurityError(RuntimeError):
    pass


def jwt_secret() -> str:
    # Local default keeps development simple.
    # In production, set JWT_SECRET in environment.
    return config.env_str("JWT_SECRET", "dev-change-this-secret")


def jwt_algorithm() -> str:
    return config.env_str("JWT_ALG", "HS256")


def now_epoch_s() -> int:
    return int(time.time())


def is_strong_password(password: str) -> bool:
    """
    At least 8 characters with a lowercase letter, an uppercase letter,
    a digit and a symbol/punctuation character.
    """
    if len(password or "") < 8:
        return False

    has_lower = has_upper = has_digit = has_symbol = False
    for ch in password:
        if ch.islower():
            has_lower = True
        elif ch.isupper():
            has_upper = True
        elif ch.isdigit():
            has_digit = True
        elif unicodedata.category(ch)[0] in ("P", "S"):
            has_symbol = True
    return has_lower and has_upper and has_digit and has_symbol


def hash_password(plain_password: str) -> str:
    password = (plain_password or "").encode("utf-8")
    if not password:
        raise AuthSecurityError("Password is empty.")
    return bcrypt.hashpw(password, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    password = (plain_password or "").encode("utf-8")
    hashed = (password_hash or "").encode("utf-8")
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password, hashed)
    except ValueError:
        return False


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


def build_access_token(*, user_id: str, login: str, session_id: str, ttl_s: int) -> str:
    issued_at = now_epoch_s()
    payload = {
        "sub": user_id,
        "login": login,
        "jti": session_id,
        "type": "access",
        "iat": issued_at,
        "exp": issued_at + ttl_s,
    }
    return jwt.encode(payload, jwt_secret(), algorithm=jwt_algorithm())


def decode_access_token(token: str) -> dict[str, Any]:
    raw = (token or "").strip()
    if not raw:
        raise AuthSecurityError("Access token is empty.")

    try:
        payload = jwt.decode(raw, jwt_secret(), algorithms=[jwt_algorithm()])
    except jwt.InvalidTokenError as exc:
        raise AuthSecurityError("Invalid access token.") from exc

    token_type = str(payload.get("type") or "").strip().lower()
    if token_type != "access":
        raise AuthSecurityError("Token is not an access token.")

    if not str(payload.get("sub") or "").strip() or not str(payload.get("jti") or "").strip():
        raise AuthSecurityError("Access token is missing claims.")

    return payload
