"""
Environment-driven settings.

Every getter reads the environment on each call so tests can monkeypatch
variables without reloading modules.
"""

from __future__ import annotations

import os

DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_FILE_STORAGE_PATH = "./static/images"
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10 MiB
DEFAULT_CORS_ORIGINS = ("http://localhost:5173", "http://127.0.0.1:5173")


def env_str(name: str, default: str) -> str:
    return os.environ.get(name, default).strip() or default


def env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def database_url() -> str:
    url = os.environ.get("DATABASE_URL", "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL is not set.")
    return url


def redis_url() -> str:
    return env_str("REDIS_URL", DEFAULT_REDIS_URL)


def listings_cache_ttl_s() -> int:
    ttl = env_int("LISTINGS_CACHE_TTL_S", 60)
    return ttl if ttl > 0 else 60


def session_ttl_s() -> int:
    ttl = env_int("SESSION_TTL_S", 3600)
    return ttl if ttl > 0 else 3600


def file_storage_path() -> str:
    return env_str("FILE_STORAGE_PATH", DEFAULT_FILE_STORAGE_PATH)


def max_upload_bytes() -> int:
    value = env_int("MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES)
    return value if value > 0 else DEFAULT_MAX_UPLOAD_BYTES


def compensation_timeout_s() -> float:
    value = env_float("COMPENSATION_TIMEOUT_S", 5.0)
    return value if value > 0 else 5.0


def log_level() -> str:
    return env_str("LOG_LEVEL", "INFO").upper()


def cors_origins() -> list[str]:
    raw = os.environ.get("CORS_ORIGINS", "").strip()
    if not raw:
        return list(DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]
