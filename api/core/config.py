"""
Environment-backed settings.

Every value is read at call time so tests (and a redeploy with new env vars)
never see a stale value.
"""

from __future__ import annotations

import os

from .errors import ConfigError

DEFAULT_CORS_ORIGINS = ("http://localhost:5173", "http://127.0.0.1:5173")


def _env_str(*names: str) -> str:
    for name in names:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return ""


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def supabase_url() -> str:
    return _env_str("SUPABASE_URL", "VITE_SUPABASE_URL")


def service_role_key() -> str:
    return _env_str("SUPABASE_SERVICE_ROLE_KEY")


def anon_key() -> str:
    return _env_str("SUPABASE_ANON_KEY", "VITE_SUPABASE_ANON_KEY")


def store_timeout_s() -> float:
    return _env_float("SUPABASE_TIMEOUT_S", 15.0)


def require_service_credentials() -> tuple[str, str]:
    url, key = supabase_url(), service_role_key()
    if not url or not key:
        raise ConfigError(
            "Missing env vars. Need SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY.",
            details={"hasUrl": bool(url), "hasServiceRole": bool(key)},
        )
    return url, key


def require_anon_credentials() -> tuple[str, str]:
    url, key = supabase_url(), anon_key()
    if not url or not key:
        raise ConfigError(
            "Missing SUPABASE_URL / SUPABASE_ANON_KEY.",
            details={"hasUrl": bool(url), "hasAnonKey": bool(key)},
        )
    return url, key


def feed_table() -> str:
    return os.environ.get("FEED_TABLE", "pending_pool").strip() or "pending_pool"


def feed_default_limit() -> int:
    return _env_int("FEED_DEFAULT_LIMIT", 30)


def feed_max_limit() -> int:
    return max(1, _env_int("FEED_MAX_LIMIT", 200))


def feed_scan_limit() -> int:
    return max(1, _env_int("FEED_SCAN_LIMIT", 500))


def feed_strategy() -> str:
    raw = os.environ.get("FEED_STRATEGY", "").strip().lower()
    return raw if raw in {"pushdown", "partition"} else "pushdown"


def feed_early_requires_forming() -> bool:
    return _env_bool("FEED_EARLY_REQUIRES_FORMING", False)


def cors_origins() -> list[str]:
    raw = os.environ.get("CORS_ORIGINS", "").strip()
    if not raw:
        return list(DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]
