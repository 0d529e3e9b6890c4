"""
Deployment diagnostics.

Helps verify env wiring on a fresh deployment without shell access:
- which credentials are present
- whether the service role can write to the capture tables
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from core import config
from core.store import RecordStore, StoreError

PROBE_BODY_CHARS = 800
URL_PREFIX_CHARS = 25


def public_config() -> dict[str, Any]:
    # The anon key is public; the front end reads it here instead of
    # hard-coding it.
    url, anon_key = config.require_anon_credentials()
    return {"ok": True, "supabaseUrl": url, "supabaseAnonKey": anon_key}


def env_report() -> dict[str, Any]:
    url = config.supabase_url()
    return {
        "ok": True,
        "has_SUPABASE_URL": bool(url),
        "has_SUPABASE_ANON_KEY": bool(config.anon_key()),
        "has_SERVICE_ROLE": bool(config.service_role_key()),
        "supabase_url_prefix": url[:URL_PREFIX_CHARS] if url else None,
    }


def missing_service_env() -> dict[str, Any] | None:
    url, key = config.supabase_url(), config.service_role_key()
    if url and key:
        return None
    return {
        "ok": False,
        "stage": "env",
        "has_SUPABASE_URL": bool(url),
        "has_SERVICE_ROLE": bool(key),
    }


async def _probe_insert(store: RecordStore, table: str, row: dict[str, Any]) -> dict[str, Any]:
    try:
        rows = await store.insert(table, [row], returning=True)
    except StoreError as exc:
        return {
            "ok": False,
            "status": exc.status_code,
            "kind": exc.kind.value,
            "body": (exc.body or exc.message)[:PROBE_BODY_CHARS],
        }
    return {"ok": True, "rows": len(rows)}


async def write_probe(store: RecordStore) -> dict[str, Any]:
    """
    Insert one marker row into `page_events` and one into `feedback`.
    """
    now = datetime.now(timezone.utc).isoformat()
    page_events = await _probe_insert(
        store,
        "page_events",
        {
            "session_id": "diag",
            "event": "diag_event",
            "props": {"t": now},
            "ua": "diag",
            "ip": None,
        },
    )
    feedback = await _probe_insert(
        store,
        "feedback",
        {
            "kind": "feedback",
            "email": "diag@example.com",
            "message": "diag message",
            "page": "/diag",
            "ca": None,
            "props": {"t": now},
            "ua": "diag",
            "ip": None,
        },
    )
    return {
        "ok": True,
        "supabase_url": config.supabase_url(),
        "page_events": page_events,
        "feedback": feedback,
    }
