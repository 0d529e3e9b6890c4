"""
Timeline lookup for a single token.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from core.errors import ApiError
from core.store import RecordStore, StoreError

from . import repository

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


async def token_timeline(store: RecordStore, ca: str | None, *, limit: int | None = None) -> dict[str, Any]:
    ca = (ca or "").strip()
    if not ca:
        raise ApiError(400, "Missing query param: ca", stage="input")

    limit = max(1, min(limit if limit is not None else DEFAULT_LIMIT, MAX_LIMIT))
    try:
        rows = await repository.list_events(store, ca, limit=limit)
    except StoreError as exc:
        raise ApiError(500, exc.message, details=exc.body or exc.message, stage="query") from exc

    return {
        "ok": True,
        "ca": ca,
        "timeline": rows,
        "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
    }
