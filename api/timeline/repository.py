"""
Token timeline queries (table `token_timeline`).
"""

from __future__ import annotations

from typing import Any

from core.store import Filter, Order, RecordStore

TIMELINE_TABLE = "token_timeline"
TIMELINE_COLUMNS = ("event", "payload", "created_at")


async def list_events(store: RecordStore, ca: str, *, limit: int) -> list[dict[str, Any]]:
    """
    Newest first.
    """
    return await store.query(
        TIMELINE_TABLE,
        columns=TIMELINE_COLUMNS,
        filters=[Filter("ca", "eq", ca)],
        order=[Order("created_at", descending=True, nulls_last=False)],
        limit=limit,
    )
