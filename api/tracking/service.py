"""
Page-event and feedback capture (insert-only).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from core.errors import ApiError
from core.store import RecordStore, StoreError

from . import schemas

logger = logging.getLogger(__name__)

EVENTS_TABLE = "page_events"
FEEDBACK_TABLE = "feedback"
MIN_MESSAGE_CHARS = 2


@dataclass(frozen=True)
class ClientInfo:
    user_agent: str
    ip: str | None


def client_info(user_agent: str | None, forwarded_for: str | None) -> ClientInfo:
    ip = (forwarded_for or "").split(",")[0].strip() or None
    return ClientInfo(user_agent=user_agent or "", ip=ip)


def _clean(value: str | None) -> str | None:
    return (value or "").strip() or None


async def _insert(store: RecordStore, table: str, row: dict[str, Any]) -> None:
    try:
        await store.insert(table, [row])
    except StoreError as exc:
        logger.warning("insert_failed table=%s status=%s", table, exc.status_code)
        raise ApiError(
            500,
            f"Insert failed: {exc.status_code or exc.kind.value}",
            details=exc.body or exc.message,
            stage="query",
        ) from exc


async def record_event(store: RecordStore, payload: schemas.EventRequest, client: ClientInfo) -> dict[str, bool]:
    event = _clean(payload.event)
    session_id = _clean(payload.session_id)
    if not event or not session_id:
        raise ApiError(400, "Missing event or session_id", stage="input")

    await _insert(
        store,
        EVENTS_TABLE,
        {
            "session_id": session_id,
            "event": event,
            "props": payload.props or {},
            "ua": client.user_agent,
            "ip": client.ip,
        },
    )
    return {"ok": True}


def _long_enough(message: str | None) -> bool:
    return message is not None and len(message) >= MIN_MESSAGE_CHARS


async def record_feedback(
    store: RecordStore,
    payload: schemas.FeedbackRequest,
    client: ClientInfo,
) -> dict[str, bool]:
    kind = _clean(payload.kind) or "feedback"
    email = _clean(payload.email)
    message = _clean(payload.message)

    if kind != "waitlist" and not _long_enough(message):
        raise ApiError(400, "Message too short", stage="input")
    if kind == "waitlist" and not email and not _long_enough(message):
        raise ApiError(400, "Please provide email or a short message", stage="input")

    await _insert(
        store,
        FEEDBACK_TABLE,
        {
            "kind": kind,
            "email": email,
            "message": message,
            "page": _clean(payload.page),
            "ca": _clean(payload.ca),
            "props": {"session_id": _clean(payload.session_id)},
            "ua": client.user_agent,
            "ip": client.ip,
        },
    )
    return {"ok": True}
