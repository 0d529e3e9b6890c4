"""
Tracking API endpoints (page events, feedback, waitlist).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Response

from core import store

from . import schemas, service

router = APIRouter()


def get_client_info(
    user_agent: str | None = Header(default=None),
    x_forwarded_for: str | None = Header(default=None),
) -> service.ClientInfo:
    return service.client_info(user_agent, x_forwarded_for)


@router.post("/api/event")
async def post_event(
    payload: schemas.EventRequest,
    response: Response,
    client: service.ClientInfo = Depends(get_client_info),
    record_store: store.SupabaseStore = Depends(store.service_store),
) -> dict:
    response.headers["Cache-Control"] = "no-store"
    return await service.record_event(record_store, payload, client)


@router.post("/api/feedback")
async def post_feedback(
    payload: schemas.FeedbackRequest,
    response: Response,
    client: service.ClientInfo = Depends(get_client_info),
    record_store: store.SupabaseStore = Depends(store.service_store),
) -> dict:
    response.headers["Cache-Control"] = "no-store"
    return await service.record_feedback(record_store, payload, client)
