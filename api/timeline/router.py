"""
Timeline API endpoint.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response

from core import store

from . import service

router = APIRouter()


@router.get("/api/timeline")
async def get_timeline(
    response: Response,
    ca: str | None = Query(default=None, max_length=200),
    limit: int | None = Query(default=None),
    record_store: store.SupabaseStore = Depends(store.anon_store),
) -> dict:
    result = await service.token_timeline(record_store, ca, limit=limit)
    response.headers["Cache-Control"] = "s-maxage=20, stale-while-revalidate=120"
    return result
