"""
Feed API endpoint.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response

from . import service

router = APIRouter()

CACHE_CONTROL = "s-maxage=20, stale-while-revalidate=120"
TRUE_FLAGS = {"1", "true", "yes", "on"}


def _flag(raw: str | None) -> bool:
    return (raw or "").strip().lower() in TRUE_FLAGS


@router.get("/api/feed")
async def get_feed(
    response: Response,
    limit: int | None = Query(default=None),
    per_zone: int | None = Query(default=None),
    no_status_filter: str | None = Query(default=None),
    core_limit: int | None = Query(default=None),
    stable_limit: int | None = Query(default=None),
    early_limit: int | None = Query(default=None),
    aggregator: service.FeedAggregator = Depends(service.get_aggregator),
) -> dict:
    """
    Zone-classified token feed.

    `?no_status_filter=1` widens the feed to rows that have not passed yet.
    """
    options = service.FeedOptions(
        per_zone_limit=per_zone if per_zone is not None else limit,
        apply_status_filter=not _flag(no_status_filter),
        core_limit=core_limit,
        stable_limit=stable_limit,
        early_limit=early_limit,
    )
    envelope = await aggregator.build_feed(options)
    response.headers["Cache-Control"] = CACHE_CONTROL
    return envelope.model_dump()
