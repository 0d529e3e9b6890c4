"""
Feed response schemas.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class FeedCounts(BaseModel):
    core: int
    stable: int
    early: int
    total: int


class FeedZones(BaseModel):
    core: list[dict[str, Any]] = Field(default_factory=list)
    stable: list[dict[str, Any]] = Field(default_factory=list)
    early: list[dict[str, Any]] = Field(default_factory=list)


class FeedLimits(BaseModel):
    core: int
    stable: int
    early: int


class FeedMeta(BaseModel):
    table: str
    projection: str
    columns: list[str]
    strategy: str
    filters: dict[str, Any]
    sort: list[str]
    limits: FeedLimits
    early_requires_forming: bool
    renegotiated: bool = False


class FeedEnvelope(BaseModel):
    ok: bool = True
    counts: FeedCounts
    zones: FeedZones
    meta: FeedMeta
    ts: str
