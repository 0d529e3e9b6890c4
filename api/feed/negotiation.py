"""
Schema negotiation for the feed table.

The table's columns drift between deployments (flags vs milestone timestamps,
newer score columns). Instead of failing on an unknown column we probe
candidate projections, richest first, and keep the first one the store
accepts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence, Union

from core.store import RecordStore, StoreError

logger = logging.getLogger(__name__)

BASE_COLUMNS = (
    "ca",
    "symbol",
    "liq",
    "banana_score",
    "smart_money_count",
    "narrative_log",
    "created_at",
    "first_passed_at",
)
FLAG_COLUMNS = ("forming_confirmed", "stable_confirmed", "core_confirmed")
TIMESTAMP_COLUMNS = ("forming_confirmed_at", "stable_confirmed_at", "core_confirmed_at")


@dataclass(frozen=True)
class Projection:
    name: str
    columns: tuple[str, ...]

    def has(self, column: str) -> bool:
        return column in self.columns


DEFAULT_CANDIDATES: tuple[Projection, ...] = (
    Projection("full", BASE_COLUMNS + FLAG_COLUMNS + TIMESTAMP_COLUMNS + ("status",)),
    Projection("flags", BASE_COLUMNS + FLAG_COLUMNS + ("status",)),
    Projection("timestamps", BASE_COLUMNS + TIMESTAMP_COLUMNS + ("status",)),
    Projection("minimal", ("ca", "symbol", "banana_score", "created_at", "status")),
)


@dataclass(frozen=True)
class Attempt:
    projection: str
    error: str


@dataclass(frozen=True)
class Negotiated:
    projection: Projection
    attempts: tuple[Attempt, ...] = ()


@dataclass(frozen=True)
class NegotiationFailed:
    last_error: StoreError | None
    attempts: tuple[Attempt, ...] = ()


NegotiationResult = Union[Negotiated, NegotiationFailed]


async def negotiate(
    store: RecordStore,
    table: str,
    candidates: Sequence[Projection] = DEFAULT_CANDIDATES,
) -> NegotiationResult:
    """
    Return the first candidate projection the store accepts.

    Only unknown-column errors advance to the next candidate. Any other store
    error (auth, network, rate limit) is raised as-is: a smaller projection
    would not fix it.
    """
    attempts: list[Attempt] = []
    last_error: StoreError | None = None

    for candidate in candidates:
        try:
            await store.query(table, columns=candidate.columns, limit=1)
        except StoreError as exc:
            if not exc.is_unknown_column:
                raise
            last_error = exc
            attempts.append(Attempt(projection=candidate.name, error=exc.body or exc.message))
            logger.warning("projection_rejected table=%s projection=%s", table, candidate.name)
            continue

        logger.info("projection_negotiated table=%s projection=%s", table, candidate.name)
        return Negotiated(projection=candidate, attempts=tuple(attempts))

    return NegotiationFailed(last_error=last_error, attempts=tuple(attempts))


@dataclass
class ProjectionCache:
    """
    Process-wide negotiated projection, filled lazily.

    No lock: concurrent requests may negotiate at the same time and will
    store the same value.
    """

    candidates: tuple[Projection, ...] = DEFAULT_CANDIDATES
    _projection: Projection | None = field(default=None, repr=False)

    def get(self) -> Projection | None:
        return self._projection

    def set(self, projection: Projection) -> None:
        self._projection = projection

    def invalidate(self) -> None:
        self._projection = None

    async def resolve(self, store: RecordStore, table: str) -> tuple[NegotiationResult, bool]:
        """
        Return (result, from_cache).
        """
        cached = self._projection
        if cached is not None:
            return Negotiated(projection=cached), True

        result = await negotiate(store, table, self.candidates)
        if isinstance(result, Negotiated):
            self._projection = result.projection
        return result, False
