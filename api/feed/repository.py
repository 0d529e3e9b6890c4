"""
Feed queries against the record store.

Zone predicates are pushed down as PostgREST filters built only from the
columns present in the negotiated projection:
- confirmed(X):     X is true  OR  X_at is not null
- not confirmed(X): NOT (X is true OR X_at is not null)

The three zone queries together cover every row: CORE and STABLE select the
store-side confirmed sets and EARLY selects the exact complement. Rows are
classified locally afterwards, so values the store cannot interpret (numeric
flags, "false" in a text timestamp) land in their real zone.
"""

from __future__ import annotations

from typing import Any

from core.store import AnyOf, Clause, Filter, RecordStore

from . import ranking
from .negotiation import Projection
from .zones import CORE, FORMING, STABLE, Zone, ZonePolicy

STATUS_PASSED = "passed"


def status_filter(apply_status_filter: bool) -> list[Clause]:
    return [Filter("status", "eq", STATUS_PASSED)] if apply_status_filter else []


def _confirmed_clauses(projection: Projection, attribute: str) -> tuple[Filter, ...]:
    clauses: list[Filter] = []
    if projection.has(attribute):
        clauses.append(Filter(attribute, "is", True))
    if projection.has(f"{attribute}_at"):
        clauses.append(Filter(f"{attribute}_at", "not.is", None))
    return tuple(clauses)


def _confirmed(projection: Projection, attribute: str) -> Clause | None:
    """
    None means the projection has no column that could confirm `attribute`.
    """
    clauses = _confirmed_clauses(projection, attribute)
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return AnyOf(clauses)


def _not_confirmed(projection: Projection, attribute: str) -> list[Clause]:
    clauses = _confirmed_clauses(projection, attribute)
    return [AnyOf(clauses, negated=True)] if clauses else []


def zone_filters(zone: Zone, projection: Projection, policy: ZonePolicy) -> list[Clause] | None:
    """
    Store filters selecting one zone, or None when the zone cannot match.

    The forming requirement of the strict policy is left to local
    classification; a projection without forming columns cannot satisfy it.
    """
    if zone is Zone.CORE:
        core = _confirmed(projection, CORE)
        return None if core is None else [core]

    if zone is Zone.STABLE:
        stable = _confirmed(projection, STABLE)
        if stable is None:
            return None
        return [stable, *_not_confirmed(projection, CORE)]

    if policy.early_requires_forming and _confirmed(projection, FORMING) is None:
        return None
    return [*_not_confirmed(projection, STABLE), *_not_confirmed(projection, CORE)]


async def fetch_zone(
    store: RecordStore,
    table: str,
    zone: Zone,
    *,
    projection: Projection,
    policy: ZonePolicy,
    apply_status_filter: bool,
    limit: int,
) -> list[dict[str, Any]]:
    filters = zone_filters(zone, projection, policy)
    if filters is None:
        return []
    return await store.query(
        table,
        columns=projection.columns,
        filters=[*status_filter(apply_status_filter), *filters],
        order=ranking.store_order(projection.columns),
        limit=limit,
    )


async def fetch_all(
    store: RecordStore,
    table: str,
    *,
    projection: Projection,
    apply_status_filter: bool,
    limit: int,
) -> list[dict[str, Any]]:
    return await store.query(
        table,
        columns=projection.columns,
        filters=status_filter(apply_status_filter),
        order=ranking.store_order(projection.columns),
        limit=limit,
    )
