"""
Feed aggregation.

Flow:
1) Resolve a working column projection (cached, negotiated on miss)
2) Query CORE / STABLE / EARLY concurrently (or one broad query, partitioned)
3) Classify every returned row locally; it lands in its own zone
4) Deduplicate by `ca` in zone priority order
5) Rank, truncate per zone, build the envelope

The feed is all-or-nothing: any fatal store error fails the whole request.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from core import config, store
from core.errors import ApiError
from core.store import RecordStore, StoreError

from . import ranking, repository, schemas
from .negotiation import NegotiationFailed, Projection, ProjectionCache
from .zones import DEFAULT_POLICY, ZONE_ORDER, Zone, ZonePolicy, classify

logger = logging.getLogger(__name__)

FEED_DETAILS_CHARS = 1200
STRATEGIES = {"pushdown", "partition"}


class FeedError(ApiError):
    def __init__(self, error: str, *, stage: str, details: Any = None) -> None:
        super().__init__(500, error, details=details, stage=stage, max_details_chars=FEED_DETAILS_CHARS)


class _StaleProjection(Exception):
    pass


@dataclass(frozen=True)
class FeedOptions:
    per_zone_limit: int | None = None
    apply_status_filter: bool = True
    core_limit: int | None = None
    stable_limit: int | None = None
    early_limit: int | None = None


def clamp_limit(value: int | None, *, default: int, max_limit: int) -> int:
    if value is None:
        value = default
    return max(1, min(int(value), max_limit))


def partition(rows: Iterable[Mapping[str, Any]], policy: ZonePolicy = DEFAULT_POLICY) -> dict[Zone, list[Any]]:
    """
    Split rows into zones with the local classifier.
    """
    buckets: dict[Zone, list[Any]] = {zone: [] for zone in ZONE_ORDER}
    for row in rows:
        zone = classify(row, policy)
        if zone is not None:
            buckets[zone].append(row)
    return buckets


def dedupe(buckets: Mapping[Zone, list[Any]]) -> dict[Zone, list[Any]]:
    """
    Keep the first occurrence of each `ca`, walking zones in priority order.
    Rows without an identity are dropped.
    """
    seen: set[str] = set()
    result: dict[Zone, list[Any]] = {zone: [] for zone in ZONE_ORDER}
    for zone in ZONE_ORDER:
        for row in buckets.get(zone, []):
            identity = str(row.get(ranking.IDENTITY) or "").strip()
            if not identity or identity in seen:
                continue
            seen.add(identity)
            result[zone].append(row)
    return result


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class FeedAggregator:
    def __init__(
        self,
        record_store: RecordStore,
        *,
        table: str = "pending_pool",
        cache: ProjectionCache | None = None,
        policy: ZonePolicy = DEFAULT_POLICY,
        strategy: str = "pushdown",
        default_limit: int = 30,
        max_limit: int = 200,
        scan_limit: int = 500,
        clock: Callable[[], str] = _utc_now_iso,
    ) -> None:
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown feed strategy: {strategy}")
        self.store = record_store
        self.table = table
        self.cache = cache if cache is not None else ProjectionCache()
        self.policy = policy
        self.strategy = strategy
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.scan_limit = scan_limit
        self.clock = clock

    def limits(self, options: FeedOptions) -> dict[Zone, int]:
        per_zone = clamp_limit(options.per_zone_limit, default=self.default_limit, max_limit=self.max_limit)
        overrides = {
            Zone.CORE: options.core_limit,
            Zone.STABLE: options.stable_limit,
            Zone.EARLY: options.early_limit,
        }
        return {
            zone: clamp_limit(override, default=per_zone, max_limit=self.max_limit)
            for zone, override in overrides.items()
        }

    async def build_feed(self, options: FeedOptions | None = None) -> schemas.FeedEnvelope:
        options = options or FeedOptions()
        limits = self.limits(options)
        try:
            return await self._build(options, limits)
        except _StaleProjection:
            # The cached projection no longer matches the table. Renegotiate once.
            logger.warning("projection_stale table=%s renegotiating", self.table)
            self.cache.invalidate()
            return await self._build(options, limits, renegotiated=True)

    async def _resolve_projection(self) -> tuple[Projection, bool]:
        try:
            result, from_cache = await self.cache.resolve(self.store, self.table)
        except StoreError as exc:
            raise FeedError(exc.message, stage="negotiation", details=exc.body or exc.message) from exc

        if isinstance(result, NegotiationFailed):
            last = result.last_error
            raise FeedError(
                "No candidate column projection was accepted by the store.",
                stage="negotiation",
                details=(last.body or last.message) if last is not None else None,
            )
        return result.projection, from_cache

    async def _build(
        self,
        options: FeedOptions,
        limits: dict[Zone, int],
        *,
        renegotiated: bool = False,
    ) -> schemas.FeedEnvelope:
        projection, from_cache = await self._resolve_projection()

        try:
            if self.strategy == "partition":
                buckets = await self._fetch_partitioned(projection, options)
            else:
                buckets = await self._fetch_pushdown(projection, options, limits)
        except StoreError as exc:
            if exc.is_unknown_column:
                if from_cache and not renegotiated:
                    raise _StaleProjection() from exc
                self.cache.invalidate()
            raise FeedError(exc.message, stage="query", details=exc.body or exc.message) from exc

        zones = {zone: ranking.rank(rows)[: limits[zone]] for zone, rows in dedupe(buckets).items()}
        envelope = self._envelope(projection, options, limits, zones, renegotiated=renegotiated)
        logger.info(
            "feed_built projection=%s strategy=%s core=%s stable=%s early=%s",
            projection.name,
            self.strategy,
            envelope.counts.core,
            envelope.counts.stable,
            envelope.counts.early,
        )
        return envelope

    def _query_limit(self, zone: Zone, limits: dict[Zone, int]) -> int:
        # Strict-policy EARLY rows are filtered locally, so scan wider.
        if zone is Zone.EARLY and self.policy.early_requires_forming:
            return max(limits[zone], self.scan_limit)
        return limits[zone]

    async def _fetch_pushdown(
        self,
        projection: Projection,
        options: FeedOptions,
        limits: dict[Zone, int],
    ) -> dict[Zone, list[Any]]:
        results = await asyncio.gather(
            *(
                repository.fetch_zone(
                    self.store,
                    self.table,
                    zone,
                    projection=projection,
                    policy=self.policy,
                    apply_status_filter=options.apply_status_filter,
                    limit=self._query_limit(zone, limits),
                )
                for zone in ZONE_ORDER
            )
        )

        buckets: dict[Zone, list[Any]] = {zone: [] for zone in ZONE_ORDER}
        moved = 0
        for queried, rows in zip(ZONE_ORDER, results):
            for row in rows:
                zone = classify(row, self.policy)
                if zone is None:
                    continue
                if zone is not queried:
                    moved += 1
                buckets[zone].append(row)
        if moved:
            logger.info("zone_rows_reclassified count=%s", moved)
        return buckets

    async def _fetch_partitioned(self, projection: Projection, options: FeedOptions) -> dict[Zone, list[Any]]:
        rows = await repository.fetch_all(
            self.store,
            self.table,
            projection=projection,
            apply_status_filter=options.apply_status_filter,
            limit=self.scan_limit,
        )
        return partition(rows, self.policy)

    def _envelope(
        self,
        projection: Projection,
        options: FeedOptions,
        limits: dict[Zone, int],
        zones: dict[Zone, list[Any]],
        *,
        renegotiated: bool,
    ) -> schemas.FeedEnvelope:
        counts = {zone.value: len(rows) for zone, rows in zones.items()}
        return schemas.FeedEnvelope(
            counts=schemas.FeedCounts(**counts, total=sum(counts.values())),
            zones=schemas.FeedZones(**{zone.value: rows for zone, rows in zones.items()}),
            meta=schemas.FeedMeta(
                table=self.table,
                projection=projection.name,
                columns=list(projection.columns),
                strategy=self.strategy,
                filters={"status": repository.STATUS_PASSED if options.apply_status_filter else None},
                sort=[o.encode() for o in ranking.store_order(projection.columns)],
                limits=schemas.FeedLimits(**{zone.value: limit for zone, limit in limits.items()}),
                early_requires_forming=self.policy.early_requires_forming,
                renegotiated=renegotiated,
            ),
            ts=self.clock(),
        )


_projection_cache = ProjectionCache()


def projection_cache() -> ProjectionCache:
    return _projection_cache


async def get_aggregator() -> FeedAggregator:
    """
    FastAPI dependency: aggregator over the service-role store.
    """
    return FeedAggregator(
        await store.service_store(),
        table=config.feed_table(),
        cache=projection_cache(),
        policy=ZonePolicy(early_requires_forming=config.feed_early_requires_forming()),
        strategy=config.feed_strategy(),
        default_limit=config.feed_default_limit(),
        max_limit=config.feed_max_limit(),
        scan_limit=config.feed_scan_limit(),
    )
