"""
Shared pytest fixtures.

`FakeStore` is an in-memory RecordStore: it evaluates filters, ordering,
projection and limits like PostgREST and raises an unknown-column StoreError
when a query references a column the table does not have.
"""

from __future__ import annotations

import json
from collections import defaultdict
from typing import Any, Iterable, Sequence

import pytest

from core.store import AnyOf, Clause, Filter, Order, StoreError, StoreErrorKind

FEED_TABLE = "pending_pool"

FULL_COLUMNS = {
    "ca",
    "symbol",
    "liq",
    "banana_score",
    "smart_money_count",
    "narrative_log",
    "created_at",
    "first_passed_at",
    "forming_confirmed",
    "stable_confirmed",
    "core_confirmed",
    "forming_confirmed_at",
    "stable_confirmed_at",
    "core_confirmed_at",
    "status",
}


def unknown_column_error(table: str, column: str) -> StoreError:
    return StoreError(
        StoreErrorKind.UNKNOWN_COLUMN,
        "Supabase query failed (400)",
        status_code=400,
        body=json.dumps({"code": "42703", "message": f"column {table}.{column} does not exist"}),
    )


def _matches(row: dict[str, Any], clause: Clause) -> bool:
    if isinstance(clause, AnyOf):
        hit = any(_matches(row, c) for c in clause.clauses)
        return not hit if clause.negated else hit

    value = row.get(clause.column)
    if clause.op == "eq":
        return value == clause.value
    if clause.op == "is":
        return value is clause.value
    if clause.op == "not.is":
        return value is not clause.value
    raise AssertionError(f"unsupported op {clause.op}")


def _clause_columns(clause: Clause) -> set[str]:
    if isinstance(clause, AnyOf):
        return {c.column for c in clause.clauses}
    return {clause.column}


def _sort(rows: list[dict[str, Any]], order: Sequence[Order]) -> list[dict[str, Any]]:
    for o in reversed(order):
        present = [r for r in rows if r.get(o.column) is not None]
        absent = [r for r in rows if r.get(o.column) is None]
        present.sort(key=lambda r: r[o.column], reverse=o.descending)
        rows = present + absent
    return rows


class FakeStore:
    def __init__(
        self,
        rows: Iterable[dict[str, Any]] = (),
        *,
        columns: Iterable[str] | None = None,
        table: str = FEED_TABLE,
    ) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.tables[table] = [dict(r) for r in rows]
        self.columns: dict[str, set[str]] = {table: set(columns) if columns is not None else set(FULL_COLUMNS)}
        self.queries: list[dict[str, Any]] = []
        self.inserted: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self._errors: list[StoreError | None] = []

    def fail_next(self, *errors: StoreError | None) -> None:
        """
        Queue outcomes for the next calls; None lets a call through.
        """
        self._errors.extend(errors)

    def _maybe_fail(self) -> None:
        if self._errors:
            error = self._errors.pop(0)
            if error is not None:
                raise error

    async def query(
        self,
        table: str,
        *,
        columns: Sequence[str],
        filters: Sequence[Clause] = (),
        order: Sequence[Order] = (),
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        self.queries.append(
            {"table": table, "columns": tuple(columns), "filters": list(filters), "order": list(order), "limit": limit}
        )
        self._maybe_fail()

        known = self.columns.get(table)
        if known is not None:
            referenced = set(columns) | {o.column for o in order}
            for clause in filters:
                referenced |= _clause_columns(clause)
            missing = sorted(referenced - known)
            if missing:
                raise unknown_column_error(table, missing[0])

        rows = [r for r in self.tables[table] if all(_matches(r, c) for c in filters)]
        rows = _sort(rows, order)
        if limit is not None:
            rows = rows[:limit]
        return [{c: r[c] for c in columns if c in r} for r in rows]

    async def insert(
        self,
        table: str,
        rows: list[dict[str, Any]],
        *,
        returning: bool = False,
    ) -> list[dict[str, Any]]:
        self._maybe_fail()
        self.inserted[table].extend(rows)
        return [dict(r) for r in rows] if returning else []


def token(ca: str, **fields: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "ca": ca,
        "symbol": ca.upper(),
        "banana_score": None,
        "created_at": None,
        "first_passed_at": None,
        "status": "passed",
    }
    row.update(fields)
    return row


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()
