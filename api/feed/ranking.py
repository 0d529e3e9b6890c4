"""
Ranking policy for records within a zone.

Order (descending, nulls last on each key):
1) banana_score
2) created_at
3) first_passed_at
then `ca` ascending so repeated calls return the same order.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from functools import cmp_to_key
from typing import Any, Iterable, Mapping

from core.store import Order

IDENTITY = "ca"
SCORE = "banana_score"
CREATED_AT = "created_at"
FIRST_PASSED_AT = "first_passed_at"

SORT_COLUMNS = (SCORE, CREATED_AT, FIRST_PASSED_AT)


def _score(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(score) else score


def _timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _desc_nulls_last(a: Any, b: Any) -> int:
    if a is None and b is None:
        return 0
    if a is None:
        return 1
    if b is None:
        return -1
    if a > b:
        return -1
    if a < b:
        return 1
    return 0


def compare(a: Mapping[str, Any], b: Mapping[str, Any]) -> int:
    for key, parse in ((SCORE, _score), (CREATED_AT, _timestamp), (FIRST_PASSED_AT, _timestamp)):
        result = _desc_nulls_last(parse(a.get(key)), parse(b.get(key)))
        if result:
            return result

    ida, idb = str(a.get(IDENTITY) or ""), str(b.get(IDENTITY) or "")
    return (ida > idb) - (ida < idb)


def rank(records: Iterable[Mapping[str, Any]]) -> list[Any]:
    return sorted(records, key=cmp_to_key(compare))


def store_order(columns: Iterable[str]) -> list[Order]:
    """
    Store-side sort spec, limited to columns the projection actually has.
    """
    available = set(columns)
    order = [Order(column) for column in SORT_COLUMNS if column in available]
    if IDENTITY in available:
        order.append(Order(IDENTITY, descending=False))
    return order
