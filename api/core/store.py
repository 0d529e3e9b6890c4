"""
Record store client (Supabase / PostgREST over HTTP) using httpx.

This module owns the HTTP clients. They are created lazily per credential
role on first use and closed on shutdown (see `api/main.py`).

Query encoding (PostgREST):
- select=col1,col2
- col=op.value          (top-level filters are ANDed)
- or=(a.is.true,b.not.is.null)
- not.or=(a.is.true,b.not.is.null)
- order=col.desc.nullslast,ca.asc
- limit=N
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, Sequence, Union

import httpx

from . import config

logger = logging.getLogger(__name__)

ERROR_BODY_CHARS = 1200

# Postgres / PostgREST codes that mean "this column is not in the table".
UNKNOWN_COLUMN_CODES = {"42703", "PGRST204"}
AUTH_CODES = {"42501", "PGRST301", "PGRST302"}


class StoreErrorKind(str, Enum):
    UNKNOWN_COLUMN = "unknown_column"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    OTHER = "other"


# Store failures are explicit and separable from other runtime errors.
class StoreError(RuntimeError):
    def __init__(
        self,
        kind: StoreErrorKind,
        message: str,
        *,
        status_code: int | None = None,
        body: str = "",
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.body = body

    @property
    def is_unknown_column(self) -> bool:
        return self.kind is StoreErrorKind.UNKNOWN_COLUMN


@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any = None


@dataclass(frozen=True)
class AnyOf:
    """
    OR group of simple filters. `negated` selects rows matching none of them.
    """

    clauses: tuple[Filter, ...]
    negated: bool = False

    @property
    def key(self) -> str:
        return "not.or" if self.negated else "or"


Clause = Union[Filter, AnyOf]


@dataclass(frozen=True)
class Order:
    column: str
    descending: bool = True
    nulls_last: bool = True

    def encode(self) -> str:
        text = f"{self.column}.{'desc' if self.descending else 'asc'}"
        if self.descending and self.nulls_last:
            text += ".nullslast"
        return text


class RecordStore(Protocol):
    async def query(
        self,
        table: str,
        *,
        columns: Sequence[str],
        filters: Sequence[Clause] = (),
        order: Sequence[Order] = (),
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...

    async def insert(
        self,
        table: str,
        rows: list[dict[str, Any]],
        *,
        returning: bool = False,
    ) -> list[dict[str, Any]]: ...


def _format_value(value: Any) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return "null"
    return str(value)


def _encode_filter(f: Filter, *, nested: bool) -> str:
    expr = f"{f.op}.{_format_value(f.value)}"
    return f"{f.column}.{expr}" if nested else expr


def _encode_group(group: AnyOf) -> str:
    return "(" + ",".join(_encode_filter(c, nested=True) for c in group.clauses) + ")"


def encode_params(
    *,
    columns: Sequence[str],
    filters: Sequence[Clause] = (),
    order: Sequence[Order] = (),
    limit: int | None = None,
) -> list[tuple[str, str]]:
    """
    Build PostgREST query params. A list of pairs keeps repeated keys.
    """
    params: list[tuple[str, str]] = [("select", ",".join(columns))]
    groups: list[AnyOf] = []
    for clause in filters:
        if isinstance(clause, AnyOf):
            groups.append(clause)
        else:
            params.append((clause.column, _encode_filter(clause, nested=False)))

    if len(groups) == 1:
        params.append((groups[0].key, _encode_group(groups[0])))
    elif groups:
        params.append(("and", "(" + ",".join(g.key + _encode_group(g) for g in groups) + ")"))

    if order:
        params.append(("order", ",".join(o.encode() for o in order)))
    if limit is not None:
        params.append(("limit", str(int(limit))))
    return params


def _error_fields(body: str) -> tuple[str, str]:
    try:
        data = json.loads(body)
    except ValueError:
        return "", body
    if not isinstance(data, dict):
        return "", body
    return str(data.get("code") or ""), str(data.get("message") or body)


def classify_failure(status_code: int, body: str) -> StoreErrorKind:
    code, message = _error_fields(body)
    lower = message.lower()
    if status_code in (401, 403) or code in AUTH_CODES:
        return StoreErrorKind.AUTH
    if status_code == 429:
        return StoreErrorKind.RATE_LIMIT
    if code in UNKNOWN_COLUMN_CODES:
        return StoreErrorKind.UNKNOWN_COLUMN
    if "column" in lower and ("does not exist" in lower or "could not find" in lower):
        return StoreErrorKind.UNKNOWN_COLUMN
    return StoreErrorKind.OTHER


def _normalize_base_url(base_url: str) -> str:
    base_url = (base_url or "").strip()
    if not base_url:
        raise StoreError(StoreErrorKind.OTHER, "Store base URL is empty.")
    return base_url.rstrip("/")


class SupabaseStore:
    """
    RecordStore backed by the Supabase REST endpoint `/rest/v1/<table>`.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout_s: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=_normalize_base_url(base_url) + "/rest/v1",
            timeout=timeout_s,
            headers={"apikey": api_key, "Authorization": f"Bearer {api_key}"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(self, method: str, table: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(method, f"/{table}", **kwargs)
        except httpx.TransportError as exc:
            raise StoreError(StoreErrorKind.NETWORK, f"Store request failed: {exc}") from exc

        if resp.status_code >= 400:
            body = resp.text[:ERROR_BODY_CHARS]
            kind = classify_failure(resp.status_code, resp.text)
            logger.warning("store_request_failed table=%s status=%s kind=%s", table, resp.status_code, kind.value)
            raise StoreError(
                kind,
                f"Supabase query failed ({resp.status_code})",
                status_code=resp.status_code,
                body=body,
            )
        return resp

    @staticmethod
    def _rows(resp: httpx.Response) -> list[dict[str, Any]]:
        if not resp.content:
            return []
        data = resp.json()
        if isinstance(data, dict):
            return [data]
        if not isinstance(data, list):
            raise StoreError(StoreErrorKind.OTHER, "Store returned a non-list payload.", body=resp.text[:ERROR_BODY_CHARS])
        return [row for row in data if isinstance(row, dict)]

    async def query(
        self,
        table: str,
        *,
        columns: Sequence[str],
        filters: Sequence[Clause] = (),
        order: Sequence[Order] = (),
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        params = encode_params(columns=columns, filters=filters, order=order, limit=limit)
        resp = await self._send("GET", table, params=params)
        return self._rows(resp)

    async def insert(
        self,
        table: str,
        rows: list[dict[str, Any]],
        *,
        returning: bool = False,
    ) -> list[dict[str, Any]]:
        resp = await self._send(
            "POST",
            table,
            json=rows,
            headers={"Prefer": "return=representation" if returning else "return=minimal"},
        )
        return self._rows(resp) if returning else []


# One client per credential role. A changed URL or key replaces the client.
_stores: dict[str, tuple[tuple[str, str], SupabaseStore]] = {}


async def _store_for(role: str, url: str, key: str) -> SupabaseStore:
    entry = _stores.get(role)
    if entry is not None and entry[0] == (url, key):
        return entry[1]

    store = SupabaseStore(base_url=url, api_key=key, timeout_s=config.store_timeout_s())
    _stores[role] = ((url, key), store)
    if entry is not None:
        logger.info("store_credentials_changed role=%s", role)
        await entry[1].aclose()
    return store


async def service_store() -> SupabaseStore:
    """
    Store client using the service role key (bypasses row-level security).
    """
    url, key = config.require_service_credentials()
    return await _store_for("service", url, key)


async def anon_store() -> SupabaseStore:
    url, key = config.require_anon_credentials()
    return await _store_for("anon", url, key)


async def close_stores() -> None:
    stores = [store for _, store in _stores.values()]
    _stores.clear()
    for store in stores:
        await store.aclose()
