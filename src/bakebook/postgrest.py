"""Remote store speaking the PostgREST dialect (Supabase and friends).

Filters become ``column=eq.value`` query parameters, ordering becomes
``order=column.asc`` and inserts ask for the stored rows back with
``Prefer: return=representation``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from bakebook._transport import QueryParams, Transport
from bakebook.exceptions import BakebookRemoteError
from bakebook.remote import Filters, Record, require_filters


def encode_filter_value(value: Any) -> str:
    """Render a filter value as a PostgREST operator expression."""
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{'true' if value else 'false'}"
    return f"eq.{value}"


def _filter_params(filters: Filters) -> list[tuple[str, str]]:
    return [(column, encode_filter_value(value)) for column, value in filters.items()]


def _expect_rows(payload: Any, *, table: str, operation: str) -> list[Record]:
    if payload is None:
        return []
    if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
        raise BakebookRemoteError(
            f"Expected a list of rows from {operation} {table}, got {type(payload).__name__}",
            table=table,
            operation=operation,
        )
    return payload


class PostgrestRemoteStore:
    """:class:`bakebook.remote.RemoteStore` backed by a PostgREST endpoint."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def select(self, table: str, filters: Filters, *, order_by: str | None = None) -> list[Record]:
        params: list[tuple[str, str]] = [("select", "*"), *_filter_params(filters)]
        if order_by is not None:
            params.append(("order", f"{order_by}.asc"))
        payload = await self._transport.request("GET", table, params=params)
        return _expect_rows(payload, table=table, operation="select")

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> list[Record]:
        if not rows:
            return []
        payload = await self._transport.request(
            "POST",
            table,
            body=[dict(row) for row in rows],
            prefer="return=representation",
        )
        return _expect_rows(payload, table=table, operation="insert")

    async def update(self, table: str, filters: Filters, patch: Mapping[str, Any]) -> None:
        require_filters(table, "update", filters)
        params: QueryParams = _filter_params(filters)
        await self._transport.request("PATCH", table, params=params, body=dict(patch), prefer="return=minimal")

    async def delete(self, table: str, filters: Filters) -> None:
        require_filters(table, "delete", filters)
        params: QueryParams = _filter_params(filters)
        await self._transport.request("DELETE", table, params=params, prefer="return=minimal")
