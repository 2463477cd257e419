"""Row-level interface to the remote relational store.

The gateway only ever talks to a :class:`RemoteStore`: equality-filtered
select/insert/update/delete on one table at a time.  Two implementations
ship with the library, :class:`MemoryRemoteStore` below and
:class:`bakebook.postgrest.PostgrestRemoteStore`.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from bakebook._constants import RECIPE_CHILD_TABLES, RECIPES_TABLE
from bakebook.exceptions import BakebookRemoteError

_logger = logging.getLogger(__name__)

Filters = Mapping[str, Any]
Record = dict[str, Any]


class RemoteStore(Protocol):
    """Structural remote-store interface used by the gateway.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementations concrete.
    """

    async def select(self, table: str, filters: Filters, *, order_by: str | None = None) -> list[Record]: ...

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> list[Record]: ...

    async def update(self, table: str, filters: Filters, patch: Mapping[str, Any]) -> None: ...

    async def delete(self, table: str, filters: Filters) -> None: ...


def require_filters(table: str, operation: str, filters: Filters) -> None:
    """Refuse unfiltered writes; they would touch every row of *table*."""
    if not filters:
        raise BakebookRemoteError(
            f"Refusing {operation} on {table} without filters",
            table=table,
            operation=operation,
        )


def _matches(row: Mapping[str, Any], filters: Filters) -> bool:
    return all(row.get(column) == value for column, value in filters.items())


class MemoryRemoteStore:
    """In-process remote store.

    Rows live in per-table lists in insertion order.  Every call yields to
    the event loop once so concurrent operations interleave the way they
    would against a real backend.

    Parameters
    ----------
    cascade_deletes : bool
        Delete ``ingredients``/``steps`` rows referencing a deleted
        ``recipes`` row, like an ``ON DELETE CASCADE`` foreign key.
    """

    def __init__(self, *, cascade_deletes: bool = True) -> None:
        self._cascade_deletes = cascade_deletes
        self._tables: dict[str, list[Record]] = {}

    def rows(self, table: str) -> list[Record]:
        """Snapshot of every row currently stored in *table*."""
        return copy.deepcopy(self._tables.get(table, []))

    async def select(self, table: str, filters: Filters, *, order_by: str | None = None) -> list[Record]:
        await asyncio.sleep(0)
        rows = [copy.deepcopy(row) for row in self._tables.get(table, []) if _matches(row, filters)]
        if order_by is not None:
            rows.sort(key=lambda row: row.get(order_by))
        _logger.debug("select %s filters=%s -> %d rows", table, dict(filters), len(rows))
        return rows

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> list[Record]:
        await asyncio.sleep(0)
        stored = self._tables.setdefault(table, [])
        existing_ids = {row.get("id") for row in stored}
        incoming = [copy.deepcopy(dict(row)) for row in rows]
        for row in incoming:
            row_id = row.get("id")
            if row_id is None:
                raise BakebookRemoteError(f"Row for {table} has no id", table=table, operation="insert")
            if row_id in existing_ids:
                raise BakebookRemoteError(
                    f"Duplicate id {row_id!r} in {table}",
                    table=table,
                    operation="insert",
                    status_code=409,
                )
            existing_ids.add(row_id)
        stored.extend(incoming)
        _logger.debug("insert %s -> %d rows", table, len(incoming))
        return copy.deepcopy(incoming)

    async def update(self, table: str, filters: Filters, patch: Mapping[str, Any]) -> None:
        require_filters(table, "update", filters)
        await asyncio.sleep(0)
        count = 0
        for row in self._tables.get(table, []):
            if _matches(row, filters):
                row.update(copy.deepcopy(dict(patch)))
                count += 1
        _logger.debug("update %s filters=%s -> %d rows", table, dict(filters), count)

    async def delete(self, table: str, filters: Filters) -> None:
        require_filters(table, "delete", filters)
        await asyncio.sleep(0)
        stored = self._tables.get(table, [])
        removed = [row for row in stored if _matches(row, filters)]
        self._tables[table] = [row for row in stored if not _matches(row, filters)]
        _logger.debug("delete %s filters=%s -> %d rows", table, dict(filters), len(removed))

        if self._cascade_deletes and table == RECIPES_TABLE:
            removed_ids = {row.get("id") for row in removed}
            for child_table, column in RECIPE_CHILD_TABLES:
                children = self._tables.get(child_table, [])
                self._tables[child_table] = [row for row in children if row.get(column) not in removed_ids]
