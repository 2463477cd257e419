"""Translation of recipe-aggregate operations into per-table CRUD calls.

The gateway owns no state.  It knows the table layout, builds rows for
writes, validates rows coming back, and lets remote errors propagate.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import threading
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any, TypeVar

from pydantic import ValidationError

from bakebook._constants import INGREDIENTS_TABLE, RECIPE_CHILD_TABLES, RECIPES_TABLE, STEPS_TABLE
from bakebook.exceptions import BakebookMalformedRowError
from bakebook.models.recipe import NewIngredient, NewStep
from bakebook.models.rows import IngredientRow, RecipeRow, StepRow
from bakebook.remote import RemoteStore

_logger = logging.getLogger(__name__)

RowT = TypeVar("RowT", RecipeRow, IngredientRow, StepRow)


class SortableIdFactory:
    """Generate opaque row ids that sort in creation order.

    The first 16 hex digits are a strictly increasing nanosecond clock,
    the rest is random.  Ingredients have no position column, so ordering
    them by ``id`` is what keeps their display order across refetches.
    """

    def __init__(self, clock_ns: Callable[[], int] = time.time_ns) -> None:
        self._clock_ns = clock_ns
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            self._last = max(self._last + 1, self._clock_ns())
            stamp = self._last
        return f"{stamp:016x}{secrets.token_hex(8)}"


def parse_rows(model: type[RowT], table: str, records: Iterable[Any]) -> list[RowT]:
    """Validate remote records into fixed-shape rows."""
    rows: list[RowT] = []
    for record in records:
        try:
            rows.append(model.model_validate(record))
        except ValidationError as exc:
            raise BakebookMalformedRowError(
                f"Malformed {table} row: {exc.errors(include_url=False)}",
                table=table,
                operation="parse",
            ) from exc
    return rows


class RecipeGateway:
    """Stateless adapter between recipe aggregates and the three tables."""

    def __init__(self, remote: RemoteStore, *, id_factory: Callable[[], str] | None = None) -> None:
        self._remote = remote
        self._new_id = id_factory or SortableIdFactory()

    def new_id(self) -> str:
        return self._new_id()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def fetch_recipes(self, owner: str) -> list[RecipeRow]:
        """All recipe rows owned by *owner*, oldest first."""
        records = await self._remote.select(RECIPES_TABLE, {"owner": owner}, order_by="created_at")
        return parse_rows(RecipeRow, RECIPES_TABLE, records)

    async def fetch_recipe(self, recipe_id: str) -> RecipeRow | None:
        """A recipe row by id regardless of owner (used to resolve ownership)."""
        records = await self._remote.select(RECIPES_TABLE, {"id": recipe_id})
        rows = parse_rows(RecipeRow, RECIPES_TABLE, records)
        return rows[0] if rows else None

    async def owns_recipe(self, recipe_id: str, owner: str) -> bool:
        records = await self._remote.select(RECIPES_TABLE, {"id": recipe_id, "owner": owner})
        return bool(records)

    async def fetch_ingredients(self, recipe_id: str) -> list[IngredientRow]:
        records = await self._remote.select(INGREDIENTS_TABLE, {"recipe_id": recipe_id}, order_by="id")
        return parse_rows(IngredientRow, INGREDIENTS_TABLE, records)

    async def fetch_steps(self, recipe_id: str) -> list[StepRow]:
        records = await self._remote.select(STEPS_TABLE, {"recipe_id": recipe_id}, order_by="order")
        return parse_rows(StepRow, STEPS_TABLE, records)

    async def fetch_children(self, recipe_id: str) -> tuple[list[IngredientRow], list[StepRow]]:
        """Ingredients and steps of one recipe, fetched concurrently."""
        ingredients, steps = await asyncio.gather(
            self.fetch_ingredients(recipe_id),
            self.fetch_steps(recipe_id),
        )
        return ingredients, steps

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert_recipe(self, row: RecipeRow) -> RecipeRow:
        records = await self._remote.insert(RECIPES_TABLE, [row.to_record()])
        rows = parse_rows(RecipeRow, RECIPES_TABLE, records)
        # Stores answering with return=minimal give nothing back; what we sent is what was stored.
        return rows[0] if rows else row

    async def insert_ingredients(self, recipe_id: str, items: Sequence[NewIngredient]) -> list[IngredientRow]:
        rows = [
            IngredientRow(
                id=self._new_id(),
                recipe_id=recipe_id,
                name=item.name,
                amount=item.amount,
                unit=item.unit,
                is_used=item.is_used,
            )
            for item in items
        ]
        return await self._insert_children(INGREDIENTS_TABLE, IngredientRow, rows)

    async def insert_steps(self, recipe_id: str, items: Sequence[NewStep]) -> list[StepRow]:
        """Insert *items* with ``order`` set to their position."""
        rows = [
            StepRow(id=self._new_id(), recipe_id=recipe_id, description=item.description, order=position)
            for position, item in enumerate(items)
        ]
        return await self._insert_children(STEPS_TABLE, StepRow, rows)

    async def _insert_children(self, table: str, model: type[RowT], rows: list[RowT]) -> list[RowT]:
        if not rows:
            return []
        records = await self._remote.insert(table, [row.to_record() for row in rows])
        stored = parse_rows(model, table, records)
        return stored if stored else rows

    async def update_recipe(self, recipe_id: str, owner: str, patch: Mapping[str, Any], updated_at: datetime) -> None:
        """Patch root columns and stamp ``updated_at``; only rows owned by *owner* match."""
        record = dict(patch)
        record["updated_at"] = updated_at.isoformat()
        await self._remote.update(RECIPES_TABLE, {"id": recipe_id, "owner": owner}, record)

    async def touch_recipe(self, recipe_id: str, owner: str, updated_at: datetime) -> None:
        await self.update_recipe(recipe_id, owner, {}, updated_at)

    async def replace_ingredients(self, recipe_id: str, items: Sequence[NewIngredient]) -> list[IngredientRow]:
        """Full replace: delete every ingredient row, then insert *items*."""
        await self._remote.delete(INGREDIENTS_TABLE, {"recipe_id": recipe_id})
        return await self.insert_ingredients(recipe_id, items)

    async def replace_steps(self, recipe_id: str, items: Sequence[NewStep]) -> list[StepRow]:
        """Full replace: delete every step row, then insert *items* numbered from 0."""
        await self._remote.delete(STEPS_TABLE, {"recipe_id": recipe_id})
        return await self.insert_steps(recipe_id, items)

    async def set_ingredient_used(self, recipe_id: str, ingredient_id: str, is_used: bool) -> None:
        await self._remote.update(
            INGREDIENTS_TABLE,
            {"id": ingredient_id, "recipe_id": recipe_id},
            {"is_used": is_used},
        )

    async def delete_recipe(self, recipe_id: str, owner: str) -> None:
        """Delete the owned root row, then its children.

        Nothing is deleted unless *owner* owns the recipe.  Children are
        deleted explicitly so the result does not depend on the remote
        schema cascading.
        """
        if not await self.owns_recipe(recipe_id, owner):
            _logger.debug("Recipe %s not owned by %s; nothing deleted", recipe_id, owner)
            return
        await self._remote.delete(RECIPES_TABLE, {"id": recipe_id, "owner": owner})
        for table, column in RECIPE_CHILD_TABLES:
            await self._remote.delete(table, {column: recipe_id})
        _logger.debug("Deleted recipe %s with children", recipe_id)
