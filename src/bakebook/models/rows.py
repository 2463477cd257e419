"""Fixed-shape records mirroring the persisted tables.

These are the only shapes the gateway accepts from (and sends to) the
remote store.  A row that does not validate is rejected at the gateway
boundary instead of leaking loosely-typed data into the cache.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from bakebook.models._base import BakebookBaseModel, UtcTimestamp


class _Row(BakebookBaseModel):
    def to_record(self) -> dict[str, Any]:
        """JSON-compatible column mapping, keyed by column name."""
        return self.model_dump(mode="json")


class RecipeRow(_Row):
    """A row of the ``recipes`` table."""

    id: str = Field(min_length=1)
    title: str = ""
    description: str = ""
    baking_temperature: str = ""
    baking_time: str = ""
    created_at: UtcTimestamp
    updated_at: UtcTimestamp
    owner: str = Field(min_length=1)


class IngredientRow(_Row):
    """A row of the ``ingredients`` table."""

    id: str = Field(min_length=1)
    recipe_id: str = Field(min_length=1)
    name: str = ""
    amount: str = ""
    unit: str = ""
    is_used: bool = False


class StepRow(_Row):
    """A row of the ``steps`` table."""

    id: str = Field(min_length=1)
    recipe_id: str = Field(min_length=1)
    description: str = ""
    order: int = Field(ge=0)
