"""Recipe aggregate, its children, and the drafts used to write them."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from bakebook._constants import RECIPE_ROOT_FIELDS
from bakebook.models._base import BakebookBaseModel, UtcTimestamp
from bakebook.models.rows import IngredientRow, RecipeRow, StepRow


def _dump_models(value: Any) -> Any:
    """Let callers pass existing records (e.g. cached ingredients) as draft items."""
    if isinstance(value, (list, tuple)):
        return [item.model_dump() if isinstance(item, BaseModel) else item for item in value]
    return value


class Ingredient(BakebookBaseModel):
    id: str
    recipe_id: str
    name: str
    amount: str = ""
    unit: str = ""
    is_used: bool = False

    @classmethod
    def from_row(cls, row: IngredientRow) -> Ingredient:
        return cls.model_validate(row.model_dump())


class Step(BakebookBaseModel):
    id: str
    recipe_id: str
    description: str
    order: int

    @classmethod
    def from_row(cls, row: StepRow) -> Step:
        return cls.model_validate(row.model_dump())


class Recipe(BakebookBaseModel):
    """A recipe together with its ingredients and steps.

    ``ingredients`` keep their insertion order; ``steps`` are sorted by
    ``order`` and numbered ``0..n-1``.
    """

    id: str
    title: str
    description: str = ""
    baking_temperature: str = ""
    baking_time: str = ""
    created_at: UtcTimestamp
    updated_at: UtcTimestamp
    owner: str
    ingredients: tuple[Ingredient, ...] = ()
    steps: tuple[Step, ...] = ()

    @classmethod
    def from_rows(
        cls,
        root: RecipeRow,
        ingredients: Iterable[IngredientRow] = (),
        steps: Iterable[StepRow] = (),
    ) -> Recipe:
        """Reassemble an aggregate from its table rows."""
        ordered_steps = sorted(steps, key=lambda row: row.order)
        return cls(
            **root.model_dump(),
            ingredients=tuple(Ingredient.from_row(row) for row in ingredients if row.recipe_id == root.id),
            steps=tuple(Step.from_row(row) for row in ordered_steps if row.recipe_id == root.id),
        )

    def ingredient(self, ingredient_id: str) -> Ingredient | None:
        for ingredient in self.ingredients:
            if ingredient.id == ingredient_id:
                return ingredient
        return None

    def with_ingredient_used(self, ingredient_id: str, is_used: bool, *, updated_at: datetime) -> Recipe:
        """Copy of this recipe with one ingredient's ``is_used`` flag replaced."""
        ingredients = tuple(
            ingredient.model_copy(update={"is_used": is_used}) if ingredient.id == ingredient_id else ingredient
            for ingredient in self.ingredients
        )
        return self.model_copy(update={"ingredients": ingredients, "updated_at": updated_at})


class NewIngredient(BakebookBaseModel):
    name: str
    amount: str = ""
    unit: str = ""
    is_used: bool = False


class NewStep(BakebookBaseModel):
    """A step to write.  A bare string is accepted as its description."""

    description: str

    @model_validator(mode="before")
    @classmethod
    def _from_text(cls, values: Any) -> Any:
        if isinstance(values, str):
            return {"description": values}
        return values


class NewRecipe(BakebookBaseModel):
    """Everything needed to create a recipe; id, owner and timestamps are assigned on write."""

    title: str
    description: str = ""
    baking_temperature: str = ""
    baking_time: str = ""
    ingredients: list[NewIngredient] = Field(default_factory=list)
    steps: list[NewStep] = Field(default_factory=list)

    @field_validator("ingredients", "steps", mode="before")
    @classmethod
    def _coerce_children(cls, value: Any) -> Any:
        return _dump_models(value)


class RecipePatch(BakebookBaseModel):
    """A partial update.

    Only the fields that were supplied are written.  ``ingredients`` and
    ``steps`` are complete replacement lists, not deltas.  Keys such as
    ``id``, ``owner`` or ``created_at`` are ignored.
    """

    title: str | None = None
    description: str | None = None
    baking_temperature: str | None = None
    baking_time: str | None = None
    ingredients: list[NewIngredient] | None = None
    steps: list[NewStep] | None = None

    @field_validator("ingredients", "steps", mode="before")
    @classmethod
    def _coerce_children(cls, value: Any) -> Any:
        return _dump_models(value)

    def root_fields(self) -> dict[str, str]:
        """The supplied root columns, keyed by column name."""
        return {
            name: getattr(self, name)
            for name in RECIPE_ROOT_FIELDS
            if name in self.model_fields_set and getattr(self, name) is not None
        }
