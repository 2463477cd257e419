"""Data models for recipes and their persisted rows."""

from bakebook.models._base import BakebookBaseModel, UtcTimestamp, parse_timestamp
from bakebook.models.recipe import (
    Ingredient,
    NewIngredient,
    NewRecipe,
    NewStep,
    Recipe,
    RecipePatch,
    Step,
)
from bakebook.models.rows import IngredientRow, RecipeRow, StepRow

__all__ = [
    "BakebookBaseModel",
    "Ingredient",
    "IngredientRow",
    "NewIngredient",
    "NewRecipe",
    "NewStep",
    "Recipe",
    "RecipePatch",
    "RecipeRow",
    "Step",
    "StepRow",
    "UtcTimestamp",
    "parse_timestamp",
]
