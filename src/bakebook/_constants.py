"""Internal constants shared across the library."""

USER_AGENT = "bakebook/0 (+aiohttp)"

RECIPES_TABLE = "recipes"
INGREDIENTS_TABLE = "ingredients"
STEPS_TABLE = "steps"

#: Root columns a patch is allowed to change.
RECIPE_ROOT_FIELDS: tuple[str, ...] = (
    "title",
    "description",
    "baking_temperature",
    "baking_time",
)

#: Child tables removed together with a recipe row, as ``(table, fk_column)``.
RECIPE_CHILD_TABLES: tuple[tuple[str, str], ...] = (
    (INGREDIENTS_TABLE, "recipe_id"),
    (STEPS_TABLE, "recipe_id"),
)
