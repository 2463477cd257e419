"""In-memory recipe store scoped to the signed-in identity.

This is the only component allowed to change the cached aggregates.  The
cache is replaced wholesale by :meth:`RecipeStore.refresh` and patched by
the mutation methods strictly after the remote store confirmed the write.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from bakebook.exceptions import (
    BakebookForbiddenError,
    BakebookNotFoundError,
    BakebookRemoteError,
    BakebookSyncError,
    BakebookUnauthorizedError,
)
from bakebook.gateway import RecipeGateway
from bakebook.models.recipe import NewRecipe, Recipe, RecipePatch
from bakebook.models.rows import RecipeRow
from bakebook.session import Identity, SessionProvider
from bakebook.state.events import StoreEvent, StoreEventKind, StoreStatus

_logger = logging.getLogger(__name__)

StoreCallback = Callable[[StoreEvent], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RecipeStore:
    """Cache of the recipe aggregates visible to the current identity.

    Reads (:meth:`list`, :meth:`get`) never touch the network and keep
    returning the last good cache while a refresh is running or after one
    failed.  Mutations raise :class:`BakebookUnauthorizedError`,
    :class:`BakebookForbiddenError`, :class:`BakebookNotFoundError` or
    :class:`BakebookSyncError`; the cache is left untouched on failure.

    Parameters
    ----------
    gateway : RecipeGateway
        Translates aggregate writes into table operations.
    session : SessionProvider
        Source of the current identity.
    clock : callable
        Returns the current UTC time; used for ``created_at``/``updated_at``.
    fetch_concurrency : int
        How many recipes have their children fetched at once on refresh.
    compensate_failed_create : bool
        Remove the recipe row again when writing its children fails.
    """

    def __init__(
        self,
        gateway: RecipeGateway,
        session: SessionProvider,
        *,
        clock: Callable[[], datetime] = _utcnow,
        fetch_concurrency: int = 8,
        compensate_failed_create: bool = True,
    ) -> None:
        self._gateway = gateway
        self._session = session
        self._clock = clock
        self._fetch_slots = asyncio.Semaphore(fetch_concurrency)
        self._compensate_failed_create = compensate_failed_create

        self._recipes: dict[str, Recipe] = {}
        self._owner: str | None = None
        self._status = StoreStatus.UNINITIALIZED
        # Status the cache was last left in by a refresh that finished.
        self._settled_status = StoreStatus.UNINITIALIZED
        self._last_error: BakebookSyncError | None = None
        self._subscribers: list[StoreCallback] = []

        # Refresh bookkeeping: only the newest refresh may commit, and writes
        # confirmed while one is in flight are re-applied on top of its result.
        self._generation = 0
        self._refreshes_in_flight = 0
        self._pending_writes: dict[str, Recipe | None] = {}

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def status(self) -> StoreStatus:
        return self._status

    @property
    def last_error(self) -> BakebookSyncError | None:
        """The error of the most recent failed refresh, cleared by a successful one."""
        return self._last_error

    @property
    def owner(self) -> str | None:
        """``user_id`` the cache was last refreshed for."""
        return self._owner

    def subscribe(self, callback: StoreCallback) -> Callable[[], None]:
        """Call *callback* after every successful mutation or refresh.

        Returns a callable that removes the subscription.
        """
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def _notify(self, kind: StoreEventKind, recipe_id: str | None = None) -> None:
        event = StoreEvent(kind=kind, recipe_id=recipe_id, owner=self._owner, observed_at=self._clock())
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                _logger.debug("Store subscriber failed for %s", kind, exc_info=True)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list(self) -> Sequence[Recipe]:
        """Cached recipes, oldest first."""
        return [*self._recipes.values()]

    def get(self, recipe_id: str) -> Recipe:
        recipe = self._recipes.get(recipe_id)
        if recipe is None:
            raise BakebookNotFoundError(f"Recipe {recipe_id!r} is not loaded", recipe_id=recipe_id)
        return recipe

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh(self) -> None:
        """Rebuild the whole cache from the remote store for the current identity."""
        self._generation += 1
        generation = self._generation
        self._refreshes_in_flight += 1
        self._status = StoreStatus.LOADING
        try:
            identity = self._session.current_identity()
            if identity is None:
                self._commit_refresh(generation, None, [])
                return

            owner = identity.user_id
            try:
                rows = await self._gateway.fetch_recipes(owner)
                recipes = await asyncio.gather(*(self._load_aggregate(row) for row in rows))
            except BakebookRemoteError as exc:
                error = BakebookSyncError(f"Refreshing recipes for {owner} failed: {exc}", operation="refresh")
                if generation == self._generation:
                    self._status = self._settled_status = StoreStatus.ERROR
                    self._last_error = error
                raise error from exc

            self._commit_refresh(generation, owner, recipes)
        finally:
            if generation == self._generation and self._status is StoreStatus.LOADING:
                # Cancelled before committing; the cache is still what the settled status describes.
                self._status = self._settled_status
            self._refreshes_in_flight -= 1
            if self._refreshes_in_flight == 0:
                self._pending_writes.clear()

    async def _load_aggregate(self, row: RecipeRow) -> Recipe:
        async with self._fetch_slots:
            ingredients, steps = await self._gateway.fetch_children(row.id)
        return Recipe.from_rows(row, ingredients, steps)

    def _commit_refresh(self, generation: int, owner: str | None, recipes: Sequence[Recipe]) -> None:
        if generation != self._generation:
            _logger.debug("Discarding superseded refresh %d (current %d)", generation, self._generation)
            return

        cache = {recipe.id: recipe for recipe in sorted(recipes, key=lambda recipe: recipe.created_at)}
        for recipe_id, recipe in self._pending_writes.items():
            if recipe is None:
                cache.pop(recipe_id, None)
            elif recipe.owner == owner:
                cache[recipe_id] = recipe
        self._pending_writes.clear()

        self._recipes = cache
        self._owner = owner
        self._status = self._settled_status = StoreStatus.READY
        self._last_error = None
        _logger.debug("Refreshed %d recipes for owner=%s", len(cache), owner)
        self._notify(StoreEventKind.REFRESHED)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _put(self, recipe: Recipe) -> bool:
        """Cache *recipe* unless the store is now scoped to someone else."""
        identity = self._session.current_identity()
        current_owner = identity.user_id if identity is not None else None
        if recipe.owner != current_owner or self._owner not in (None, recipe.owner):
            _logger.debug("Not caching recipe %s of %s; store is scoped to %s", recipe.id, recipe.owner, current_owner)
            return False
        self._recipes[recipe.id] = recipe
        if self._refreshes_in_flight:
            self._pending_writes[recipe.id] = recipe
        return True

    def _drop(self, recipe_id: str) -> None:
        self._recipes.pop(recipe_id, None)
        if self._refreshes_in_flight:
            self._pending_writes[recipe_id] = None

    def _require_identity(self) -> Identity:
        identity = self._session.current_identity()
        if identity is None:
            raise BakebookUnauthorizedError("No identity is signed in")
        return identity

    async def _require_owned(self, recipe_id: str, identity: Identity, operation: str) -> None:
        cached = self._recipes.get(recipe_id)
        if cached is not None and cached.owner == identity.user_id:
            return

        try:
            row = await self._gateway.fetch_recipe(recipe_id)
        except BakebookRemoteError as exc:
            raise BakebookSyncError(
                f"Resolving owner of recipe {recipe_id!r} failed: {exc}",
                operation=operation,
                recipe_id=recipe_id,
            ) from exc
        if row is None:
            raise BakebookNotFoundError(f"Recipe {recipe_id!r} does not exist", recipe_id=recipe_id)
        if row.owner != identity.user_id:
            raise BakebookForbiddenError(
                f"Recipe {recipe_id!r} is not owned by {identity.user_id}",
                recipe_id=recipe_id,
            )

    async def _fetch_owned_aggregate(self, recipe_id: str, owner: str) -> Recipe | None:
        row = await self._gateway.fetch_recipe(recipe_id)
        if row is None or row.owner != owner:
            return None
        ingredients, steps = await self._gateway.fetch_children(recipe_id)
        return Recipe.from_rows(row, ingredients, steps)

    async def create(self, draft: NewRecipe | Mapping[str, Any]) -> Recipe:
        """Write a new recipe owned by the current identity.

        The root row goes first, then the ingredients, then the steps with
        ``order`` set to their position.
        """
        identity = self._require_identity()
        if not isinstance(draft, NewRecipe):
            draft = NewRecipe.model_validate(draft)

        now = self._clock()
        row = RecipeRow(
            id=self._gateway.new_id(),
            title=draft.title,
            description=draft.description,
            baking_temperature=draft.baking_temperature,
            baking_time=draft.baking_time,
            created_at=now,
            updated_at=now,
            owner=identity.user_id,
        )

        try:
            root = await self._gateway.insert_recipe(row)
        except BakebookRemoteError as exc:
            raise BakebookSyncError(
                f"Creating recipe {draft.title!r} failed: {exc}",
                operation="create",
            ) from exc

        try:
            ingredients = await self._gateway.insert_ingredients(root.id, draft.ingredients)
            steps = await self._gateway.insert_steps(root.id, draft.steps)
        except BakebookRemoteError as exc:
            await self._compensate_create(root)
            raise BakebookSyncError(
                f"Writing ingredients/steps of recipe {root.id!r} failed: {exc}",
                operation="create",
                recipe_id=root.id,
            ) from exc

        recipe = Recipe.from_rows(root, ingredients, steps)
        if self._put(recipe):
            self._notify(StoreEventKind.CREATED, recipe.id)
        return recipe

    async def _compensate_create(self, root: RecipeRow) -> None:
        if not self._compensate_failed_create:
            _logger.warning("Recipe %s was stored without all of its ingredients/steps", root.id)
            return
        try:
            await self._gateway.delete_recipe(root.id, root.owner)
        except BakebookRemoteError:
            _logger.warning("Could not remove partially created recipe %s", root.id, exc_info=True)

    async def update(self, recipe_id: str, patch: RecipePatch | Mapping[str, Any]) -> Recipe:
        """Apply *patch* to an owned recipe.

        Root columns are written only when the patch names one; otherwise
        ``updated_at`` alone is touched.  Children are only written once the
        owned root row is confirmed to still exist.  A supplied
        ``ingredients`` or ``steps`` list replaces the stored one entirely.
        """
        identity = self._require_identity()
        if not isinstance(patch, RecipePatch):
            patch = RecipePatch.model_validate(patch)
        await self._require_owned(recipe_id, identity, "update")

        owner = identity.user_id
        now = self._clock()
        root_fields = patch.root_fields()
        try:
            if root_fields:
                await self._gateway.update_recipe(recipe_id, owner, root_fields, now)
            else:
                await self._gateway.touch_recipe(recipe_id, owner, now)
            if await self._gateway.owns_recipe(recipe_id, owner):
                if patch.ingredients is not None:
                    await self._gateway.replace_ingredients(recipe_id, patch.ingredients)
                if patch.steps is not None:
                    await self._gateway.replace_steps(recipe_id, patch.steps)
                recipe = await self._fetch_owned_aggregate(recipe_id, owner)
            else:
                recipe = None
        except BakebookRemoteError as exc:
            raise BakebookSyncError(
                f"Updating recipe {recipe_id!r} failed: {exc}",
                operation="update",
                recipe_id=recipe_id,
            ) from exc

        if recipe is None:
            self._drop(recipe_id)
            raise BakebookNotFoundError(f"Recipe {recipe_id!r} disappeared during update", recipe_id=recipe_id)

        if self._put(recipe):
            self._notify(StoreEventKind.UPDATED, recipe_id)
        return recipe

    async def delete(self, recipe_id: str) -> None:
        """Delete an owned recipe together with its ingredients and steps."""
        identity = self._require_identity()
        await self._require_owned(recipe_id, identity, "delete")
        try:
            await self._gateway.delete_recipe(recipe_id, identity.user_id)
        except BakebookRemoteError as exc:
            raise BakebookSyncError(
                f"Deleting recipe {recipe_id!r} failed: {exc}",
                operation="delete",
                recipe_id=recipe_id,
            ) from exc

        self._drop(recipe_id)
        self._notify(StoreEventKind.DELETED, recipe_id)

    async def toggle_ingredient_used(self, recipe_id: str, ingredient_id: str) -> None:
        """Flip one ingredient's ``is_used`` flag.

        The current value is read from the cache.  An ingredient that is not
        cached is left alone.
        """
        identity = self._require_identity()
        recipe = self._recipes.get(recipe_id)
        ingredient = recipe.ingredient(ingredient_id) if recipe is not None else None
        if recipe is None or ingredient is None:
            _logger.debug("Ingredient %s of recipe %s not loaded; nothing to toggle", ingredient_id, recipe_id)
            return
        if recipe.owner != identity.user_id:
            raise BakebookForbiddenError(
                f"Recipe {recipe_id!r} is not owned by {identity.user_id}",
                recipe_id=recipe_id,
            )

        is_used = not ingredient.is_used
        now = self._clock()
        try:
            await self._gateway.set_ingredient_used(recipe_id, ingredient_id, is_used)
            await self._gateway.touch_recipe(recipe_id, identity.user_id, now)
        except BakebookRemoteError as exc:
            raise BakebookSyncError(
                f"Toggling ingredient {ingredient_id!r} of recipe {recipe_id!r} failed: {exc}",
                operation="toggle_ingredient_used",
                recipe_id=recipe_id,
            ) from exc

        # Re-read: the cached aggregate may have been replaced while the write was in flight.
        current = self._recipes.get(recipe_id)
        if current is not None and current.ingredient(ingredient_id) is not None:
            self._put(current.with_ingredient_used(ingredient_id, is_used, updated_at=now))
        self._notify(StoreEventKind.INGREDIENT_TOGGLED, recipe_id)
