"""High-level async client for the Bakebook recipe store."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import aiohttp

from bakebook._transport import RestTransport
from bakebook.config import BakebookConfig
from bakebook.exceptions import BakebookConfigError, BakebookError, BakebookSyncError
from bakebook.gateway import RecipeGateway
from bakebook.models.recipe import NewRecipe, Recipe, RecipePatch
from bakebook.postgrest import PostgrestRemoteStore
from bakebook.remote import RemoteStore
from bakebook.session import SessionProvider
from bakebook.state.events import StoreEvent
from bakebook.state.reconcile import SessionReconciler
from bakebook.state.store import RecipeStore

_logger = logging.getLogger(__name__)


class BakebookClient:
    """Async client wiring the recipe store to a remote store and a session.

    Usage::

        async with BakebookClient(config, session) as client:
            recipe = await client.add_recipe({"title": "Sourdough"})
            recipes = client.list_recipes()

    By default the remote store is a PostgREST endpoint reached through an
    ``aiohttp`` session created (and closed) by the client.  Pass
    ``remote=`` to use another :class:`bakebook.remote.RemoteStore`.
    """

    def __init__(
        self,
        config: BakebookConfig,
        session: SessionProvider,
        *,
        remote: RemoteStore | None = None,
        http_session: aiohttp.ClientSession | None = None,
        on_change: Callable[[StoreEvent], None] | None = None,
    ) -> None:
        self._config = config
        self._session = session
        self._remote = remote
        self._external_http = http_session is not None
        self._http_session = http_session
        self._on_change = on_change
        self._store: RecipeStore | None = None
        self._reconciler: SessionReconciler | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> BakebookClient:
        remote = self._remote
        if remote is None:
            if not self._config.base_url:
                raise BakebookConfigError("base_url is required unless a remote store is passed")
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            remote = PostgrestRemoteStore(RestTransport(self._config, self._http_session))

        store = RecipeStore(
            RecipeGateway(remote),
            self._session,
            fetch_concurrency=self._config.fetch_concurrency,
            compensate_failed_create=self._config.compensate_failed_create,
        )
        if self._on_change is not None:
            store.subscribe(self._on_change)
        self._store = store

        self._reconciler = SessionReconciler(store, self._session, loop=asyncio.get_running_loop())
        self._reconciler.start()

        try:
            await store.refresh()
        except BakebookSyncError:
            # Stay usable; the store reports ERROR until a later refresh succeeds.
            _logger.warning("Initial recipe refresh failed", exc_info=True)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._reconciler is not None:
            self._reconciler.stop()
            self._reconciler = None
        if not self._external_http and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._store = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_store(self) -> RecipeStore:
        if self._store is None:
            raise BakebookError("Client not initialized. Use 'async with BakebookClient(...) as client:'")
        return self._store

    @property
    def recipes(self) -> RecipeStore:
        """The underlying store."""
        return self._require_store()

    async def wait_idle(self) -> None:
        """Wait for refreshes triggered by identity changes to finish."""
        if self._reconciler is not None:
            await self._reconciler.wait_idle()

    # ------------------------------------------------------------------
    # Consumer surface
    # ------------------------------------------------------------------

    def list_recipes(self) -> Sequence[Recipe]:
        return self._require_store().list()

    def get_recipe(self, recipe_id: str) -> Recipe:
        return self._require_store().get(recipe_id)

    def subscribe(self, callback: Callable[[StoreEvent], None]) -> Callable[[], None]:
        return self._require_store().subscribe(callback)

    async def refresh(self) -> None:
        await self._require_store().refresh()

    async def add_recipe(self, draft: NewRecipe | Mapping[str, Any]) -> Recipe:
        return await self._require_store().create(draft)

    async def update_recipe(self, recipe_id: str, patch: RecipePatch | Mapping[str, Any]) -> Recipe:
        return await self._require_store().update(recipe_id, patch)

    async def delete_recipe(self, recipe_id: str) -> None:
        await self._require_store().delete(recipe_id)

    async def toggle_ingredient_used(self, recipe_id: str, ingredient_id: str) -> None:
        await self._require_store().toggle_ingredient_used(recipe_id, ingredient_id)
