"""Keep the store scoped to whoever is signed in.

Every identity notification (login, logout, token refresh) schedules a
full :meth:`RecipeStore.refresh`.  Bursts are harmless: each refresh
replaces the cache and only the newest one commits.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from bakebook.exceptions import BakebookSyncError
from bakebook.session import Identity, SessionProvider
from bakebook.state.store import RecipeStore

_logger = logging.getLogger(__name__)


class SessionReconciler:
    """Subscribe a :class:`RecipeStore` to a :class:`SessionProvider`.

    Notifications may arrive from any thread; refreshes always run on
    *loop* (the running loop at construction time by default).
    """

    def __init__(
        self,
        store: RecipeStore,
        session: SessionProvider,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._store = store
        self._session = session
        self._loop = loop or asyncio.get_running_loop()
        self._unsubscribe: Callable[[], None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def is_running(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> None:
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._session.on_change(self._on_identity_change)

    def stop(self) -> None:
        """Unsubscribe and cancel refreshes that have not finished yet."""
        unsubscribe = self._unsubscribe
        self._unsubscribe = None
        if unsubscribe is not None:
            unsubscribe()
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()

    async def wait_idle(self) -> None:
        """Wait until every refresh scheduled so far has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_identity_change(self, identity: Identity | None) -> None:
        _logger.info("Identity changed to %s; refreshing recipes", identity.user_id if identity else None)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._schedule_refresh()
        else:
            self._loop.call_soon_threadsafe(self._schedule_refresh)

    def _schedule_refresh(self) -> None:
        if self._unsubscribe is None:
            return
        task = self._loop.create_task(self._refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _refresh(self) -> None:
        try:
            await self._store.refresh()
        except BakebookSyncError:
            # The store keeps serving the last good cache and reports ERROR.
            _logger.warning("Refresh after identity change failed", exc_info=True)
