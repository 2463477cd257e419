from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
from aiohttp.test_utils import TestServer

from bakebook.client import BakebookClient
from bakebook.config import BakebookConfig
from bakebook.exceptions import BakebookConfigError, BakebookError, BakebookForbiddenError
from bakebook.remote import MemoryRemoteStore
from bakebook.session import Identity, SessionState
from bakebook.state.events import StoreEvent, StoreEventKind, StoreStatus

if TYPE_CHECKING:
    from conftest import FakePostgrest, FlakyRemoteStore


@pytest.mark.e2e
@pytest.mark.asyncio
async def test_e2e_recipe_lifecycle_across_identities(
    alice: Identity,
    bob: Identity,
    sourdough: dict[str, Any],
) -> None:
    session = SessionState(alice)
    events: list[StoreEvent] = []

    async with BakebookClient(BakebookConfig(), session, remote=MemoryRemoteStore(), on_change=events.append) as client:
        assert client.recipes.status is StoreStatus.READY
        assert client.list_recipes() == []

        created = await client.add_recipe(sourdough)
        updated = await client.update_recipe(created.id, {"steps": ["Mix", "Fold", "Proof", "Bake"]})
        await client.toggle_ingredient_used(created.id, created.ingredients[1].id)
        assert [s.order for s in updated.steps] == [0, 1, 2, 3]
        assert client.get_recipe(created.id).ingredients[1].is_used is True

        session.set_identity(bob)
        await client.wait_idle()
        assert client.list_recipes() == []
        with pytest.raises(BakebookForbiddenError):
            await client.delete_recipe(created.id)
        rye = await client.add_recipe({"title": "Rye", "ingredients": [{"name": "rye flour"}]})

        session.set_identity(alice)
        await client.wait_idle()
        [mine] = client.list_recipes()
        assert mine.id == created.id
        assert [s.description for s in mine.steps] == ["Mix", "Fold", "Proof", "Bake"]
        assert mine.ingredients[1].is_used is True

        await client.delete_recipe(created.id)
        assert client.list_recipes() == []

        session.set_identity(bob)
        await client.wait_idle()
        assert [r.id for r in client.list_recipes()] == [rye.id]

    kinds = [e.kind for e in events]
    assert kinds.count(StoreEventKind.CREATED) == 2
    assert StoreEventKind.INGREDIENT_TOGGLED in kinds
    assert kinds[-1] is StoreEventKind.REFRESHED
    with pytest.raises(BakebookError):
        client.list_recipes()


@pytest.mark.e2e
@pytest.mark.asyncio
async def test_e2e_initial_refresh_failure_is_recoverable(
    session: SessionState,
    remote: FlakyRemoteStore,
) -> None:
    remote.failures.add(("select", "recipes"))

    async with BakebookClient(BakebookConfig(), session, remote=remote) as client:
        assert client.recipes.status is StoreStatus.ERROR
        assert client.list_recipes() == []

        remote.failures.clear()
        await client.refresh()
        assert client.recipes.status is StoreStatus.READY


@pytest.mark.e2e
@pytest.mark.asyncio
async def test_e2e_default_remote_requires_base_url(session: SessionState) -> None:
    with pytest.raises(BakebookConfigError):
        async with BakebookClient(BakebookConfig(), session):
            pass


@pytest.mark.e2e
@pytest.mark.asyncio
async def test_e2e_over_postgrest_http(
    postgrest: FakePostgrest,
    session: SessionState,
    sourdough: dict[str, Any],
) -> None:
    async with TestServer(postgrest.app()) as server:
        config = BakebookConfig(base_url=str(server.make_url("/rest/v1")), api_key="anon-key", api_trace_enabled=True)

        async with BakebookClient(config, session) as client:
            created = await client.add_recipe(sourdough)
            await client.update_recipe(created.id, {"title": "Country loaf", "ingredients": [{"name": "spelt"}]})
            await client.toggle_ingredient_used(created.id, client.get_recipe(created.id).ingredients[0].id)

        async with BakebookClient(config, session) as client:
            [loaded] = client.list_recipes()

    assert loaded.title == "Country loaf"
    assert [(i.name, i.is_used) for i in loaded.ingredients] == [("spelt", True)]
    assert [s.description for s in loaded.steps] == ["Mix", "Proof overnight", "Bake"]
    assert loaded.updated_at > loaded.created_at
    assert all(r["headers"]["apikey"] == "anon-key" for r in postgrest.requests)
