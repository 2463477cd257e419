from __future__ import annotations

from typing import TYPE_CHECKING

import aiohttp
import pytest
from aiohttp.test_utils import TestServer

from bakebook._transport import RestTransport
from bakebook.config import BakebookConfig
from bakebook.exceptions import BakebookConfigError, BakebookRemoteError
from bakebook.postgrest import PostgrestRemoteStore, encode_filter_value

if TYPE_CHECKING:
    from conftest import FakePostgrest


def _remote(server: TestServer, http: aiohttp.ClientSession, **kwargs: object) -> PostgrestRemoteStore:
    config = BakebookConfig(base_url=str(server.make_url("/rest/v1")), api_key="anon-key", **kwargs)
    return PostgrestRemoteStore(RestTransport(config, http))


def test_encode_filter_value() -> None:
    assert encode_filter_value("r1") == "eq.r1"
    assert encode_filter_value(3) == "eq.3"
    assert encode_filter_value(True) == "eq.true"
    assert encode_filter_value(False) == "eq.false"
    assert encode_filter_value(None) == "is.null"


def test_transport_requires_base_url() -> None:
    with pytest.raises(BakebookConfigError):
        RestTransport(BakebookConfig(), None)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_select_sends_filters_order_and_credentials(postgrest: FakePostgrest) -> None:
    await postgrest.store.insert("steps", [{"id": "s1", "recipe_id": "r1", "description": "Mix", "order": 0}])

    async with TestServer(postgrest.app()) as server, aiohttp.ClientSession() as http:
        rows = await _remote(server, http, schema="bakery").select("steps", {"recipe_id": "r1"}, order_by="order")

    assert rows == [{"id": "s1", "recipe_id": "r1", "description": "Mix", "order": 0}]
    [request] = postgrest.requests
    assert request["method"] == "GET"
    assert request["query"] == [("select", "*"), ("recipe_id", "eq.r1"), ("order", "order.asc")]
    headers = request["headers"]
    assert headers["apikey"] == "anon-key"
    assert headers["Authorization"] == "Bearer anon-key"
    assert headers["Accept-Profile"] == "bakery"
    assert headers["Content-Profile"] == "bakery"


@pytest.mark.asyncio
async def test_insert_asks_for_representation(postgrest: FakePostgrest) -> None:
    row = {"id": "i1", "recipe_id": "r1", "name": "flour", "amount": "500", "unit": "g", "is_used": False}

    async with TestServer(postgrest.app()) as server, aiohttp.ClientSession() as http:
        remote = _remote(server, http)
        stored = await remote.insert("ingredients", [row])
        assert await remote.insert("ingredients", []) == []

    assert stored == [row]
    [request] = postgrest.requests
    assert request["method"] == "POST"
    assert request["headers"]["Prefer"] == "return=representation"
    assert request["body"] == [row]


@pytest.mark.asyncio
async def test_update_and_delete_use_minimal_return(postgrest: FakePostgrest) -> None:
    await postgrest.store.insert("ingredients", [{"id": "i1", "recipe_id": "r1", "name": "flour", "is_used": False}])

    async with TestServer(postgrest.app()) as server, aiohttp.ClientSession() as http:
        remote = _remote(server, http)
        await remote.update("ingredients", {"id": "i1", "recipe_id": "r1"}, {"is_used": True})
        assert postgrest.store.rows("ingredients")[0]["is_used"] is True
        await remote.delete("ingredients", {"recipe_id": "r1"})

    assert postgrest.store.rows("ingredients") == []
    patch, delete = postgrest.requests
    assert patch["method"] == "PATCH"
    assert patch["query"] == [("id", "eq.i1"), ("recipe_id", "eq.r1")]
    assert patch["body"] == {"is_used": True}
    assert patch["headers"]["Prefer"] == "return=minimal"
    assert delete["method"] == "DELETE"
    assert delete["query"] == [("recipe_id", "eq.r1")]


@pytest.mark.asyncio
async def test_unfiltered_writes_are_refused_locally(postgrest: FakePostgrest) -> None:
    async with TestServer(postgrest.app()) as server, aiohttp.ClientSession() as http:
        remote = _remote(server, http)
        with pytest.raises(BakebookRemoteError):
            await remote.update("recipes", {}, {"title": "x"})
        with pytest.raises(BakebookRemoteError):
            await remote.delete("recipes", {})

    assert postgrest.requests == []


@pytest.mark.asyncio
async def test_error_status_is_mapped_with_postgrest_message(postgrest: FakePostgrest) -> None:
    postgrest.fail_with = 409

    async with TestServer(postgrest.app()) as server, aiohttp.ClientSession() as http:
        with pytest.raises(BakebookRemoteError) as excinfo:
            await _remote(server, http).insert("recipes", [{"id": "r1"}])

    assert excinfo.value.status_code == 409
    assert excinfo.value.table == "recipes"
    assert "duplicate key value" in str(excinfo.value)
    assert "Key (id) already exists." in str(excinfo.value)


@pytest.mark.asyncio
async def test_connection_failure_is_a_remote_error(postgrest: FakePostgrest) -> None:
    async with TestServer(postgrest.app()) as server:
        base_url = str(server.make_url("/rest/v1"))

    async with aiohttp.ClientSession() as http:
        remote = PostgrestRemoteStore(RestTransport(BakebookConfig(base_url=base_url, request_timeout=2.0), http))
        with pytest.raises(BakebookRemoteError) as excinfo:
            await remote.select("recipes", {"owner": "user-alice"})

    assert excinfo.value.status_code is None
    assert excinfo.value.operation == "GET"
