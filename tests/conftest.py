from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from aiohttp import web

from bakebook.exceptions import BakebookRemoteError
from bakebook.gateway import RecipeGateway
from bakebook.remote import Filters, MemoryRemoteStore, Record
from bakebook.session import Identity, SessionState
from bakebook.state.store import RecipeStore


class SteppingClock:
    """Deterministic clock advancing one second per reading."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start or datetime(2026, 1, 1, tzinfo=UTC)
        self._step = step

    def __call__(self) -> datetime:
        value = self.now
        self.now += self._step
        return value


class FlakyRemoteStore(MemoryRemoteStore):
    """Memory store that records every call.

    ``(operation, table)`` pairs in ``failures`` raise; pairs in ``gates``
    wait for their event before running.
    """

    def __init__(self, *, cascade_deletes: bool = True) -> None:
        super().__init__(cascade_deletes=cascade_deletes)
        self.failures: set[tuple[str, str]] = set()
        self.calls: list[tuple[str, str]] = []
        self.gates: dict[tuple[str, str], asyncio.Event] = {}

    async def _check(self, operation: str, table: str) -> None:
        self.calls.append((operation, table))
        gate = self.gates.get((operation, table))
        if gate is not None:
            await gate.wait()
        if (operation, table) in self.failures:
            raise BakebookRemoteError(
                f"injected {operation} failure on {table}",
                table=table,
                operation=operation,
                status_code=503,
            )

    async def select(self, table: str, filters: Filters, *, order_by: str | None = None) -> list[Record]:
        await self._check("select", table)
        return await super().select(table, filters, order_by=order_by)

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> list[Record]:
        await self._check("insert", table)
        return await super().insert(table, rows)

    async def update(self, table: str, filters: Filters, patch: Mapping[str, Any]) -> None:
        await self._check("update", table)
        await super().update(table, filters, patch)

    async def delete(self, table: str, filters: Filters) -> None:
        await self._check("delete", table)
        await super().delete(table, filters)


@pytest.fixture
def alice() -> Identity:
    return Identity(user_id="user-alice", email="alice@example.com")


@pytest.fixture
def bob() -> Identity:
    return Identity(user_id="user-bob", email="bob@example.com", brand_name="Bob's Bakery")


@pytest.fixture
def remote() -> FlakyRemoteStore:
    return FlakyRemoteStore()


@pytest.fixture
def session(alice: Identity) -> SessionState:
    return SessionState(alice)


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
def gateway(remote: FlakyRemoteStore) -> RecipeGateway:
    return RecipeGateway(remote)


@pytest.fixture
def store(gateway: RecipeGateway, session: SessionState, clock: SteppingClock) -> RecipeStore:
    return RecipeStore(gateway, session, clock=clock)


@pytest.fixture
def sourdough() -> dict[str, Any]:
    return {
        "title": "Sourdough",
        "bakingTemperature": "230C",
        "bakingTime": "45 min",
        "ingredients": [
            {"name": "flour", "amount": "500", "unit": "g"},
            {"name": "water", "amount": "350", "unit": "ml"},
            {"name": "salt", "amount": "10", "unit": "g"},
        ],
        "steps": ["Mix", "Proof overnight", "Bake"],
    }


def _decode_filter(value: str) -> Any:
    if value == "is.null":
        return None
    if value in ("eq.true", "eq.false"):
        return value == "eq.true"
    return value.removeprefix("eq.")


class FakePostgrest:
    """PostgREST look-alike serving ``/rest/v1/{table}`` from a :class:`MemoryRemoteStore`."""

    def __init__(self) -> None:
        self.store = MemoryRemoteStore()
        self.requests: list[dict[str, Any]] = []
        self.fail_with: int | None = None

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("*", "/rest/v1/{table}", self._handle)
        return app

    async def _handle(self, request: web.Request) -> web.StreamResponse:
        table = request.match_info["table"]
        text = await request.text()
        body = json.loads(text) if text else None
        self.requests.append(
            {
                "method": request.method,
                "table": table,
                "query": list(request.query.items()),
                "headers": request.headers.copy(),
                "body": body,
            }
        )
        if self.fail_with is not None:
            return web.json_response(
                {"code": "23505", "message": "duplicate key value", "details": "Key (id) already exists."},
                status=self.fail_with,
            )

        filters = {k: _decode_filter(v) for k, v in request.query.items() if k not in ("select", "order")}
        order = request.query.get("order")
        order_by = order.rsplit(".", 1)[0] if order else None
        try:
            if request.method == "GET":
                return web.json_response(await self.store.select(table, filters, order_by=order_by))
            if request.method == "POST":
                rows = await self.store.insert(table, body)
                if request.headers.get("Prefer") == "return=representation":
                    return web.json_response(rows, status=201)
                return web.Response(status=201)
            if request.method == "PATCH":
                await self.store.update(table, filters, body)
                return web.Response(status=204)
            if request.method == "DELETE":
                await self.store.delete(table, filters)
                return web.Response(status=204)
        except BakebookRemoteError as exc:
            return web.json_response({"message": str(exc)}, status=exc.status_code or 400)
        return web.Response(status=405)


@pytest.fixture
def postgrest() -> FakePostgrest:
    return FakePostgrest()
