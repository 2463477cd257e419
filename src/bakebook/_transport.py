"""HTTP transport for PostgREST-style remote stores."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from typing import Any, Protocol

import aiohttp

from bakebook._constants import USER_AGENT
from bakebook._redact import redact_for_log
from bakebook.config import BakebookConfig
from bakebook.exceptions import BakebookConfigError, BakebookRemoteError

_logger = logging.getLogger(__name__)

QueryParams = Sequence[tuple[str, str]]


class Transport(Protocol):
    """Structural transport interface used by :class:`bakebook.postgrest.PostgrestRemoteStore`."""

    async def request(
        self,
        method: str,
        table: str,
        *,
        params: QueryParams = (),
        body: Any = None,
        prefer: str | None = None,
    ) -> Any: ...


def _error_message(text: str) -> str:
    """Pull PostgREST's ``message``/``details`` out of an error body when present."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return text[:200]
    if isinstance(payload, dict):
        parts = [str(payload[key]) for key in ("message", "details", "hint") if payload.get(key)]
        if parts:
            return " ".join(parts)
    return text[:200]


class RestTransport:
    """JSON-over-HTTP transport that authenticates with an API key."""

    def __init__(self, config: BakebookConfig, http_session: aiohttp.ClientSession) -> None:
        if not config.base_url:
            raise BakebookConfigError("base_url is required to talk to a remote store")
        self._config = config
        self._http = http_session
        self._base_url = config.base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    def _headers(self, prefer: str | None) -> dict[str, str]:
        headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json",
            "user-agent": USER_AGENT,
            "accept-profile": self._config.schema,
            "content-profile": self._config.schema,
        }
        if self._config.api_key:
            headers["apikey"] = self._config.api_key
            headers["authorization"] = f"Bearer {self._config.api_key}"
        if prefer:
            headers["prefer"] = prefer
        return headers

    async def request(
        self,
        method: str,
        table: str,
        *,
        params: QueryParams = (),
        body: Any = None,
        prefer: str | None = None,
    ) -> Any:
        """Send one request for *table* and return the decoded JSON body.

        An empty response body (e.g. ``Prefer: return=minimal``) yields
        ``None``.
        """
        url = f"{self._base_url}/{table}"
        headers = self._headers(prefer)
        data = None if body is None else json.dumps(body, separators=(",", ":"))

        if self._config.api_trace_enabled:
            _logger.debug(
                "%s %s params=%s headers=%s body=%s",
                method,
                url,
                redact_for_log(list(params)),
                redact_for_log(headers),
                redact_for_log(body),
            )
        else:
            _logger.debug("%s %s", method, url)

        try:
            async with self._http.request(
                method,
                url,
                params=list(params),
                data=data,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                if resp.status >= 400:
                    raise BakebookRemoteError(
                        f"HTTP {resp.status} from {method} {table}: {_error_message(text)}",
                        table=table,
                        operation=method,
                        status_code=resp.status,
                    )
        except BakebookRemoteError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise BakebookRemoteError(
                f"{method} {table} failed: {exc!r}",
                table=table,
                operation=method,
            ) from exc

        if not text.strip():
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise BakebookRemoteError(
                f"Invalid JSON from {method} {table}: {text[:200]}",
                table=table,
                operation=method,
                status_code=resp.status,
            ) from exc
