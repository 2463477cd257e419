"""Helpers for safe debug logging.

Requests to the remote store carry an API key and a bearer token.  The
request tracer passes headers, query parameters and bodies through
:func:`redact_for_log` before they reach DEBUG logs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "apikey",
        "api_key",
        "authorization",
        "password",
        "token",
        "access_token",
        "refresh_token",
        "cookie",
    }
)
_REDACTED = "<redacted>"
_MAX_DEPTH = 20


def _is_sensitive(key: Any) -> bool:
    return str(key).lower() in _SENSITIVE_KEYS


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs.

    Mapping entries and ``(name, value)`` pairs with a sensitive name are
    masked, as is any string carrying a bearer token.  Long strings are
    truncated.
    """
    if _depth > _MAX_DEPTH:
        return "<max-depth>"

    if value is None or isinstance(value, (bool, int, float)):
        return value

    if isinstance(value, str):
        if value.lower().startswith("bearer "):
            return _REDACTED
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    def _walk(item: Any) -> Any:
        return redact_for_log(item, max_string=max_string, _depth=_depth + 1)

    if isinstance(value, Mapping):
        return {str(k): _REDACTED if _is_sensitive(k) else _walk(v) for k, v in value.items()}

    # Query parameters travel as (name, value) pairs.
    if isinstance(value, tuple) and len(value) == 2 and isinstance(value[0], str):
        name, item = value
        return (name, _REDACTED if _is_sensitive(name) else _walk(item))

    if isinstance(value, Sequence):
        return [_walk(item) for item in value]

    return repr(value)
