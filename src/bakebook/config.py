"""Client configuration for bakebook."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from bakebook.exceptions import BakebookConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env: Mapping[str, str], key: str, cast: type[int] | type[float]) -> Any:
    raw = env.get(key)
    if raw is None:
        return None
    try:
        return cast(raw)
    except ValueError as exc:
        raise BakebookConfigError(f"{key} must be a number, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class BakebookConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        PostgREST endpoint of the remote store, e.g.
        ``"https://<project>.supabase.co/rest/v1"``.  Only required when
        the client builds its own remote store.
    api_key : str
        Key sent as ``apikey`` and bearer token on every request.
    schema : str
        Database schema selected through the profile headers.
    request_timeout : float
        Total timeout in seconds for a single remote request.
    fetch_concurrency : int
        Maximum number of recipes whose children are fetched at the same
        time during a refresh.
    compensate_failed_create : bool
        Delete the recipe row again when writing its ingredients or steps
        fails during ``create``.  When disabled the orphaned row stays in
        the remote store until the owner deletes it.
    api_trace_enabled : bool
        Log every request (headers and body redacted) at DEBUG level.
    """

    base_url: str = ""
    api_key: str = ""
    schema: str = "public"
    request_timeout: float = 30.0
    fetch_concurrency: int = 8
    compensate_failed_create: bool = True
    api_trace_enabled: bool = False

    def __post_init__(self) -> None:
        if self.fetch_concurrency < 1:
            raise BakebookConfigError(f"fetch_concurrency must be >= 1, got {self.fetch_concurrency}")
        if self.request_timeout <= 0:
            raise BakebookConfigError(f"request_timeout must be > 0, got {self.request_timeout}")

    @classmethod
    def from_env(cls, **overrides: Any) -> BakebookConfig:
        """Create configuration from environment variables.

        Reads ``BAKEBOOK_BASE_URL``, ``BAKEBOOK_API_KEY`` and the optional
        ``BAKEBOOK_*`` variables matching the field names.  Explicit
        keyword arguments override environment values.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "BAKEBOOK_BASE_URL": "base_url",
            "BAKEBOOK_API_KEY": "api_key",
            "BAKEBOOK_SCHEMA": "schema",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        timeout = _env_number(env, "BAKEBOOK_REQUEST_TIMEOUT", float)
        if timeout is not None and "request_timeout" not in overrides:
            config_kwargs["request_timeout"] = timeout

        concurrency = _env_number(env, "BAKEBOOK_FETCH_CONCURRENCY", int)
        if concurrency is not None and "fetch_concurrency" not in overrides:
            config_kwargs["fetch_concurrency"] = concurrency

        if "compensate_failed_create" not in overrides:
            config_kwargs["compensate_failed_create"] = _env_bool(
                env.get("BAKEBOOK_COMPENSATE_FAILED_CREATE"),
                True,
            )

        if "api_trace_enabled" not in overrides:
            config_kwargs["api_trace_enabled"] = _env_bool(
                env.get("BAKEBOOK_API_TRACE_ENABLED"),
                False,
            )

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
