from __future__ import annotations

import pytest

from bakebook.config import BakebookConfig
from bakebook.exceptions import BakebookConfigError

_ENV_KEYS = (
    "BAKEBOOK_BASE_URL",
    "BAKEBOOK_API_KEY",
    "BAKEBOOK_SCHEMA",
    "BAKEBOOK_REQUEST_TIMEOUT",
    "BAKEBOOK_FETCH_CONCURRENCY",
    "BAKEBOOK_COMPENSATE_FAILED_CREATE",
    "BAKEBOOK_API_TRACE_ENABLED",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults() -> None:
    config = BakebookConfig.from_env()

    assert config.base_url == ""
    assert config.schema == "public"
    assert config.fetch_concurrency == 8
    assert config.compensate_failed_create is True
    assert config.api_trace_enabled is False


def test_from_env_reads_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BAKEBOOK_BASE_URL", "https://demo.supabase.co/rest/v1")
    monkeypatch.setenv("BAKEBOOK_API_KEY", "anon-key")
    monkeypatch.setenv("BAKEBOOK_SCHEMA", "bakery")
    monkeypatch.setenv("BAKEBOOK_REQUEST_TIMEOUT", "2.5")
    monkeypatch.setenv("BAKEBOOK_FETCH_CONCURRENCY", "3")
    monkeypatch.setenv("BAKEBOOK_COMPENSATE_FAILED_CREATE", "off")
    monkeypatch.setenv("BAKEBOOK_API_TRACE_ENABLED", "yes")

    config = BakebookConfig.from_env()

    assert config.base_url == "https://demo.supabase.co/rest/v1"
    assert config.api_key == "anon-key"
    assert config.schema == "bakery"
    assert config.request_timeout == 2.5
    assert config.fetch_concurrency == 3
    assert config.compensate_failed_create is False
    assert config.api_trace_enabled is True


def test_overrides_win_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BAKEBOOK_FETCH_CONCURRENCY", "3")
    monkeypatch.setenv("BAKEBOOK_API_TRACE_ENABLED", "1")

    config = BakebookConfig.from_env(fetch_concurrency=1, api_trace_enabled=False)

    assert config.fetch_concurrency == 1
    assert config.api_trace_enabled is False


def test_non_numeric_environment_value_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BAKEBOOK_FETCH_CONCURRENCY", "many")

    with pytest.raises(BakebookConfigError, match="BAKEBOOK_FETCH_CONCURRENCY"):
        BakebookConfig.from_env()


@pytest.mark.parametrize("kwargs", [{"fetch_concurrency": 0}, {"request_timeout": 0}])
def test_out_of_range_values_are_rejected(kwargs: dict[str, float]) -> None:
    with pytest.raises(BakebookConfigError):
        BakebookConfig(**kwargs)
