"""Store status and change notifications."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class StoreStatus(StrEnum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class StoreEventKind(StrEnum):
    REFRESHED = "refreshed"
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    INGREDIENT_TOGGLED = "ingredient_toggled"


class StoreEvent(BaseModel):
    """Pushed to subscribers after every successful mutation or refresh."""

    model_config = ConfigDict(frozen=True)

    kind: StoreEventKind
    recipe_id: str | None = Field(default=None, description="Affected recipe; None for refreshes")
    owner: str | None = Field(default=None, description="Identity the cache is scoped to")
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
