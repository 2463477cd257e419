"""State/store layer.

This package is the single source of truth for the recipe aggregates the
signed-in identity can see, and for keeping them in step with identity
changes.
"""

from bakebook.state.events import StoreEvent, StoreEventKind, StoreStatus
from bakebook.state.reconcile import SessionReconciler
from bakebook.state.store import RecipeStore

__all__ = [
    "RecipeStore",
    "SessionReconciler",
    "StoreEvent",
    "StoreEventKind",
    "StoreStatus",
]
