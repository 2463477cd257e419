"""bakebook - Async recipe store synchronised with a remote relational store."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("bakebook")
except PackageNotFoundError:
    __version__ = "0+local"
from bakebook.client import BakebookClient
from bakebook.config import BakebookConfig
from bakebook.exceptions import (
    BakebookConfigError,
    BakebookError,
    BakebookForbiddenError,
    BakebookMalformedRowError,
    BakebookNotFoundError,
    BakebookRemoteError,
    BakebookSyncError,
    BakebookUnauthorizedError,
)
from bakebook.gateway import RecipeGateway
from bakebook.models import (
    Ingredient,
    NewIngredient,
    NewRecipe,
    NewStep,
    Recipe,
    RecipePatch,
    Step,
)
from bakebook.postgrest import PostgrestRemoteStore
from bakebook.remote import MemoryRemoteStore, RemoteStore
from bakebook.session import Identity, SessionProvider, SessionState
from bakebook.state import RecipeStore, SessionReconciler, StoreEvent, StoreEventKind, StoreStatus

__all__ = [
    "__version__",
    "BakebookClient",
    "BakebookConfig",
    "BakebookConfigError",
    "BakebookError",
    "BakebookForbiddenError",
    "BakebookMalformedRowError",
    "BakebookNotFoundError",
    "BakebookRemoteError",
    "BakebookSyncError",
    "BakebookUnauthorizedError",
    "Identity",
    "Ingredient",
    "MemoryRemoteStore",
    "NewIngredient",
    "NewRecipe",
    "NewStep",
    "PostgrestRemoteStore",
    "Recipe",
    "RecipeGateway",
    "RecipePatch",
    "RecipeStore",
    "RemoteStore",
    "SessionProvider",
    "SessionReconciler",
    "SessionState",
    "Step",
    "StoreEvent",
    "StoreEventKind",
    "StoreStatus",
]
