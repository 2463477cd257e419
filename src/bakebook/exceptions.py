"""Custom exception hierarchy for bakebook."""

from __future__ import annotations


class BakebookError(Exception):
    """Base exception for all bakebook errors."""


class BakebookConfigError(BakebookError):
    """Invalid or missing configuration."""


class BakebookRemoteError(BakebookError):
    """Remote store failure (network, non-2xx, invalid JSON, constraint)."""

    def __init__(
        self,
        message: str,
        *,
        table: str = "",
        operation: str = "",
        status_code: int | None = None,
    ) -> None:
        self.table = table
        self.operation = operation
        self.status_code = status_code
        super().__init__(message)


class BakebookMalformedRowError(BakebookRemoteError):
    """A row returned by the remote store does not have the expected shape."""


class BakebookUnauthorizedError(BakebookError):
    """The operation requires an identity but none is signed in."""


class BakebookForbiddenError(BakebookError):
    """The signed-in identity does not own the target recipe."""

    def __init__(self, message: str, *, recipe_id: str = "") -> None:
        self.recipe_id = recipe_id
        super().__init__(message)


class BakebookNotFoundError(BakebookError):
    """The target recipe does not exist (in the cache or remotely)."""

    def __init__(self, message: str, *, recipe_id: str = "") -> None:
        self.recipe_id = recipe_id
        super().__init__(message)


class BakebookSyncError(BakebookError):
    """A store operation failed while talking to the remote store.

    The underlying :class:`BakebookRemoteError` is available as
    ``__cause__``.  Multi-row writes are not rolled back, so callers that
    need to observe the true remote state should ``refresh()``.
    """

    def __init__(self, message: str, *, operation: str = "", recipe_id: str = "") -> None:
        self.operation = operation
        self.recipe_id = recipe_id
        super().__init__(message)
