"""Session identity and the provider interface the store consumes.

Authentication itself lives outside this library.  Whatever signs users
in only has to satisfy :class:`SessionProvider`; :class:`SessionState` is
a minimal in-process implementation for wiring the two together.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

_logger = logging.getLogger(__name__)

IdentityCallback = Callable[["Identity | None"], None]


class Identity(BaseModel):
    """The authenticated principal.

    Parameters
    ----------
    user_id : str
        Opaque, stable identifier.  The only field used for ownership.
    email : str or None
        Display only; may change without affecting ownership.
    brand_name : str or None
        Display only.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    user_id: str = Field(min_length=1)
    email: str | None = None
    brand_name: str | None = None


class SessionProvider(Protocol):
    """Structural interface of the authentication subsystem."""

    def current_identity(self) -> Identity | None: ...

    def on_change(self, callback: IdentityCallback) -> Callable[[], None]:
        """Register *callback*; the returned callable unregisters it."""
        ...


class SessionState:
    """Holds the current identity and notifies listeners when it is set.

    Every call to :meth:`set_identity` or :meth:`clear` notifies, even if
    the identity did not change (a token refresh re-announces the same
    principal).  Listeners are expected to be idempotent.
    """

    def __init__(self, identity: Identity | None = None) -> None:
        self._identity = identity
        self._callbacks: list[IdentityCallback] = []

    def current_identity(self) -> Identity | None:
        return self._identity

    def on_change(self, callback: IdentityCallback) -> Callable[[], None]:
        self._callbacks.append(callback)

        def _unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _unsubscribe

    def set_identity(self, identity: Identity | None) -> None:
        self._identity = identity
        _logger.debug("Session identity set user_id=%s", identity.user_id if identity else None)
        for callback in list(self._callbacks):
            try:
                callback(identity)
            except Exception:
                _logger.debug("Session change callback failed", exc_info=True)

    def clear(self) -> None:
        self.set_identity(None)
