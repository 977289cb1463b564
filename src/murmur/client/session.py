"""Explicit session context handed to client components."""

from __future__ import annotations

from dataclasses import dataclass

from murmur.client.errors import NotAuthenticated
from murmur.schemas.auth import CurrentUser


@dataclass(frozen=True)
class SessionContext:
    """The signed-in viewer, or nobody.

    Components receive this at construction instead of looking up a global.
    """

    user: CurrentUser | None = None
    access_token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and self.access_token is not None

    def require(self) -> CurrentUser:
        """Return the viewer or raise NotAuthenticated."""
        if self.user is None or self.access_token is None:
            raise NotAuthenticated("Not signed in")
        return self.user


ANONYMOUS = SessionContext()
