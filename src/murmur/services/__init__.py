"""Business logic services for the Murmur application."""

from .identity import IdentityProvider, SessionToken

__all__ = [
    "IdentityProvider",
    "SessionToken",
]
