"""Signup, login and current-user resolution on top of the identity provider."""
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from murmur.core.errors import InvalidCredentialsError, UsernameTakenError
from murmur.models import Profile
from murmur.schemas.auth import CurrentUser, LoginRequest, SignupRequest
from murmur.services.identity import IdentityProvider, SessionToken

__all__ = [
    "is_username_available",
    "get_user_profile",
    "signup",
    "login",
    "logout",
    "get_current_user",
]

logger = logging.getLogger(__name__)

USERNAME_TAKEN = "Username already exists"


def is_username_available(db: Session, username: str) -> bool:
    """Return True when no profile uses ``username``."""
    existing = db.execute(
        select(Profile.id).where(Profile.username == username)
    ).first()
    return existing is None


def get_user_profile(db: Session, user_id: str) -> Profile | None:
    """Return the profile for a user id."""
    return db.get(Profile, user_id)


def signup(db: Session, provider: IdentityProvider, data: SignupRequest) -> CurrentUser:
    """Create an identity and its profile.

    The availability check runs first so the common case never creates an
    identity. It is racy, so the unique constraint on ``profiles.username``
    remains the authoritative answer: when it fires, the whole transaction
    (identity included) is rolled back.

    Raises:
        UsernameTakenError: If the username is already in use.
        EmailTakenError: If the email is already registered.
    """
    if not is_username_available(db, data.username):
        raise UsernameTakenError(USERNAME_TAKEN)

    identity = provider.sign_up(data.email, data.password, {"username": data.username})
    profile = Profile(id=identity.id, username=data.username)
    db.add(profile)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.info("Signup for %s lost a username race", data.username)
        raise UsernameTakenError(USERNAME_TAKEN) from exc

    logger.info("Created account %s", identity.id)
    return CurrentUser(id=identity.id, username=profile.username, email=identity.email)


def login(db: Session, provider: IdentityProvider, data: LoginRequest) -> tuple[SessionToken, CurrentUser]:
    """Sign in with email and password.

    Raises:
        InvalidCredentialsError: If the credentials do not match an account
            with a profile.
    """
    token = provider.sign_in_with_password(data.email, data.password)
    user = get_current_user(db, provider, token.access_token)
    if user is None:
        raise InvalidCredentialsError("Invalid login credentials")
    logger.info("User %s signed in", user.id)
    return token, user


def logout(db: Session, provider: IdentityProvider, token: str) -> None:
    """Revoke the session token."""
    provider.sign_out(token)
    db.commit()
    logger.info("Session signed out")


def get_current_user(db: Session, provider: IdentityProvider, token: str | None) -> CurrentUser | None:
    """Resolve a session token to the viewer, or None for anonymous visitors."""
    identity = provider.get_current_user(token)
    if identity is None:
        return None
    profile = get_user_profile(db, identity.id)
    if profile is None:
        logger.warning("Identity %s has no profile", identity.id)
        return None
    return CurrentUser(id=profile.id, username=profile.username, email=identity.email)
