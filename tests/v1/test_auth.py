# tests/v1/test_auth.py
"""Tests for the authentication endpoints."""

from fastapi import status
from sqlalchemy import func, select

from murmur.models import AuthIdentity, Profile

SIGNUP_URL = "/api/v1/auth/signup"
LOGIN_URL = "/api/v1/auth/login"


def _signup(client, api_key_header, username="carol", email="carol@example.com", password="secret123"):
    return client.post(
        SIGNUP_URL,
        json={"username": username, "email": email, "password": password},
        headers=api_key_header,
    )


def test_signup_creates_identity_and_profile(client, api_key_header, db_session) -> None:
    response = _signup(client, api_key_header)
    assert response.status_code == status.HTTP_201_CREATED
    user = response.json()["user"]
    assert user["username"] == "carol"
    assert user["email"] == "carol@example.com"

    profile = db_session.get(Profile, user["id"])
    assert profile is not None
    assert profile.username == "carol"


def test_signup_rejects_existing_username_without_creating_identity(
    client, api_key_header, db_session, test_user
) -> None:
    response = _signup(client, api_key_header, username=test_user.username, email="new@example.com")
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["detail"] == "Username already exists"

    identities = db_session.execute(
        select(func.count()).select_from(AuthIdentity).where(AuthIdentity.email == "new@example.com")
    ).scalar_one()
    assert identities == 0


def test_signup_rejects_existing_email(client, api_key_header, test_user) -> None:
    response = _signup(client, api_key_header, username="someone_else", email=test_user.email)
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["detail"] == "User already registered"


def test_signup_validates_username_format(client, api_key_header) -> None:
    response = _signup(client, api_key_header, username="no spaces!")
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_signup_validates_password_length(client, api_key_header) -> None:
    response = _signup(client, api_key_header, password="12345")
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_login_returns_bearer_token(client, api_key_header, test_user) -> None:
    response = client.post(
        LOGIN_URL,
        json={"email": test_user.email, "password": "secret123"},
        headers=api_key_header,
    )
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["id"] == test_user.id

    me = client.get(
        "/api/v1/auth/me",
        headers={**api_key_header, "Authorization": f"Bearer {body['access_token']}"},
    )
    assert me.status_code == status.HTTP_200_OK
    assert me.json()["username"] == test_user.username


def test_login_is_case_insensitive_on_email(client, api_key_header, test_user) -> None:
    response = client.post(
        LOGIN_URL,
        json={"email": test_user.email.upper(), "password": "secret123"},
        headers=api_key_header,
    )
    assert response.status_code == status.HTTP_200_OK


def test_login_rejects_wrong_password(client, api_key_header, test_user) -> None:
    response = client.post(
        LOGIN_URL,
        json={"email": test_user.email, "password": "wrong-password"},
        headers=api_key_header,
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["detail"] == "Invalid login credentials"


def test_logout_revokes_token(client, auth_headers) -> None:
    assert client.get("/api/v1/auth/me", headers=auth_headers).status_code == 200

    response = client.post("/api/v1/auth/logout", headers=auth_headers)
    assert response.status_code == status.HTTP_204_NO_CONTENT

    assert client.get("/api/v1/auth/me", headers=auth_headers).status_code == 401


def test_logout_requires_session(client, api_key_header) -> None:
    response = client.post("/api/v1/auth/logout", headers=api_key_header)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_me_requires_session(client, api_key_header) -> None:
    response = client.get("/api/v1/auth/me", headers=api_key_header)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
