"""Test authentication endpoints"""
from datetime import timedelta

import pytest

from pydantic import ValidationError as PydanticValidationError

from core.enums import UserRole
from core.exceptions import UnauthorizedError
from core.identity import Actor
from core.security import create_access_token, decode_access_token, get_password_hash, verify_password
from repositories import UserRepository
from schemas.user import UserCredentials
from tests.conftest import TEST_PASSWORD


def test_password_hash_round_trip():
    hashed = get_password_hash("s3cret-passphrase")
    assert hashed != "s3cret-passphrase"
    assert verify_password("s3cret-passphrase", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("anything", "not-a-bcrypt-hash")


def test_token_round_trip():
    token = create_access_token("user-1", UserRole.ADMIN)
    assert decode_access_token(token) == Actor(id="user-1", role=UserRole.ADMIN)


def test_expired_token_is_unauthorized():
    token = create_access_token("user-1", UserRole.USER, expires_delta=timedelta(seconds=-5))
    with pytest.raises(UnauthorizedError):
        decode_access_token(token)


@pytest.mark.asyncio
async def test_register_and_login(client):
    response = await client.post(
        "/api/auth/register", json={"email": "Pedro@Example.com", "password": "long-enough-pw"}
    )
    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "pedro@example.com"
    assert body["role"] == "user"
    assert "password" not in body and "hashedPassword" not in body

    response = await client.post(
        "/api/auth/login", json={"email": "pedro@example.com", "password": "long-enough-pw"}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["tokenType"] == "bearer"
    assert decode_access_token(data["accessToken"]).id == body["id"]


@pytest.mark.asyncio
async def test_register_cannot_choose_role(client):
    response = await client.post(
        "/api/auth/register", json={"email": "sneaky@example.com", "password": "long-enough-pw", "role": "admin"}
    )
    assert response.status_code == 422
    assert response.json()["fields"] == ["role"]


@pytest.mark.asyncio
async def test_register_duplicate_email_is_409(client, citizen):
    response = await client.post(
        "/api/auth/register", json={"email": "JUAN@example.com", "password": "long-enough-pw"}
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_login_wrong_password(client, citizen):
    response = await client.post("/api/auth/login", json={"email": citizen.email, "password": "wrong-password"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_unknown_email(client):
    response = await client.post("/api/auth/login", json={"email": "nobody@example.com", "password": TEST_PASSWORD})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_admin_gets_admin_role(client, admin_user):
    response = await client.post("/api/auth/login", json={"email": admin_user.email, "password": TEST_PASSWORD})
    assert response.status_code == 200
    assert response.json()["role"] == "admin"


@pytest.mark.asyncio
async def test_stored_password_is_hashed(test_db, citizen):
    user = await UserRepository(test_db).get_by_id(citizen.id)
    assert user.hashed_password != TEST_PASSWORD
    assert verify_password(TEST_PASSWORD, user.hashed_password)


@pytest.mark.parametrize("email", ["a b@x.com", "juan@@example.com", "juan@.", "<x>@evil.com", "no-at-sign"])
def test_malformed_email_is_rejected(email):
    with pytest.raises(PydanticValidationError):
        UserCredentials(email=email, password="correct-horse")


def test_email_is_trimmed_and_lowercased():
    creds = UserCredentials(email="  Pedro@Example.COM ", password="correct-horse")
    assert creds.email == "pedro@example.com"


def test_password_limit_counts_utf8_bytes():
    UserCredentials(email="pedro@example.com", password="é" * 36)
    with pytest.raises(PydanticValidationError):
        UserCredentials(email="pedro@example.com", password="é" * 37)


@pytest.mark.asyncio
async def test_register_with_overlong_multibyte_password_is_422(client):
    response = await client.post("/api/auth/register", json={"email": "ana@example.com", "password": "é" * 40})
    assert response.status_code == 422
    assert response.json()["fields"] == ["password"]


@pytest.mark.asyncio
async def test_register_with_malformed_email_is_422(client):
    response = await client.post("/api/auth/register", json={"email": "juan@@example.com", "password": "long-enough-pw"})
    assert response.status_code == 422
    assert response.json()["fields"] == ["email"]
