import jwt
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from crimereport.infra import auth
from crimereport.infra import jwt as jwt_helper
from crimereport.settings import settings


def _creds(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def test_verify_access_jwt_reads_subject_and_roles():
    token = jwt_helper.encode_access({"sub": "user-1", "roles": ["Officer", "member"], "name": "Dana"})
    user = auth.verify_access_jwt(token)
    assert user.id == "user-1"
    assert user.roles == ("officer", "member")
    assert user.display_name == "Dana"
    assert user.is_officer


def test_verify_access_jwt_accepts_legacy_claims():
    token = jwt_helper.encode_access({"userId": "legacy-7", "role": "admin, reviewer"})
    user = auth.verify_access_jwt(token)
    assert user.id == "legacy-7"
    assert user.roles == ("admin", "reviewer")
    assert user.is_officer


def test_verify_access_jwt_rejects_foreign_signature():
    token = jwt.encode(
        {"sub": "u1", "iss": settings.jwt_issuer, "aud": settings.jwt_audience, "iat": 1, "exp": 4102444800},
        "another-secret-that-is-long-enough-for-hs256",
        algorithm="HS256",
    )
    with pytest.raises(auth.InvalidCredentials):
        auth.verify_access_jwt(token)


def test_verify_access_jwt_rejects_expired_token():
    token = jwt_helper.encode_access({"sub": "u1"}, ttl_seconds=-60)
    with pytest.raises(auth.InvalidCredentials):
        auth.verify_access_jwt(token)


def test_officer_roles_follow_settings(monkeypatch):
    monkeypatch.setattr(settings, "officer_roles", ("dispatcher",))
    assert auth.AuthenticatedUser(id="u1", roles=("dispatcher",)).is_officer
    assert not auth.AuthenticatedUser(id="u2", roles=("officer",)).is_officer


@pytest.mark.asyncio
async def test_optional_user_treats_bad_token_as_anonymous():
    assert await auth.get_optional_user(None) is None
    assert await auth.get_optional_user(_creds("not-a-jwt")) is None
    token = jwt_helper.encode_access({"sub": "u1"})
    user = await auth.get_optional_user(_creds(token))
    assert user is not None and user.id == "u1"


@pytest.mark.asyncio
async def test_current_user_requires_valid_token():
    with pytest.raises(HTTPException) as exc:
        await auth.get_current_user(None)
    assert exc.value.status_code == 401
    assert exc.value.detail == "authentication_required"

    with pytest.raises(HTTPException) as exc:
        await auth.get_current_user(_creds("garbage"))
    assert exc.value.status_code == 401
    assert exc.value.detail == "invalid_token"


@pytest.mark.asyncio
async def test_officer_user_requires_role_claim():
    with pytest.raises(HTTPException) as exc:
        await auth.get_officer_user(auth.AuthenticatedUser(id="u1"))
    assert exc.value.status_code == 403
    assert exc.value.detail == "insufficient_role"
    officer = auth.AuthenticatedUser(id="o1", roles=("officer",))
    assert await auth.get_officer_user(officer) is officer
