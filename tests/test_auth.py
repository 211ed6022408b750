from datetime import timedelta

import httpx
import jwt
import pytest
from fastapi import FastAPI, HTTPException

from app.core import config
from app.core.security_context import authenticated_as, current_identity, get_authentication
from app.features.users.auth import AuthenticationMiddleware, username_from_authorization, verify_jwt_token


def test_valid_token(bearer_token):
    payload = verify_jwt_token(bearer_token("jkim"))
    assert payload["sub"] == "jkim"


def test_expired_token(bearer_token):
    with pytest.raises(HTTPException) as excinfo:
        verify_jwt_token(bearer_token("jkim", expires_in=timedelta(minutes=-5)))
    assert excinfo.value.status_code == 401
    assert excinfo.value.detail == "Token has expired"


def test_foreign_signature(bearer_token):
    token = bearer_token("jkim", secret="another-secret-that-is-long-enough-0123456789")
    with pytest.raises(HTTPException) as excinfo:
        verify_jwt_token(token)
    assert excinfo.value.status_code == 401


def test_token_without_subject():
    token = jwt.encode({"name": "jkim"}, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)
    with pytest.raises(HTTPException):
        verify_jwt_token(token)


def test_missing_secret_refuses_everything(monkeypatch, bearer_token):
    token = bearer_token("jkim")
    monkeypatch.setattr(config, "JWT_SECRET", None)
    with pytest.raises(HTTPException) as excinfo:
        verify_jwt_token(token)
    assert excinfo.value.status_code == 401


@pytest.mark.parametrize(
    "header",
    [None, "", "Basic amtpbTpzZWNyZXQ=", "Bearer", "Bearer garbage"],
)
def test_unusable_headers_are_anonymous(header):
    assert username_from_authorization(header) is None


def test_bearer_header(bearer_token):
    assert username_from_authorization(f"Bearer {bearer_token('jkim')}") == "jkim"
    assert username_from_authorization(f"bearer {bearer_token('jkim')}") == "jkim"


def test_security_context():
    assert current_identity() is None
    with authenticated_as("jkim") as auth:
        assert auth.authenticated
        assert current_identity() == "jkim"
        with authenticated_as(None):
            assert current_identity() is None
        assert get_authentication().username == "jkim"
    assert current_identity() is None


@pytest.mark.asyncio
async def test_middleware_sets_identity_per_request(bearer_token):
    app = FastAPI()
    app.add_middleware(AuthenticationMiddleware)

    @app.get("/whoami")
    async def whoami():
        return {"username": current_identity()}

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        signed_in = await ac.get("/whoami", headers={"Authorization": f"Bearer {bearer_token('jkim')}"})
        anonymous = await ac.get("/whoami")

    assert signed_in.json() == {"username": "jkim"}
    assert anonymous.json() == {"username": None}
    assert current_identity() is None
