"""Tests for HTTP request authentication."""

import time

import jwt
import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from auth import AuthConfig, unauthorized, validate_request

SECRET = "test-signing-secret-with-enough-bytes"


def client_for(config: AuthConfig) -> TestClient:
    async def protected(request: Request):
        result = validate_request(request, config)
        if not result.ok:
            return unauthorized(result)
        return JSONResponse({"ok": True, "payload": result.payload})

    return TestClient(Starlette(routes=[Route("/p", protected)]))


@pytest.fixture
def static_client():
    return client_for(AuthConfig(mode="static", token="secret"))


def test_static_bearer_accepted(static_client):
    """A matching bearer token passes."""
    response = static_client.get("/p", headers={"Authorization": "Bearer secret"})
    assert response.status_code == 200


def test_static_wrong_token_rejected(static_client):
    """A wrong token is a 401."""
    response = static_client.get("/p", headers={"Authorization": "Bearer wrong"})
    assert response.status_code == 401
    assert "error" in response.json()


def test_static_missing_token_rejected(static_client):
    """No token is a 401 Unauthorized."""
    response = static_client.get("/p")
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_static_alternate_token_locations(static_client):
    """X-Api-Key, ?auth= and a raw Authorization value also work."""
    assert static_client.get("/p", headers={"X-Api-Key": "secret"}).status_code == 200
    assert static_client.get("/p?auth=secret").status_code == 200
    assert static_client.get("/p", headers={"Authorization": "secret"}).status_code == 200


def test_disabled_auth_allows_everything():
    """--no-auth lets every request through."""
    client = client_for(AuthConfig(mode="static", token="secret", disabled=True))
    assert client.get("/p").status_code == 200


def test_no_mode_means_no_auth():
    """Without a mode auth is off."""
    assert not AuthConfig().enabled
    assert client_for(AuthConfig()).get("/p").status_code == 200


def test_from_env_static_implied_by_token(monkeypatch):
    """AUTH_TOKEN alone selects static mode."""
    monkeypatch.setenv("AUTH_TOKEN", "t")
    config = AuthConfig.from_env()
    assert config.mode == "static"
    assert config.enabled
    assert not AuthConfig.from_env(disabled=True).enabled


def test_from_env_jwt(monkeypatch):
    """AUTH_TYPE=jwt reads the secret and leeway."""
    monkeypatch.setenv("AUTH_TYPE", "jwt")
    monkeypatch.setenv("JWT_SECRET", SECRET)
    monkeypatch.setenv("AUTH_LEEWAY", "30")
    config = AuthConfig.from_env()
    assert config.enabled
    assert config.leeway == 30


def test_jwt_without_secret_is_disabled():
    """JWT mode without a secret is off."""
    assert not AuthConfig(mode="jwt").enabled


def test_jwt_valid_token():
    """A correctly signed token passes and exposes its claims."""
    client = client_for(AuthConfig(mode="jwt", jwt_secret=SECRET))
    token = jwt.encode({"sub": "alice"}, SECRET, algorithm="HS256")
    response = client.get("/p", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.json()["payload"]["sub"] == "alice"


def test_jwt_bad_signature():
    """A token signed with another secret is rejected."""
    client = client_for(AuthConfig(mode="jwt", jwt_secret=SECRET))
    token = jwt.encode({"sub": "alice"}, "a-different-signing-secret-value", algorithm="HS256")
    response = client.get("/p", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["error"].startswith("JWT validation failed")


def test_jwt_missing_token():
    """JWT mode without a token reports Missing token."""
    response = client_for(AuthConfig(mode="jwt", jwt_secret=SECRET)).get("/p")
    assert response.status_code == 401
    assert response.json() == {"error": "Missing token"}


def test_jwt_leeway_tolerates_recent_expiry():
    """Leeway accepts a token that just expired."""
    token = jwt.encode({"exp": int(time.time()) - 10}, SECRET, algorithm="HS256")
    strict = client_for(AuthConfig(mode="jwt", jwt_secret=SECRET))
    lenient = client_for(AuthConfig(mode="jwt", jwt_secret=SECRET, leeway=60))
    assert strict.get("/p", headers={"Authorization": f"Bearer {token}"}).status_code == 401
    assert lenient.get("/p", headers={"Authorization": f"Bearer {token}"}).status_code == 200


def test_from_env_malformed_leeway_defaults_to_zero(monkeypatch):
    """A non-numeric AUTH_LEEWAY does not stop startup."""
    monkeypatch.setenv("AUTH_TYPE", "jwt")
    monkeypatch.setenv("JWT_SECRET", SECRET)
    monkeypatch.setenv("AUTH_LEEWAY", "30s")
    config = AuthConfig.from_env()
    assert config.enabled
    assert config.leeway == 0
