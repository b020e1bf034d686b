"""
Request authentication for the HTTP front end.

Two modes:
- static: a shared token (AUTH_TOKEN) compared with the request token
- jwt: an HS256 token verified against JWT_SECRET, with AUTH_LEEWAY seconds of skew

The request token is read from `Authorization: Bearer <token>` (or a raw
Authorization value), the `X-Api-Key` header, or the `?auth=` query parameter.
Auth can be switched off entirely with --no-auth / --disable-auth.
"""

import hmac
import os
import re
from dataclasses import dataclass, field
from typing import Any

import jwt
from starlette.requests import Request
from starlette.responses import JSONResponse

from settings import env_number

CLI_DISABLE_FLAGS = ("--no-auth", "--disable-auth")

_BEARER = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


@dataclass(frozen=True)
class AuthConfig:
    mode: str | None = None
    token: str | None = None
    jwt_secret: str | None = None
    leeway: int = 0
    disabled: bool = False

    @classmethod
    def from_env(cls, disabled: bool = False) -> "AuthConfig":
        token = os.environ.get("AUTH_TOKEN") or None
        mode = os.environ.get("AUTH_TYPE") or ("static" if token else None)
        return cls(
            mode=mode.lower() if mode else None,
            token=token,
            jwt_secret=os.environ.get("JWT_SECRET") or None,
            leeway=env_number("AUTH_LEEWAY", 0),
            disabled=disabled,
        )

    @property
    def enabled(self) -> bool:
        if self.disabled:
            return False
        if self.mode == "static":
            return bool(self.token)
        if self.mode == "jwt":
            return bool(self.jwt_secret)
        return False

    def status(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "mode": self.mode,
            "tokenConfigured": bool(self.token),
            "disabledByCli": self.disabled,
        }


@dataclass(frozen=True)
class AuthResult:
    ok: bool
    message: str = ""
    payload: dict[str, Any] = field(default_factory=dict)


def _parse_bearer(header: str | None) -> str | None:
    if not header:
        return None
    match = _BEARER.match(header.strip())
    return match.group(1).strip() if match else header.strip()


def request_token(request: Request) -> str | None:
    """Token from Authorization, then X-Api-Key, then ?auth=."""
    return (
        _parse_bearer(request.headers.get("authorization"))
        or request.headers.get("x-api-key")
        or request.query_params.get("auth")
    )


def validate_request(request: Request, config: AuthConfig) -> AuthResult:
    if not config.enabled:
        return AuthResult(ok=True)
    token = request_token(request)
    if config.mode == "static":
        if token and hmac.compare_digest(token.encode(), config.token.encode()):
            return AuthResult(ok=True)
        return AuthResult(ok=False, message="Unauthorized")
    if not token:
        return AuthResult(ok=False, message="Missing token")
    try:
        payload = jwt.decode(
            token,
            config.jwt_secret,
            algorithms=["HS256"],
            leeway=config.leeway,
        )
    except jwt.InvalidTokenError as e:
        return AuthResult(ok=False, message=f"JWT validation failed: {e}")
    return AuthResult(ok=True, payload=payload)


def unauthorized(result: AuthResult) -> JSONResponse:
    return JSONResponse({"error": result.message or "unauthorized"}, status_code=401)
