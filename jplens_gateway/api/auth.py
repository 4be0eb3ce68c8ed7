"""Optional HTTP Basic authentication gate.

Runs in front of every route except the exempt ones (``/health``). The gate is
configured once at start-up; route handlers never check credentials.
"""
from __future__ import annotations

import base64
import binascii
import logging
import secrets
from dataclasses import dataclass

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from jplens_gateway.core.config import Settings

logger = logging.getLogger(__name__)

REALM = "JPLens"


@dataclass(frozen=True)
class AuthConfig:
    enabled: bool
    username: str
    password: str = ""

    @classmethod
    def from_settings(cls, settings: Settings) -> AuthConfig:
        password = settings.basic_auth_password or ""
        return cls(enabled=bool(password), username=settings.basic_auth_username, password=password)


def parse_basic_credentials(header: str | None) -> tuple[str, str] | None:
    """Return (username, password) from an ``Authorization: Basic`` header."""
    if not header:
        return None
    scheme, _, encoded = header.partition(" ")
    if scheme.lower() != "basic" or not encoded:
        return None
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return username, password


class BasicAuthMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, config: AuthConfig, exempt_paths: tuple[str, ...] = ("/health",)) -> None:
        super().__init__(app)
        self.config = config
        self.exempt_paths = exempt_paths

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self.config.enabled or request.url.path in self.exempt_paths:
            return await call_next(request)

        credentials = parse_basic_credentials(request.headers.get("authorization"))
        if credentials is None or not self._matches(*credentials):
            logger.info(
                "auth_rejected",
                extra={"path": request.url.path, "credentials_present": credentials is not None},
            )
            return JSONResponse(
                status_code=401,
                content={"error": "Authentication required"},
                headers={"WWW-Authenticate": f'Basic realm="{REALM}"'},
            )
        return await call_next(request)

    def _matches(self, username: str, password: str) -> bool:
        user_ok = secrets.compare_digest(username.encode("utf-8"), self.config.username.encode("utf-8"))
        pass_ok = secrets.compare_digest(password.encode("utf-8"), self.config.password.encode("utf-8"))
        return user_ok and pass_ok
