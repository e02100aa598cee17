"""HTTP Basic gate for the lab-only path prefix.

A single shared username/password guards everything under the prefix.
No sessions, expiry or rate limiting. With no credentials configured the
gate rejects every request.
"""
from __future__ import annotations

import base64
import binascii
import logging
import secrets
from typing import Optional, Tuple

from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)


def parse_basic_auth(header: str) -> Optional[Tuple[str, str]]:
    """Decode an ``Authorization: Basic ...`` header into (user, password)."""
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


def credentials_match(header: Optional[str], username: str, password: str) -> bool:
    if not header or not (username and password):
        return False
    creds = parse_basic_auth(header)
    if creds is None:
        return False
    # Evaluate both comparisons so timing does not reveal which one failed
    user_ok = secrets.compare_digest(creds[0].encode(), username.encode())
    pass_ok = secrets.compare_digest(creds[1].encode(), password.encode())
    return user_ok and pass_ok


class BasicAuthGate:
    """ASGI middleware: challenge HTTP requests under *prefix*."""

    def __init__(self, app: ASGIApp, prefix: str, username: str, password: str, realm: str = "studysync"):
        self.app = app
        self.prefix = prefix.rstrip("/")
        self.username = username
        self.password = password
        self.realm = realm
        if not (username and password):
            logger.warning(f"SERVER_AUTH_USER/SERVER_AUTH_PASS not set - {self.prefix} is locked")

    def guards(self, path: str) -> bool:
        return path == self.prefix or path.startswith(self.prefix + "/")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self.guards(scope["path"]):
            await self.app(scope, receive, send)
            return

        header = None
        for key, value in scope.get("headers", []):
            if key == b"authorization":
                header = value.decode("latin-1")
                break

        if credentials_match(header, self.username, self.password):
            await self.app(scope, receive, send)
            return

        logger.info(f"Rejected unauthenticated request for {scope['path']}")
        response = PlainTextResponse(
            "Unauthorized",
            status_code=401,
            headers={"WWW-Authenticate": f'Basic realm="{self.realm}"'},
        )
        await response(scope, receive, send)
