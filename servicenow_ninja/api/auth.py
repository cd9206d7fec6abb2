"""Bearer-token checks for the crawler and cron trigger routes."""

import secrets
from typing import Optional

from pydantic import SecretStr
from starlette.requests import Request

BEARER_PREFIX = "Bearer "


def bearer_token(request: Request) -> Optional[str]:
    """Token from an ``Authorization: Bearer <token>`` header, if present."""
    header = request.headers.get("authorization")
    if not header or not header.startswith(BEARER_PREFIX):
        return None
    return header[len(BEARER_PREFIX) :]


def has_valid_bearer(request: Request, expected: Optional[SecretStr]) -> bool:
    """Compare the request's bearer token to ``expected`` in constant time.

    An unconfigured secret rejects every request.
    """
    if expected is None or not expected.get_secret_value():
        return False
    token = bearer_token(request)
    if token is None:
        return False
    return secrets.compare_digest(token.encode("utf-8"), expected.get_secret_value().encode("utf-8"))
