"""Password hashing and bearer token helpers for the auth router."""

from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt

from portal.errors import ApiError

PBKDF2_ITERATIONS = 260_000
TOKEN_ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    """Return ``pbkdf2_sha256$<iterations>$<salt>$<digest>`` for ``password``."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS
    )
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt, expected = encoded.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), int(iterations)
    )
    return hmac.compare_digest(digest.hex(), expected)


def _require_secret(secret: str | None) -> str:
    if not secret:
        raise ApiError(503, "Authentication is not configured")
    return secret


def create_access_token(subject: str, secret: str | None, expires_hours: int) -> str:
    secret = _require_secret(secret)
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "iat": now,
        "exp": now + timedelta(hours=expires_hours),
    }
    return jwt.encode(payload, secret, algorithm=TOKEN_ALGORITHM)


def decode_access_token(token: str, secret: str | None) -> Dict[str, Any]:
    """Validate and decode a bearer token.

    Raises
    ------
    ApiError
        503 if no signing secret is configured, 401 if the token is missing,
        invalid or expired.
    """

    secret = _require_secret(secret)
    if not token:
        raise ApiError(401, "Authorization token missing")

    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[TOKEN_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise ApiError(401, "Authorization token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise ApiError(401, "Authorization token is invalid") from exc
