"""JWT bearer token validation (HS256).

Tokens are issued by the platform's auth service; this service only
verifies them.  ``create_access_token`` exists for tests and the demo
seed script, which need tokens signed with the same shared secret.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt

from classroom.core.config import SETTINGS

ALGORITHM = "HS256"
ISSUER = "auth-service"
AUDIENCE = "classroom-service"
ACCESS_TOKEN_TTL_MIN = 15


def create_access_token(
    *,
    sub: str,
    roles: list[str] | None = None,
    secret: str | None = None,
    ttl_minutes: int = ACCESS_TOKEN_TTL_MIN,
) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ttl_minutes),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "roles": roles or ["student"],
    }
    return jwt.encode(payload, secret or SETTINGS.jwt_secret, algorithm=ALGORITHM)


def decode_access_token(token: str, *, secret: str | None = None) -> dict:
    """Verify signature and claims, return the payload.

    Pins the algorithm to HS256 to prevent alg:none and alg-switching.
    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        secret or SETTINGS.jwt_secret,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat"]},
    )
