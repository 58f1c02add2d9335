"""Bearer-token validation on the protected routes."""

from __future__ import annotations

import jwt
from fastapi.testclient import TestClient

from classroom.services import token_service
from tests.conftest import World


def _get_me(client: TestClient, token: str):
    return client.get("/v1/progress/me", headers={"Authorization": f"Bearer {token}"})


def test_missing_token_is_unauthorized(client: TestClient) -> None:
    resp = client.get("/v1/progress/me")
    assert resp.status_code == 401


def test_valid_token_accepted(client: TestClient, world: World) -> None:
    token = token_service.create_access_token(sub=str(world.student.id))
    assert _get_me(client, token).status_code == 200


def test_expired_token_rejected(client: TestClient, world: World) -> None:
    token = token_service.create_access_token(sub=str(world.student.id), ttl_minutes=-1)
    resp = _get_me(client, token)
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token expired"


def test_wrong_secret_rejected(client: TestClient, world: World) -> None:
    token = token_service.create_access_token(
        sub=str(world.student.id), secret="not-the-shared-secret"
    )
    assert _get_me(client, token).status_code == 401


def test_wrong_audience_rejected(client: TestClient, world: World) -> None:
    token = jwt.encode(
        {
            "sub": str(world.student.id),
            "iss": token_service.ISSUER,
            "aud": "other-service",
            "exp": 2**31,
            "iat": 0,
        },
        token_service.SETTINGS.jwt_secret,
        algorithm="HS256",
    )
    assert _get_me(client, token).status_code == 401


def test_garbage_token_rejected(client: TestClient) -> None:
    assert _get_me(client, "not.a.jwt").status_code == 401


def test_token_roles_default_to_student() -> None:
    claims = token_service.decode_access_token(
        token_service.create_access_token(sub="someone")
    )
    assert claims["roles"] == ["student"]
    assert claims["aud"] == token_service.AUDIENCE
