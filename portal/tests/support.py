"""Shared builders for the test suite."""

from __future__ import annotations

from fastapi.testclient import TestClient

from portal.app import create_app
from portal.config import PROJECT_ROOT, DeploymentMode, Settings
from portal.db import ConnectionState, InMemoryDatabase

JWT_SECRET = "test-signing-secret-0123456789abcdef"


def make_settings(**overrides) -> Settings:
    values = {
        "node_env": "production",
        "deployment_mode": DeploymentMode.LISTENING,
        "vercel": False,
        "mongodb_uri": None,
        "jwt_secret": JWT_SECRET,
        "project_root": PROJECT_ROOT,
        "use_in_memory_backends": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_client(
    settings: Settings | None = None,
    database: InMemoryDatabase | None = None,
) -> tuple[TestClient, InMemoryDatabase]:
    """Build a client around a connected in-memory database by default."""
    if database is None:
        database = InMemoryDatabase(state=ConnectionState.CONNECTED)
    app = create_app(settings or make_settings(), database)
    return TestClient(app, raise_server_exceptions=False), database


def register(client: TestClient, username: str = "principal") -> str:
    response = client.post(
        "/api/auth/register",
        json={
            "username": username,
            "email": f"{username}@school.example",
            "password": "correct-horse",
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["token"]


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
