"""
Dependency wiring for the FastAPI app.

The database handle and settings live on ``app.state`` so a test can build an
app around a substitute handle.
"""

from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from portal.config import DeploymentMode, Settings
from portal.db import Collection, ConnectionState, Database
from portal.errors import ApiError
from portal.security import decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_database(request: Request) -> Database:
    database = request.app.state.database
    if request.app.state.settings.mode is DeploymentMode.EXPORTED:
        # On-demand hosts may skip the lifespan; connect on first use.
        await database.connect()
    return database


def get_collection(name: str) -> Callable[..., Collection]:
    """
    Return a dependency resolving the named collection, or answering 503
    while the database is not connected.
    """

    def dependency(database: Database = Depends(get_database)) -> Collection:
        if database.state is not ConnectionState.CONNECTED:
            raise ApiError(503, "Database unavailable")
        return database.collection(name)

    return dependency


get_users = get_collection("users")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
    users: Collection = Depends(get_users),
) -> dict:
    token = credentials.credentials if credentials else ""
    payload = decode_access_token(token, settings.jwt_secret)
    user = await users.get(payload["sub"])
    if user is None:
        raise ApiError(401, "User no longer exists")
    return user
