"""
Authentication routes, mounted under ``/api/auth``.

Tokens are signed with ``JWT_SECRET``; every route answers 503 while it is
unset.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from portal.config import Settings
from portal.db import Collection
from portal.dependencies import get_current_user, get_settings, get_users
from portal.errors import ApiError
from portal.schemas import AuthResponse, LoginRequest, RegisterRequest, UserResponse
from portal.security import create_access_token, hash_password, verify_password

router = APIRouter(tags=["auth"])


def _issue_token(user: dict, settings: Settings) -> str:
    return create_access_token(
        user["id"], settings.jwt_secret, settings.jwt_expires_hours
    )


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    payload: RegisterRequest,
    users: Collection = Depends(get_users),
    settings: Settings = Depends(get_settings),
):
    if not settings.jwt_secret:
        raise ApiError(503, "Authentication is not configured")

    email = payload.email.lower()
    if await users.find_one({"username": payload.username}) or await users.find_one(
        {"email": email}
    ):
        raise ApiError(400, "User already exists")

    user = await users.insert_one(
        {
            "username": payload.username,
            "email": email,
            "password_hash": hash_password(payload.password),
            "created_at": datetime.now(timezone.utc),
        }
    )
    return AuthResponse(
        message="User registered successfully",
        token=_issue_token(user, settings),
        user=user,
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    users: Collection = Depends(get_users),
    settings: Settings = Depends(get_settings),
):
    if not settings.jwt_secret:
        raise ApiError(503, "Authentication is not configured")

    user = await users.find_one({"username": payload.username})
    if user is None or not verify_password(payload.password, user["password_hash"]):
        raise ApiError(401, "Invalid credentials")
    return AuthResponse(
        message="Login successful",
        token=_issue_token(user, settings),
        user=user,
    )


@router.get("/me", response_model=UserResponse)
async def me(user: dict = Depends(get_current_user)):
    return UserResponse(user=user)
