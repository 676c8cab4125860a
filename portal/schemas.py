"""
Pydantic schemas for the school portal API.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class HealthResponse(BaseModel):
    status: Literal["healthy", "degraded"]
    message: str
    mongodb: str
    timestamp: str


class DebugResponse(BaseModel):
    environment: str
    mongodb_uri_set: bool
    jwt_secret_set: bool
    mongodb_state: int
    deployment_mode: str
    vercel: bool
    timestamp: str


class MessageResponse(BaseModel):
    success: bool = True
    message: str


# News


class NewsCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    author: Optional[str] = None
    category: str = "general"
    image_url: Optional[str] = None
    published: bool = True


class NewsUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    author: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    published: Optional[bool] = None


class NewsItem(NewsCreate):
    id: str
    created_at: datetime
    updated_at: datetime


class NewsResponse(BaseModel):
    success: bool = True
    data: NewsItem


class NewsListResponse(BaseModel):
    success: bool = True
    count: int
    data: list[NewsItem]


# Calendar


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    location: Optional[str] = None
    category: str = "general"
    all_day: bool = False

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class EventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location: Optional[str] = None
    category: Optional[str] = None
    all_day: Optional[bool] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class EventItem(EventCreate):
    id: str
    created_at: datetime
    updated_at: datetime


class EventResponse(BaseModel):
    success: bool = True
    data: EventItem


class EventListResponse(BaseModel):
    success: bool = True
    count: int
    data: list[EventItem]


# Auth


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=128)


class LoginRequest(BaseModel):
    username: str
    password: str


class UserOut(BaseModel):
    id: str
    username: str
    email: str
    created_at: datetime


class AuthResponse(BaseModel):
    success: bool = True
    message: str
    token: str
    user: UserOut


class UserResponse(BaseModel):
    success: bool = True
    user: UserOut
