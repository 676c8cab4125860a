"""
Calendar event CRUD routes, mounted under ``/api/calendar``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from portal.db import Collection
from portal.dependencies import get_collection, get_current_user
from portal.errors import ApiError
from portal.schemas import (
    EventCreate,
    EventListResponse,
    EventResponse,
    EventUpdate,
    MessageResponse,
)

router = APIRouter(tags=["calendar"])

get_events = get_collection("events")


@router.get("", response_model=EventListResponse)
async def list_events(
    category: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=100),
    events: Collection = Depends(get_events),
):
    filter = {"category": category} if category else None
    items = await events.find(filter, sort=[("start_date", 1)], limit=limit)
    return EventListResponse(count=len(items), data=items)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(event_id: str, events: Collection = Depends(get_events)):
    item = await events.get(event_id)
    if item is None:
        raise ApiError(404, "Event not found")
    return EventResponse(data=item)


@router.post("", response_model=EventResponse, status_code=201)
async def create_event(
    payload: EventCreate,
    events: Collection = Depends(get_events),
    user: dict = Depends(get_current_user),
):
    now = datetime.now(timezone.utc)
    document = payload.model_dump()
    document["created_at"] = now
    document["updated_at"] = now
    item = await events.insert_one(document)
    return EventResponse(data=item)


@router.put("/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: str,
    payload: EventUpdate,
    events: Collection = Depends(get_events),
    user: dict = Depends(get_current_user),
):
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise ApiError(400, "No fields to update")

    current = await events.get(event_id)
    if current is None:
        raise ApiError(404, "Event not found")
    start = changes.get("start_date", current["start_date"])
    end = changes.get("end_date", current.get("end_date"))
    if end is not None and end < start:
        raise ApiError(400, "end_date must not be before start_date")

    changes["updated_at"] = datetime.now(timezone.utc)
    item = await events.update_one(event_id, changes)
    if item is None:
        raise ApiError(404, "Event not found")
    return EventResponse(data=item)


@router.delete("/{event_id}", response_model=MessageResponse)
async def delete_event(
    event_id: str,
    events: Collection = Depends(get_events),
    user: dict = Depends(get_current_user),
):
    if not await events.delete_one(event_id):
        raise ApiError(404, "Event not found")
    return MessageResponse(message="Event deleted")
