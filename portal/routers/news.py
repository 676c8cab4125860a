"""
News CRUD routes, mounted under ``/api/news``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from portal.db import Collection
from portal.dependencies import get_collection, get_current_user
from portal.errors import ApiError
from portal.schemas import (
    MessageResponse,
    NewsCreate,
    NewsListResponse,
    NewsResponse,
    NewsUpdate,
)

router = APIRouter(tags=["news"])

get_news = get_collection("news")


@router.get("", response_model=NewsListResponse)
async def list_news(
    category: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    news: Collection = Depends(get_news),
):
    filter = {"category": category} if category else None
    items = await news.find(filter, sort=[("created_at", -1)], limit=limit)
    return NewsListResponse(count=len(items), data=items)


@router.get("/{news_id}", response_model=NewsResponse)
async def get_news_item(news_id: str, news: Collection = Depends(get_news)):
    item = await news.get(news_id)
    if item is None:
        raise ApiError(404, "News item not found")
    return NewsResponse(data=item)


@router.post("", response_model=NewsResponse, status_code=201)
async def create_news_item(
    payload: NewsCreate,
    news: Collection = Depends(get_news),
    user: dict = Depends(get_current_user),
):
    now = datetime.now(timezone.utc)
    document = payload.model_dump()
    if not document["author"]:
        document["author"] = user["username"]
    document["created_at"] = now
    document["updated_at"] = now
    item = await news.insert_one(document)
    return NewsResponse(data=item)


@router.put("/{news_id}", response_model=NewsResponse)
async def update_news_item(
    news_id: str,
    payload: NewsUpdate,
    news: Collection = Depends(get_news),
    user: dict = Depends(get_current_user),
):
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise ApiError(400, "No fields to update")
    changes["updated_at"] = datetime.now(timezone.utc)
    item = await news.update_one(news_id, changes)
    if item is None:
        raise ApiError(404, "News item not found")
    return NewsResponse(data=item)


@router.delete("/{news_id}", response_model=MessageResponse)
async def delete_news_item(
    news_id: str,
    news: Collection = Depends(get_news),
    user: dict = Depends(get_current_user),
):
    if not await news.delete_one(news_id):
        raise ApiError(404, "News item not found")
    return MessageResponse(message="News item deleted")
