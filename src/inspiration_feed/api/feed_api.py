"""
FastAPI service for the inspiration feed.
Exposes REST endpoints for feed pages, single items and engagement toggles,
plus a WebSocket that streams live item changes.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from ..models import (
    EngagementKind,
    EngagementStatus,
    FeedFilters,
    FeedItem,
    FeedRequest,
    FeedSort,
)
from ..result import Result
from ..service import InspirationFeedService
from ..supabase_client.feed_store import FeedStore

LOGGER = logging.getLogger(__name__)


# Pydantic models for request/response
class FeedItemResponse(FeedItem):
    is_collected: bool = False
    is_liked: bool = False
    is_following: bool = False


class FeedPageResponse(BaseModel):
    items: List[FeedItemResponse]
    has_more: bool
    next_page: Optional[int] = None
    total: Optional[int] = None
    timestamp: str


class MembershipUpdate(BaseModel):
    user_id: str = Field(..., description="User identifier")
    active: bool = Field(True, description="Desired membership state")


class EngagementResponse(BaseModel):
    item_id: str
    user_id: str
    kind: EngagementKind
    active: bool


class FollowResponse(BaseModel):
    provider_id: str
    user_id: str
    active: bool


class HealthResponse(BaseModel):
    status: str
    timestamp: str


# Initialize FastAPI app
app = FastAPI(
    title="Inspiration Feed API",
    description="Ranked, filterable and personalized inspiration feed",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_feed_service: Optional[InspirationFeedService] = None
_feed_service_lock = asyncio.Lock()


async def get_feed_service() -> InspirationFeedService:
    """Get or create the process feed service bound to Supabase."""
    global _feed_service
    if _feed_service is not None:
        return _feed_service
    async with _feed_service_lock:
        if _feed_service is None:
            store = await FeedStore.connect()
            _feed_service = InspirationFeedService(store)
    return _feed_service


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _unwrap(result: Result):
    if result.is_failure:
        raise HTTPException(status_code=502, detail=result.error_message)
    return result.unwrap()


def _with_status(item: FeedItem, status: EngagementStatus) -> FeedItemResponse:
    return FeedItemResponse(
        **item.model_dump(),
        is_collected=item.id in status.collected,
        is_liked=item.id in status.liked,
        is_following=item.provider_id in status.following_providers,
    )


@app.get("/", response_model=Dict[str, str])
async def root():
    """Root endpoint."""
    return {
        "message": "Inspiration Feed API",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse(status="healthy", timestamp=_now())


@app.get("/feed", response_model=FeedPageResponse)
async def get_feed(
    page: int = Query(0, ge=0),
    sort: FeedSort = Query(FeedSort.NEWEST),
    user_id: Optional[str] = Query(None, description="Requesting user, required for engagement flags"),
    project_type: Optional[str] = Query(None, alias="type"),
    location: Optional[str] = Query(None),
    price_min: Optional[float] = Query(None),
    price_max: Optional[float] = Query(None),
    rating_min: Optional[float] = Query(None),
    tag: Optional[str] = Query(None),
    service: InspirationFeedService = Depends(get_feed_service),
):
    """
    Get one page of the feed.

    Pinned items lead in every sort. ``personalized`` re-ranks an oversampled
    window by the user's collect history.
    """
    filters = FeedFilters(
        project_type=project_type,
        location=location,
        price_min=price_min,
        price_max=price_max,
        rating_min=rating_min,
        tag=tag,
    )
    request = FeedRequest(filters=filters, page=page, sort=sort, user_id=user_id)
    feed_page = _unwrap(await service.fetch_feed(request))
    status = _unwrap(await service.resolve_status(feed_page.items, user_id))

    return FeedPageResponse(
        items=[_with_status(item, status) for item in feed_page.items],
        has_more=feed_page.has_more,
        next_page=feed_page.next_page,
        total=feed_page.total,
        timestamp=_now(),
    )


@app.get("/feed/{item_id}", response_model=FeedItemResponse)
async def get_feed_item(
    item_id: str,
    user_id: Optional[str] = Query(None),
    service: InspirationFeedService = Depends(get_feed_service),
):
    item = _unwrap(await service.fetch_feed_item_by_id(item_id))
    if item is None:
        raise HTTPException(status_code=404, detail=f"Item '{item_id}' not found")
    status = _unwrap(await service.resolve_status([item], user_id))
    return _with_status(item, status)


@app.put("/feed/{item_id}/engagement/{kind}", response_model=EngagementResponse)
async def set_engagement(
    item_id: str,
    kind: EngagementKind,
    update: MembershipUpdate,
    service: InspirationFeedService = Depends(get_feed_service),
):
    """Collect/uncollect or like/unlike an item. Repeating a call is harmless."""
    active = _unwrap(await service.set_engagement(item_id, update.user_id, kind, update.active))
    return EngagementResponse(item_id=item_id, user_id=update.user_id, kind=kind, active=active)


@app.put("/providers/{provider_id}/follow", response_model=FollowResponse)
async def set_follow(
    provider_id: str,
    update: MembershipUpdate,
    service: InspirationFeedService = Depends(get_feed_service),
):
    active = _unwrap(await service.set_follow(provider_id, update.user_id, update.active))
    return FollowResponse(provider_id=provider_id, user_id=update.user_id, active=active)


@app.websocket("/feed/changes")
async def feed_changes(
    websocket: WebSocket,
    service: InspirationFeedService = Depends(get_feed_service),
):
    """Stream reconciled feed rows as portfolios are inserted or updated."""
    await websocket.accept()

    async def push(event: str, item: FeedItem) -> None:
        await websocket.send_json({"event": event, "item": item.model_dump(mode="json")})

    teardown = await service.subscribe_to_feed_changes(
        on_insert=lambda item: push("insert", item),
        on_update=lambda item: push("update", item),
    )
    try:
        await websocket.send_json({"event": "subscribed"})
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        LOGGER.debug("Feed change listener disconnected")
    finally:
        await teardown()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
