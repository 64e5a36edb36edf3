"""Recipient-facing inbox and preference routes."""

from collections.abc import AsyncIterator
from contextlib import aclosing
from datetime import datetime
from uuid import UUID

import orjson
from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import StreamingResponse

from api.dependencies.auth import CurrentUser
from api.v1.dependencies import get_notification_service, get_unread_service
from api.v1.schemas.notification import (
    InboxItemResponse,
    InboxListResponse,
    MarkAllReadResponse,
    UnreadCountResponse,
)
from api.v1.schemas.preferences import PreferencesResponse, PreferencesUpdate
from core.rate_limit import limiter
from domain.services.notification_service import NotificationService
from domain.services.unread_service import UnreadCounterService

router = APIRouter(prefix="/users/me", tags=["notifications"])


@router.get(
    "/notifications",
    response_model=InboxListResponse,
    summary="List my notifications",
    responses={200: {"description": "Page of the inbox, newest first"}},
)
@limiter.limit("60/minute")  # type: ignore[untyped-decorator]
async def list_notifications(
    request: Request,
    user: CurrentUser,
    is_read: bool | None = Query(None, description="Filter by read status"),
    before: datetime | None = Query(None, description="Cursor: delivered_at of the last item seen"),
    limit: int = Query(20, ge=1, le=100, description="Page size"),
    service: UnreadCounterService = Depends(get_unread_service),
) -> InboxListResponse:
    items, unread_count = await service.list_inbox(
        user_id=user.id,
        is_read=is_read,
        limit=limit,
        before=before,
    )
    next_before = items[-1].delivered_at.isoformat() if len(items) == limit else None
    return InboxListResponse(
        data=[InboxItemResponse.model_validate(item) for item in items],
        meta={"unread_count": unread_count, "next_before": next_before},
    )


@router.get(
    "/notifications/unread-count",
    response_model=UnreadCountResponse,
    summary="Get my unread count",
)
@limiter.limit("120/minute")  # type: ignore[untyped-decorator]
async def get_unread_count(
    request: Request,
    user: CurrentUser,
    service: UnreadCounterService = Depends(get_unread_service),
) -> UnreadCountResponse:
    return UnreadCountResponse(count=await service.count(user.id))


async def _unread_count_events(service: UnreadCounterService, user_id: UUID) -> AsyncIterator[bytes]:
    # aclosing: the listener must be released as soon as the client goes away.
    async with aclosing(service.watch(user_id)) as counts:
        async for count in counts:
            yield b"event: unread_count\ndata: " + orjson.dumps({"count": count}) + b"\n\n"


@router.get(
    "/notifications/unread-count/stream",
    summary="Stream my unread count (server-sent events)",
    response_class=StreamingResponse,
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def stream_unread_count(
    request: Request,
    user: CurrentUser,
    service: UnreadCounterService = Depends(get_unread_service),
) -> StreamingResponse:
    """Sends the current count at once, then again on every change."""
    return StreamingResponse(
        _unread_count_events(service, user.id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.patch(
    "/notifications/{event_id}/read",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Mark one notification read",
    responses={404: {"description": "Notification not found"}},
)
@limiter.limit("60/minute")  # type: ignore[untyped-decorator]
async def mark_read(
    request: Request,
    event_id: UUID,
    user: CurrentUser,
    service: UnreadCounterService = Depends(get_unread_service),
) -> None:
    await service.mark_read(event_id, user.id)


@router.post(
    "/notifications/mark-all-read",
    response_model=MarkAllReadResponse,
    summary="Mark all my notifications read",
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def mark_all_read(
    request: Request,
    user: CurrentUser,
    service: UnreadCounterService = Depends(get_unread_service),
) -> MarkAllReadResponse:
    """Only items delivered before the request are marked."""
    return MarkAllReadResponse(count=await service.mark_all_read(user.id))


@router.get(
    "/notification-preferences",
    response_model=PreferencesResponse,
    summary="Get my notification preferences",
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def get_preferences(
    request: Request,
    user: CurrentUser,
    service: NotificationService = Depends(get_notification_service),
) -> PreferencesResponse:
    prefs = await service.load_preferences(user.id)
    return PreferencesResponse.model_validate(prefs)


@router.put(
    "/notification-preferences",
    response_model=PreferencesResponse,
    summary="Update my notification preferences",
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def update_preferences(
    request: Request,
    data: PreferencesUpdate,
    user: CurrentUser,
    service: NotificationService = Depends(get_notification_service),
) -> PreferencesResponse:
    """Fields left out of the body keep their current value."""
    prefs = await service.update_preferences(user.id, **data.model_dump(exclude_none=True))
    return PreferencesResponse.model_validate(prefs)
