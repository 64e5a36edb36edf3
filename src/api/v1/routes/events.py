"""Producer-facing notification event routes."""

from collections import Counter
from uuid import UUID, uuid4

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, Response, status

from api.dependencies.auth import ServiceKey
from api.v1.dependencies import get_notification_service
from api.v1.schemas.notification import (
    DispatchResultResponse,
    NotificationEventCreate,
    NotificationEventResponse,
    ProcessBatchResponse,
)
from core.rate_limit import limiter
from domain.entities.notification import NotificationEvent
from domain.services.notification_service import NotificationService

router = APIRouter(
    prefix="/notification-events",
    tags=["notification-events"],
    dependencies=[ServiceKey],
)


@router.post(
    "",
    response_model=NotificationEventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Raise a notification event",
    responses={
        200: {"description": "Event ID already seen; stored event returned"},
        201: {"description": "Event stored as pending"},
        403: {"description": "Invalid service key"},
    },
)
@limiter.limit("600/minute")  # type: ignore[untyped-decorator]
async def create_event(
    request: Request,
    response: Response,
    data: NotificationEventCreate,
    background_tasks: BackgroundTasks,
    process_now: bool = Query(True, description="Dispatch right after storing"),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationEventResponse:
    """Store an event. Redelivering the same ID is a no-op."""
    event = NotificationEvent(
        id=data.id or uuid4(),
        recipient_id=data.recipient_id,
        type=data.type,
        title=data.title,
        body=data.body,
        link=data.link,
        metadata=data.metadata,
    )
    stored, created = await service.enqueue(event)
    if not created:
        response.status_code = status.HTTP_200_OK
    elif process_now:
        background_tasks.add_task(service.route_and_dispatch, stored.id)
    return NotificationEventResponse.model_validate(stored)


@router.post(
    "/process",
    response_model=ProcessBatchResponse,
    summary="Process one batch of pending events",
)
@limiter.limit("60/minute")  # type: ignore[untyped-decorator]
async def process_pending(
    request: Request,
    limit: int | None = Query(None, ge=1, le=500, description="Batch size"),
    service: NotificationService = Depends(get_notification_service),
) -> ProcessBatchResponse:
    """Route and dispatch pending events, oldest first."""
    results = await service.process_pending(limit)
    outcomes = Counter(result.outcome.value for result in results)
    return ProcessBatchResponse(
        data=[DispatchResultResponse.model_validate(r) for r in results],
        meta={"processed": len(results), "outcomes": dict(outcomes)},
    )


@router.get(
    "/{event_id}",
    response_model=NotificationEventResponse,
    summary="Get event status",
    responses={404: {"description": "Event not found"}},
)
@limiter.limit("600/minute")  # type: ignore[untyped-decorator]
async def get_event(
    request: Request,
    event_id: UUID,
    service: NotificationService = Depends(get_notification_service),
) -> NotificationEventResponse:
    event = await service.get_event(event_id)
    return NotificationEventResponse.model_validate(event)


@router.post(
    "/{event_id}/dispatch",
    response_model=DispatchResultResponse,
    summary="Route and dispatch one event",
    responses={404: {"description": "Event not found"}},
)
@limiter.limit("600/minute")  # type: ignore[untyped-decorator]
async def dispatch_event(
    request: Request,
    event_id: UUID,
    service: NotificationService = Depends(get_notification_service),
) -> DispatchResultResponse:
    """Process one event now. Already processed events report ``duplicate``."""
    result = await service.route_and_dispatch(event_id)
    return DispatchResultResponse.model_validate(result)
