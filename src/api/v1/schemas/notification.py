"""Pydantic schemas for notification events and the in-app inbox."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from domain.entities.notification import EventStatus, NotificationEventType
from domain.services.delivery_dispatcher import DispatchOutcome


class NotificationEventCreate(BaseModel):
    """Event raised by a producer.

    ``id`` is the deduplication key: producers resending the same event
    must reuse it.
    """

    id: UUID | None = None
    recipient_id: UUID
    type: NotificationEventType
    title: str = Field(..., min_length=1, max_length=255)
    body: str = Field("", max_length=2000)
    link: str | None = Field(None, max_length=500)
    metadata: dict[str, Any] = Field(default_factory=dict)


class NotificationEventResponse(BaseModel):
    """Stored event with its processing state."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    recipient_id: UUID
    type: NotificationEventType
    title: str
    body: str
    link: str | None = None
    metadata: dict[str, Any]
    status: EventStatus
    attempts: int
    error_message: str | None = None
    created_at: datetime
    processed_at: datetime | None = None


class PushFanoutResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    attempted: int = 0
    delivered: int = 0
    failed: int = 0
    pruned: int = 0


class DispatchResultResponse(BaseModel):
    """What processing one event did."""

    model_config = ConfigDict(from_attributes=True)

    event_id: UUID
    outcome: DispatchOutcome
    status: EventStatus
    reason: str | None = None
    push: PushFanoutResponse


class ProcessBatchResponse(BaseModel):
    """Result of processing one batch of pending events."""

    data: list[DispatchResultResponse]
    meta: dict[str, Any] = Field(default_factory=dict)


class InboxItemResponse(BaseModel):
    """Single in-app notification in the panel."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_id: UUID
    type: NotificationEventType
    title: str
    body: str
    link: str | None = None
    metadata: dict[str, Any]
    is_read: bool
    read_at: datetime | None = None
    delivered_at: datetime


class InboxListResponse(BaseModel):
    """Page of the inbox, newest first."""

    data: list[InboxItemResponse]
    meta: dict[str, Any] = Field(default_factory=dict)


class UnreadCountResponse(BaseModel):
    """Unread notification count response."""

    count: int


class MarkAllReadResponse(BaseModel):
    """Response for mark-all-read operation."""

    count: int
