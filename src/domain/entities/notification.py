"""Notification event and in-app inbox entities."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID, uuid4

import orjson

DEFAULT_PUSH_TITLE = "SpireTrack"
DEFAULT_PUSH_URL = "/app"


class NotificationEventType(StrEnum):
    """Every kind of event producers may raise.

    Adding a member requires a matching row in
    ``domain.entities.preferences.CATEGORY_BY_EVENT_TYPE``.
    """

    MENTION = "mention"
    TEAM_INVITE = "team_invite"
    REPORT_READY = "report_ready"
    REMINDER = "reminder"
    SYSTEM = "system"
    CHAT_MESSAGE = "chat_message"
    CHAT_MENTION = "chat_mention"
    TEAM_ACTIVITY = "team_activity"
    TASK_UPDATE = "task_update"
    SYSTEM_ALERT = "system_alert"
    ACCOUNT_SECURITY = "account_security"


class EventStatus(StrEnum):
    """Processing status of a notification event."""

    PENDING = "pending"
    SENT = "sent"
    SUPPRESSED = "suppressed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({EventStatus.SENT, EventStatus.SUPPRESSED, EventStatus.FAILED})


@dataclass
class NotificationEvent:
    """Domain entity for one raised notification event."""

    recipient_id: UUID
    type: NotificationEventType
    title: str
    body: str = ""
    id: UUID = field(default_factory=uuid4)
    link: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    status: EventStatus = EventStatus.PENDING
    attempts: int = 0
    error_message: str | None = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    processed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass
class InboxItem:
    """Domain entity for an in-app notification shown in the panel."""

    event_id: UUID
    recipient_id: UUID
    type: NotificationEventType
    title: str
    body: str = ""
    id: UUID = field(default_factory=uuid4)
    link: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    is_read: bool = False
    read_at: datetime | None = None
    delivered_at: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def from_event(cls, event: NotificationEvent, delivered_at: datetime) -> "InboxItem":
        return cls(
            event_id=event.id,
            recipient_id=event.recipient_id,
            type=event.type,
            title=event.title,
            body=event.body,
            link=event.link,
            metadata=dict(event.metadata),
            delivered_at=delivered_at,
        )


@dataclass(frozen=True, slots=True)
class PushPayload:
    """Read-only value object: the JSON body sent to a push endpoint.

    ``tag`` is the event type so the device can collapse repeated
    notifications of the same kind.
    """

    title: str
    body: str
    url: str
    tag: str
    data: dict[str, Any]

    @classmethod
    def from_event(cls, event: NotificationEvent) -> "PushPayload":
        return cls(
            title=event.title or DEFAULT_PUSH_TITLE,
            body=event.body,
            url=event.link or DEFAULT_PUSH_URL,
            tag=event.type.value,
            data={**event.metadata, "event_id": str(event.id)},
        )

    def to_json(self) -> str:
        return orjson.dumps(
            {
                "title": self.title,
                "body": self.body,
                "url": self.url,
                "tag": self.tag,
                "data": self.data,
            },
            default=str,
        ).decode()
