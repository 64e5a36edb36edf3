"""Notification event and inbox repository protocol."""

from datetime import datetime
from typing import Protocol
from uuid import UUID

from domain.entities.notification import EventStatus, InboxItem, NotificationEvent


class INotificationRepository(Protocol):
    """Repository interface for notification events and inbox items."""

    # --- Events ---

    async def create_event(self, event: NotificationEvent) -> NotificationEvent | None:
        """Store a new pending event.

        Returns None when an event with the same ID is already stored.
        """
        ...

    async def get_event(self, event_id: UUID) -> NotificationEvent | None:
        """Get an event by ID."""
        ...

    async def list_pending(self, limit: int = 50) -> list[NotificationEvent]:
        """Get pending events, oldest first."""
        ...

    async def transition_status(
        self,
        event_id: UUID,
        status: EventStatus,
        processed_at: datetime,
        error_message: str | None = None,
    ) -> bool:
        """Move a pending event to a terminal status.

        Returns False when the event is no longer pending.
        """
        ...

    async def increment_attempts(self, event_id: UUID, error_message: str) -> int:
        """Record a failed attempt. Returns the new attempt count."""
        ...

    async def delete_processed_before(self, cutoff: datetime) -> int:
        """Delete terminal events processed before cutoff. Returns count deleted."""
        ...

    # --- Inbox ---

    async def add_inbox_item(self, item: InboxItem) -> InboxItem:
        """Create the in-app notification for a delivered event."""
        ...

    async def get_inbox(
        self,
        user_id: UUID,
        is_read: bool | None = None,
        limit: int = 20,
        before: datetime | None = None,
    ) -> list[InboxItem]:
        """Get the user's in-app notifications, newest first."""
        ...

    async def get_unread_count(self, user_id: UUID) -> int:
        """Count unread in-app notifications for a user."""
        ...

    async def mark_read(self, event_id: UUID, user_id: UUID) -> bool:
        """Mark one in-app notification as read."""
        ...

    async def list_unread_ids(self, user_id: UUID) -> list[UUID]:
        """IDs of the user's unread in-app notifications as of now."""
        ...

    async def mark_items_read(self, user_id: UUID, item_ids: list[UUID]) -> int:
        """Mark the given unread items as read. Returns count updated."""
        ...
