"""Unread counter for the in-app notification panel."""

from collections.abc import AsyncIterator, Callable
from datetime import datetime
from uuid import UUID

import structlog

from core.exceptions import NotificationNotFoundError
from domain.entities.notification import InboxItem
from domain.gateways.unread_signals import IUnreadSignalBus
from domain.repositories.unit_of_work import IUnitOfWork

logger = structlog.get_logger()

DEFAULT_PAGE_SIZE = 20


class UnreadCounterService:
    """Reads and updates the unread state of a user's inbox.

    Counts are always re-queried from the store. Signals only say that
    something changed for a user, so a missed or reordered signal can
    never leave a stale count behind.
    """

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        unread_signals: IUnreadSignalBus,
    ) -> None:
        self._uow_factory = uow_factory
        self._unread_signals = unread_signals

    async def count(self, user_id: UUID) -> int:
        """Number of unread in-app notifications for a user."""
        async with self._uow_factory() as uow:
            return await uow.notifications.get_unread_count(user_id)

    async def list_inbox(
        self,
        user_id: UUID,
        is_read: bool | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        before: datetime | None = None,
    ) -> tuple[list[InboxItem], int]:
        """Get a page of the inbox, newest first.

        Returns:
            Tuple of (items, unread_count).
        """
        async with self._uow_factory() as uow:
            items = await uow.notifications.get_inbox(
                user_id=user_id,
                is_read=is_read,
                limit=limit,
                before=before,
            )
            unread_count = await uow.notifications.get_unread_count(user_id)
            return items, unread_count

    async def mark_read(self, event_id: UUID, user_id: UUID) -> None:
        """Mark one in-app notification as read."""
        async with self._uow_factory() as uow:
            success = await uow.notifications.mark_read(event_id, user_id)
            if not success:
                raise NotificationNotFoundError(str(event_id))
            await uow.commit()
        self._unread_signals.publish(user_id)

    async def mark_all_read(self, user_id: UUID) -> int:
        """Mark everything delivered so far as read. Returns count marked.

        Only the items unread when the call starts are marked. The set is
        taken from the store by ID, so an event delivered while this call is
        in flight stays unread whatever its delivery timestamp says.
        """
        async with self._uow_factory() as uow:
            snapshot = await uow.notifications.list_unread_ids(user_id)
            count = await uow.notifications.mark_items_read(user_id, snapshot)
            await uow.commit()

        logger.info("notifications_marked_read", user_id=str(user_id), count=count)
        self._unread_signals.publish(user_id)
        return count

    async def watch(self, user_id: UUID) -> AsyncIterator[int]:
        """Yield the unread count now and again whenever it changes."""
        with self._unread_signals.listen(user_id) as listener:
            last: int | None = None
            while True:
                current = await self.count(user_id)
                if current != last:
                    last = current
                    yield current
                await listener.wait()
