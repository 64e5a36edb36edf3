"""SQLAlchemy implementation of the notification event and inbox repository."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from domain.entities.notification import (
    TERMINAL_STATUSES,
    EventStatus,
    InboxItem,
    NotificationEvent,
    NotificationEventType,
)
from infrastructure.database.models import InboxItemModel, NotificationEventModel


class SQLAlchemyNotificationRepository:
    """SQLAlchemy implementation of INotificationRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- Events ---

    async def create_event(self, event: NotificationEvent) -> NotificationEvent | None:
        """Store a new pending event. Returns None if the ID is already stored.

        Runs as ``INSERT ... ON CONFLICT (id) DO NOTHING`` so concurrent
        redeliveries of one event resolve on the primary key.
        """
        dialect = self._session.get_bind().dialect.name
        insert = postgresql.insert if dialect == "postgresql" else sqlite.insert

        table = NotificationEventModel.__table__
        stmt = (
            insert(table)
            .values(
                id=event.id,
                recipient_id=event.recipient_id,
                type=event.type.value,
                title=event.title,
                body=event.body,
                link=event.link,
                metadata=event.metadata,
                status=event.status.value,
                attempts=event.attempts,
                error_message=event.error_message,
                created_at=event.created_at,
                processed_at=event.processed_at,
            )
            .on_conflict_do_nothing(index_elements=[table.c.id])
            .returning(table.c.id)
        )
        result = await self._session.execute(stmt)
        if result.scalar_one_or_none() is None:
            return None
        return await self.get_event(event.id)

    async def get_event(self, event_id: UUID) -> NotificationEvent | None:
        """Get an event by ID."""
        stmt = select(NotificationEventModel).where(NotificationEventModel.id == event_id)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._event_to_entity(model) if model else None

    async def list_pending(self, limit: int = 50) -> list[NotificationEvent]:
        """Get pending events, oldest first."""
        stmt = (
            select(NotificationEventModel)
            .where(NotificationEventModel.status == EventStatus.PENDING.value)
            .order_by(NotificationEventModel.created_at.asc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [self._event_to_entity(m) for m in result.scalars()]

    async def transition_status(
        self,
        event_id: UUID,
        status: EventStatus,
        processed_at: datetime,
        error_message: str | None = None,
    ) -> bool:
        """Move a pending event to a terminal status. First writer wins."""
        stmt = (
            update(NotificationEventModel)
            .where(
                NotificationEventModel.id == event_id,
                NotificationEventModel.status == EventStatus.PENDING.value,
            )
            .values(
                status=status.value,
                processed_at=processed_at,
                error_message=error_message,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0  # type: ignore[return-value]

    async def increment_attempts(self, event_id: UUID, error_message: str) -> int:
        """Record a failed attempt. Returns the new attempt count."""
        stmt = (
            update(NotificationEventModel)
            .where(NotificationEventModel.id == event_id)
            .values(
                attempts=NotificationEventModel.attempts + 1,
                error_message=error_message,
            )
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)

        count_stmt = select(NotificationEventModel.attempts).where(
            NotificationEventModel.id == event_id
        )
        result = await self._session.execute(count_stmt)
        return result.scalar_one()

    async def delete_processed_before(self, cutoff: datetime) -> int:
        """Delete terminal events processed before cutoff. Returns count deleted."""
        stmt = (
            delete(NotificationEventModel)
            .where(
                NotificationEventModel.status.in_([s.value for s in TERMINAL_STATUSES]),
                NotificationEventModel.processed_at < cutoff,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount  # type: ignore[return-value]

    # --- Inbox ---

    async def add_inbox_item(self, item: InboxItem) -> InboxItem:
        """Create the in-app notification for a delivered event."""
        model = self._item_to_model(item)
        self._session.add(model)
        await self._session.flush()
        await self._session.refresh(model)
        return self._item_to_entity(model)

    async def get_inbox(
        self,
        user_id: UUID,
        is_read: bool | None = None,
        limit: int = 20,
        before: datetime | None = None,
    ) -> list[InboxItem]:
        """Get the user's in-app notifications, newest first."""
        stmt = select(InboxItemModel).where(InboxItemModel.recipient_id == user_id)

        if is_read is not None:
            stmt = stmt.where(InboxItemModel.is_read.is_(is_read))

        if before is not None:
            stmt = stmt.where(InboxItemModel.delivered_at < before)

        stmt = stmt.order_by(InboxItemModel.delivered_at.desc(), InboxItemModel.id.desc()).limit(limit)

        result = await self._session.execute(stmt)
        return [self._item_to_entity(m) for m in result.scalars()]

    async def get_unread_count(self, user_id: UUID) -> int:
        """Count unread in-app notifications for a user."""
        stmt = select(func.count(InboxItemModel.id)).where(
            InboxItemModel.recipient_id == user_id,
            InboxItemModel.is_read.is_(False),
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def mark_read(self, event_id: UUID, user_id: UUID) -> bool:
        """Mark one in-app notification as read. Already-read items count as found."""
        stmt = select(InboxItemModel).where(
            InboxItemModel.event_id == event_id,
            InboxItemModel.recipient_id == user_id,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        if not model:
            return False

        if not model.is_read:
            model.is_read = True
            model.read_at = datetime.utcnow()
            await self._session.flush()
        return True

    async def list_unread_ids(self, user_id: UUID) -> list[UUID]:
        """IDs of the user's unread in-app notifications as of now."""
        stmt = select(InboxItemModel.id).where(
            InboxItemModel.recipient_id == user_id,
            InboxItemModel.is_read.is_(False),
        )
        result = await self._session.execute(stmt)
        return list(result.scalars())

    async def mark_items_read(self, user_id: UUID, item_ids: list[UUID]) -> int:
        """Mark the given unread items as read. Returns count updated."""
        if not item_ids:
            return 0
        stmt = (
            update(InboxItemModel)
            .where(
                InboxItemModel.recipient_id == user_id,
                InboxItemModel.id.in_(item_ids),
                InboxItemModel.is_read.is_(False),
            )
            .values(is_read=True, read_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount  # type: ignore[return-value]

    # --- Conversion methods ---

    def _event_to_entity(self, model: NotificationEventModel) -> NotificationEvent:
        return NotificationEvent(
            id=model.id,
            recipient_id=model.recipient_id,
            type=NotificationEventType(model.type),
            title=model.title,
            body=model.body or "",
            link=model.link,
            metadata=dict(model.metadata_ or {}),
            status=EventStatus(model.status),
            attempts=model.attempts or 0,
            error_message=model.error_message,
            created_at=model.created_at,
            processed_at=model.processed_at,
        )

    def _item_to_entity(self, model: InboxItemModel) -> InboxItem:
        return InboxItem(
            id=model.id,
            event_id=model.event_id,
            recipient_id=model.recipient_id,
            type=NotificationEventType(model.type),
            title=model.title,
            body=model.body or "",
            link=model.link,
            metadata=dict(model.metadata_ or {}),
            is_read=model.is_read,
            read_at=model.read_at,
            delivered_at=model.delivered_at,
        )

    def _item_to_model(self, entity: InboxItem) -> InboxItemModel:
        return InboxItemModel(
            id=entity.id,
            event_id=entity.event_id,
            recipient_id=entity.recipient_id,
            type=entity.type.value,
            title=entity.title,
            body=entity.body,
            link=entity.link,
            metadata_=entity.metadata,
            is_read=entity.is_read,
            read_at=entity.read_at,
            delivered_at=entity.delivered_at,
        )
