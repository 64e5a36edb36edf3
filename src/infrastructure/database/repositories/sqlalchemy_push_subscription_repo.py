"""SQLAlchemy implementation of the push subscription registry."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from domain.entities.push_subscription import PushSubscription
from infrastructure.database.models import PushSubscriptionModel


class SQLAlchemyPushSubscriptionRepository:
    """SQLAlchemy implementation of IPushSubscriptionRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_for_user(self, user_id: UUID) -> list[PushSubscription]:
        """Get all push endpoints of a user."""
        stmt = (
            select(PushSubscriptionModel)
            .where(PushSubscriptionModel.user_id == user_id)
            .order_by(PushSubscriptionModel.created_at)
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars()]

    async def get(self, user_id: UUID, endpoint: str) -> PushSubscription | None:
        """Get one subscription by its (user, endpoint) key."""
        stmt = select(PushSubscriptionModel).where(
            PushSubscriptionModel.user_id == user_id,
            PushSubscriptionModel.endpoint == endpoint,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def upsert(self, subscription: PushSubscription) -> PushSubscription:
        """Insert or update keyed on (user_id, endpoint).

        Runs as a single ``INSERT ... ON CONFLICT DO UPDATE`` so two devices
        racing on the same endpoint cannot produce a duplicate row. Keys are
        refreshed and the failure count is cleared on conflict.
        """
        dialect = self._session.get_bind().dialect.name
        insert = postgresql.insert if dialect == "postgresql" else sqlite.insert

        stmt = insert(PushSubscriptionModel).values(
            id=subscription.id,
            user_id=subscription.user_id,
            endpoint=subscription.endpoint,
            p256dh=subscription.public_key,
            auth=subscription.auth_secret,
            failure_count=0,
            created_at=subscription.created_at,
            updated_at=subscription.updated_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[PushSubscriptionModel.user_id, PushSubscriptionModel.endpoint],
            set_={
                "p256dh": stmt.excluded.p256dh,
                "auth": stmt.excluded.auth,
                "failure_count": 0,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await self._session.execute(stmt)

        stored = await self.get(subscription.user_id, subscription.endpoint)
        if stored is None:
            raise RuntimeError("push subscription vanished after upsert")
        return stored

    async def delete(self, user_id: UUID, endpoint: str) -> bool:
        """Delete a subscription. Returns False if none matched."""
        stmt = (
            delete(PushSubscriptionModel)
            .where(
                PushSubscriptionModel.user_id == user_id,
                PushSubscriptionModel.endpoint == endpoint,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0  # type: ignore[return-value]

    async def record_failure(self, user_id: UUID, endpoint: str) -> int:
        """Increment the consecutive failure count. Returns the new count."""
        stmt = (
            update(PushSubscriptionModel)
            .where(
                PushSubscriptionModel.user_id == user_id,
                PushSubscriptionModel.endpoint == endpoint,
            )
            .values(
                failure_count=PushSubscriptionModel.failure_count + 1,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)

        count_stmt = select(PushSubscriptionModel.failure_count).where(
            PushSubscriptionModel.user_id == user_id,
            PushSubscriptionModel.endpoint == endpoint,
        )
        result = await self._session.execute(count_stmt)
        return result.scalar_one_or_none() or 0

    async def reset_failures(self, user_id: UUID, endpoint: str) -> None:
        """Clear the consecutive failure count after a successful send."""
        stmt = (
            update(PushSubscriptionModel)
            .where(
                PushSubscriptionModel.user_id == user_id,
                PushSubscriptionModel.endpoint == endpoint,
            )
            .values(failure_count=0)
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)

    def _to_entity(self, model: PushSubscriptionModel) -> PushSubscription:
        return PushSubscription(
            id=model.id,
            user_id=model.user_id,
            endpoint=model.endpoint,
            public_key=model.p256dh,
            auth_secret=model.auth,
            failure_count=model.failure_count or 0,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
