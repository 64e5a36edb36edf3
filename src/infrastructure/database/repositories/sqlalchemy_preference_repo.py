"""SQLAlchemy implementation of the preference store."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.entities.preferences import ChatMode, NotificationPreferences
from infrastructure.database.models import NotificationPreferenceModel


class SQLAlchemyPreferenceRepository:
    """SQLAlchemy implementation of IPreferenceRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: UUID) -> NotificationPreferences | None:
        """Get a user's stored preferences, None if never saved."""
        stmt = select(NotificationPreferenceModel).where(
            NotificationPreferenceModel.user_id == user_id
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def upsert(self, prefs: NotificationPreferences) -> NotificationPreferences:
        """Create or replace a user's preferences."""
        model = await self._session.get(NotificationPreferenceModel, prefs.user_id)
        if model is None:
            model = NotificationPreferenceModel(user_id=prefs.user_id)
            self._session.add(model)

        model.notifications_enabled = prefs.notifications_enabled
        model.chat_mode = ChatMode(prefs.chat_mode).value
        model.team_activity = prefs.team_activity
        model.task_updates = prefs.task_updates
        model.system_alerts = prefs.system_alerts
        model.account_security = prefs.account_security
        model.updated_at = prefs.updated_at

        await self._session.flush()
        await self._session.refresh(model)
        return self._to_entity(model)

    def _to_entity(self, model: NotificationPreferenceModel) -> NotificationPreferences:
        return NotificationPreferences(
            user_id=model.user_id,
            notifications_enabled=model.notifications_enabled,
            chat_mode=ChatMode(model.chat_mode),
            team_activity=model.team_activity,
            task_updates=model.task_updates,
            system_alerts=model.system_alerts,
            account_security=model.account_security,
            updated_at=model.updated_at,
        )
