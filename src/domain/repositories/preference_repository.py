"""Notification preference repository protocol."""

from typing import Protocol
from uuid import UUID

from domain.entities.preferences import NotificationPreferences


class IPreferenceRepository(Protocol):
    """Repository interface for per-user notification preferences."""

    async def get(self, user_id: UUID) -> NotificationPreferences | None:
        """Get a user's stored preferences, None if never saved."""
        ...

    async def upsert(self, prefs: NotificationPreferences) -> NotificationPreferences:
        """Create or replace a user's preferences."""
        ...
