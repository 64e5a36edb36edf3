"""Per-user notification preference entities."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID

from domain.entities.notification import NotificationEventType


class ChatMode(StrEnum):
    """How chat events are delivered."""

    ALL = "all"
    MENTIONS_ONLY = "mentions"
    MUTED = "mute"


class PreferenceCategory(StrEnum):
    """Category toggles; values match the preference field names."""

    TEAM_ACTIVITY = "team_activity"
    TASK_UPDATES = "task_updates"
    SYSTEM_ALERTS = "system_alerts"
    ACCOUNT_SECURITY = "account_security"


CHAT_EVENT_TYPES = frozenset({NotificationEventType.CHAT_MESSAGE, NotificationEventType.CHAT_MENTION})

# None means the type is governed by chat_mode instead of a toggle.
CATEGORY_BY_EVENT_TYPE: dict[NotificationEventType, PreferenceCategory | None] = {
    NotificationEventType.MENTION: PreferenceCategory.TEAM_ACTIVITY,
    NotificationEventType.TEAM_INVITE: PreferenceCategory.TEAM_ACTIVITY,
    NotificationEventType.TEAM_ACTIVITY: PreferenceCategory.TEAM_ACTIVITY,
    NotificationEventType.REPORT_READY: PreferenceCategory.TASK_UPDATES,
    NotificationEventType.REMINDER: PreferenceCategory.TASK_UPDATES,
    NotificationEventType.TASK_UPDATE: PreferenceCategory.TASK_UPDATES,
    NotificationEventType.SYSTEM: PreferenceCategory.SYSTEM_ALERTS,
    NotificationEventType.SYSTEM_ALERT: PreferenceCategory.SYSTEM_ALERTS,
    NotificationEventType.ACCOUNT_SECURITY: PreferenceCategory.ACCOUNT_SECURITY,
    NotificationEventType.CHAT_MESSAGE: None,
    NotificationEventType.CHAT_MENTION: None,
}


@dataclass
class NotificationPreferences:
    """Domain entity for one user's notification settings.

    A user without a stored row gets ``NotificationPreferences(user_id)``,
    i.e. everything enabled.
    """

    user_id: UUID
    notifications_enabled: bool = True
    chat_mode: ChatMode = ChatMode.ALL
    team_activity: bool = True
    task_updates: bool = True
    system_alerts: bool = True
    account_security: bool = True
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def is_enabled(self, category: PreferenceCategory) -> bool:
        return bool(getattr(self, category.value))
