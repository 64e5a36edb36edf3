"""Pydantic schemas for notification preferences."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from domain.entities.preferences import ChatMode


class PreferencesResponse(BaseModel):
    """A user's effective notification settings."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    notifications_enabled: bool
    chat_mode: ChatMode
    team_activity: bool
    task_updates: bool
    system_alerts: bool
    account_security: bool
    updated_at: datetime


class PreferencesUpdate(BaseModel):
    """Partial update; omitted fields keep their current value."""

    model_config = ConfigDict(extra="forbid")

    notifications_enabled: bool | None = None
    chat_mode: ChatMode | None = None
    team_activity: bool | None = None
    task_updates: bool | None = None
    system_alerts: bool | None = None
    account_security: bool | None = None
