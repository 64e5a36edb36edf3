"""Pydantic schemas for device push registration."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from domain.entities.push_subscription import (
    DeviceState,
    DeviceSubscription,
    PushPermission,
    PushState,
)
from infrastructure.push.reported_device import DeviceReport


class PushKeys(BaseModel):
    p256dh: str = Field(..., min_length=1)
    auth: str = Field(..., min_length=1)


class BrowserSubscription(BaseModel):
    """``PushSubscription.toJSON()`` as produced by the browser."""

    endpoint: str = Field(..., min_length=1, max_length=2048)
    keys: PushKeys


class DeviceReportRequest(BaseModel):
    """Push capabilities and state the browser reports about itself."""

    supported: bool
    permission: PushPermission = PushPermission.DEFAULT
    service_worker_registered: bool = False
    subscription: BrowserSubscription | None = None
    application_server_key: str | None = None
    unsubscribe_error: str | None = None
    last_endpoint: str | None = Field(None, max_length=2048)

    def to_report(self) -> DeviceReport:
        subscription = None
        if self.subscription is not None:
            subscription = DeviceSubscription(
                endpoint=self.subscription.endpoint,
                public_key=self.subscription.keys.p256dh,
                auth_secret=self.subscription.keys.auth,
            )
        return DeviceReport(
            supported=self.supported,
            permission=self.permission,
            agent_registered=self.service_worker_registered,
            subscription=subscription,
            application_server_key=self.application_server_key,
            teardown_error=self.unsubscribe_error,
            last_endpoint=self.last_endpoint,
        )


class PushStateResponse(BaseModel):
    """What the UI needs to render the push toggle."""

    supported: bool
    subscribed: bool
    permission: PushPermission
    agent_registered: bool
    state: DeviceState

    @classmethod
    def from_state(cls, state: PushState) -> "PushStateResponse":
        return cls(
            supported=state.supported,
            subscribed=state.subscribed,
            permission=state.permission,
            agent_registered=state.agent_registered,
            state=state.state,
        )


class PushSubscriptionResponse(BaseModel):
    """Stored registry row (keys omitted)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    endpoint: str
    created_at: datetime
    updated_at: datetime


class SubscribeResponse(BaseModel):
    state: PushStateResponse
    subscription: PushSubscriptionResponse | None = None


class PublicKeyResponse(BaseModel):
    """VAPID application server key for ``pushManager.subscribe``."""

    public_key: str
