"""Push subscription entities and device push state."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID, uuid4


class PushPermission(StrEnum):
    """Notification permission as reported by the device."""

    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"
    UNSUPPORTED = "unsupported"


class DeviceState(StrEnum):
    """Lifecycle of push on one device."""

    UNSUPPORTED = "unsupported"
    UNREGISTERED = "unregistered"
    PERMISSION_PROMPT = "permission_prompt"
    PERMISSION_DENIED = "permission_denied"
    PERMISSION_GRANTED_UNSUBSCRIBED = "permission_granted_unsubscribed"
    SUBSCRIBED = "subscribed"


@dataclass
class PushSubscription:
    """Domain entity for a stored push endpoint of one user's device."""

    user_id: UUID
    endpoint: str
    public_key: str
    auth_secret: str
    id: UUID = field(default_factory=uuid4)
    failure_count: int = 0
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True, slots=True)
class DeviceSubscription:
    """Provider-side subscription handle held by the device."""

    endpoint: str
    public_key: str
    auth_secret: str


@dataclass(frozen=True, slots=True)
class PushState:
    """Read-only value object: what the UI needs to render the push toggle."""

    supported: bool
    subscribed: bool
    permission: PushPermission
    agent_registered: bool = False

    @classmethod
    def unsupported(cls) -> "PushState":
        return cls(supported=False, subscribed=False, permission=PushPermission.UNSUPPORTED)

    @property
    def state(self) -> DeviceState:
        if not self.supported:
            return DeviceState.UNSUPPORTED
        if not self.agent_registered:
            return DeviceState.UNREGISTERED
        if self.permission == PushPermission.DEFAULT:
            return DeviceState.PERMISSION_PROMPT
        if self.permission != PushPermission.GRANTED:
            return DeviceState.PERMISSION_DENIED
        if not self.subscribed:
            return DeviceState.PERMISSION_GRANTED_UNSUBSCRIBED
        return DeviceState.SUBSCRIBED


@dataclass(frozen=True, slots=True)
class SubscribeResult:
    """Outcome of a subscribe request."""

    state: PushState
    subscription: PushSubscription | None = None
