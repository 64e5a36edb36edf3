"""Device context built from what the browser reports about itself.

The browser owns the permission prompt, the service worker and the
PushManager subscription. It performs those steps and posts the outcome;
this adapter replays that report through ``IDeviceContext`` so the
subscription lifecycle runs the same way it would against a live device.
"""

from dataclasses import dataclass

from core.exceptions import SubscriptionRegistrationFailure
from domain.entities.push_subscription import DeviceSubscription, PushPermission


@dataclass
class DeviceReport:
    """Push capabilities and state reported by one browser install."""

    supported: bool
    permission: PushPermission = PushPermission.DEFAULT
    agent_registered: bool = False
    subscription: DeviceSubscription | None = None
    application_server_key: str | None = None
    teardown_error: str | None = None
    last_endpoint: str | None = None


class ReportedDeviceContext:
    """IDeviceContext over a DeviceReport."""

    def __init__(self, report: DeviceReport) -> None:
        self._report = report
        self._agent_registered = report.agent_registered
        self._subscription = report.subscription

    def is_supported(self) -> bool:
        return self._report.supported

    async def permission(self) -> PushPermission:
        if not self._report.supported:
            return PushPermission.UNSUPPORTED
        return self._report.permission

    async def request_permission(self) -> PushPermission:
        # The prompt already happened client-side; its answer is in the report.
        return await self.permission()

    async def has_delivery_agent(self) -> bool:
        return self._agent_registered

    async def register_delivery_agent(self) -> None:
        if not self._report.supported:
            raise SubscriptionRegistrationFailure("device does not support service workers")
        self._agent_registered = True

    async def current_subscription(self) -> DeviceSubscription | None:
        return self._subscription

    async def last_known_endpoint(self) -> str | None:
        return self._report.last_endpoint

    async def create_subscription(self, application_server_key: str) -> DeviceSubscription:
        if self._subscription is None:
            raise SubscriptionRegistrationFailure("device reported no push subscription")
        reported_key = self._report.application_server_key
        if reported_key and application_server_key and reported_key != application_server_key:
            raise SubscriptionRegistrationFailure(
                "subscription was created with a different application server key"
            )
        return self._subscription

    async def remove_subscription(self) -> None:
        if self._report.teardown_error:
            raise SubscriptionRegistrationFailure(self._report.teardown_error)
        self._subscription = None
