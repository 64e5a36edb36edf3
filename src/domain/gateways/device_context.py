"""Device context protocol used by the subscription lifecycle."""

from typing import Protocol

from domain.entities.push_subscription import DeviceSubscription, PushPermission


class IDeviceContext(Protocol):
    """The device (browser install) whose push registration is managed.

    Methods that talk to the user or to the push provider may block; the
    caller bounds them with a timeout.
    """

    def is_supported(self) -> bool:
        """Whether the device can receive push at all."""
        ...

    async def permission(self) -> PushPermission:
        """Current permission, without prompting."""
        ...

    async def request_permission(self) -> PushPermission:
        """Prompt the user if needed and return the resulting permission."""
        ...

    async def has_delivery_agent(self) -> bool:
        """Whether the background delivery agent is registered."""
        ...

    async def register_delivery_agent(self) -> None:
        """Register the background delivery agent.

        Raises:
            SubscriptionRegistrationFailure: If registration fails.
        """
        ...

    async def current_subscription(self) -> DeviceSubscription | None:
        """The provider subscription the device currently holds."""
        ...

    async def last_known_endpoint(self) -> str | None:
        """Endpoint the device last held, after it lost its subscription.

        Set when the browser dropped or expired the subscription on its own.
        """
        ...

    async def create_subscription(self, application_server_key: str) -> DeviceSubscription:
        """Create a provider subscription.

        Raises:
            SubscriptionRegistrationFailure: If the provider call fails.
        """
        ...

    async def remove_subscription(self) -> None:
        """Tear down the provider subscription.

        Raises:
            SubscriptionRegistrationFailure: If the provider call fails.
        """
        ...
