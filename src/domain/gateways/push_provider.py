"""Push provider protocol."""

from typing import Protocol

from domain.entities.notification import PushPayload
from domain.entities.push_subscription import PushSubscription


class IPushProvider(Protocol):
    """Sends one payload to one push endpoint."""

    async def send(self, subscription: PushSubscription, payload: PushPayload) -> None:
        """Deliver the payload.

        Raises:
            PushSendFailure: On any delivery error. ``gone`` is set when the
                provider reports the endpoint no longer exists.
        """
        ...
