"""Web Push delivery via pywebpush (VAPID)."""

import asyncio

import structlog
from pywebpush import WebPushException, webpush

from core.exceptions import PushSendFailure
from domain.entities.notification import PushPayload
from domain.entities.push_subscription import PushSubscription

logger = structlog.get_logger()

GONE_STATUS_CODES = frozenset({404, 410})


class WebPushProvider:
    """IPushProvider backed by the standard Web Push protocol.

    pywebpush is synchronous, so each send runs in a worker thread.
    """

    def __init__(
        self,
        vapid_private_key: str,
        vapid_subject: str,
        ttl_seconds: int = 86400,
        urgency: str = "normal",
    ) -> None:
        self._vapid_private_key = vapid_private_key
        self._vapid_subject = vapid_subject
        self._ttl_seconds = ttl_seconds
        self._urgency = urgency

    @property
    def is_configured(self) -> bool:
        return bool(self._vapid_private_key and self._vapid_subject)

    async def send(self, subscription: PushSubscription, payload: PushPayload) -> None:
        """Deliver one payload to one endpoint.

        Raises:
            PushSendFailure: On any delivery error, with ``gone`` set for 404/410.
        """
        if not self.is_configured:
            raise PushSendFailure(subscription.endpoint, reason="VAPID keys not configured")

        await asyncio.to_thread(self._send_sync, subscription, payload.to_json())

    def _send_sync(self, subscription: PushSubscription, data: str) -> None:
        subscription_info = {
            "endpoint": subscription.endpoint,
            "keys": {
                "p256dh": subscription.public_key,
                "auth": subscription.auth_secret,
            },
        }
        try:
            webpush(
                subscription_info=subscription_info,
                data=data,
                vapid_private_key=self._vapid_private_key,
                # pywebpush writes aud/exp into the claims dict, so never share it
                vapid_claims={"sub": self._vapid_subject},
                ttl=self._ttl_seconds,
                headers={"Urgency": self._urgency},
            )
        except WebPushException as exc:
            status = exc.response.status_code if exc.response is not None else None
            raise PushSendFailure(
                subscription.endpoint,
                reason=str(exc),
                status_code=status,
                gone=status in GONE_STATUS_CODES,
            ) from exc
        except Exception as exc:
            raise PushSendFailure(subscription.endpoint, reason=str(exc)) from exc
