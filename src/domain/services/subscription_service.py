"""Lifecycle of a device's push registration."""

import asyncio
from collections.abc import Callable
from datetime import datetime
from uuid import UUID

import structlog

from core.exceptions import SubscriptionPermissionDenied, SubscriptionRegistrationFailure
from domain.entities.push_subscription import (
    DeviceSubscription,
    PushPermission,
    PushState,
    PushSubscription,
    SubscribeResult,
)
from domain.gateways.device_context import IDeviceContext
from domain.repositories.unit_of_work import IUnitOfWork

logger = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 30.0


class SubscriptionService:
    """Subscribes and unsubscribes devices for web push.

    Remote steps (permission prompt, agent registration, provider
    subscription) run first and under a timeout. The registry row is only
    written after they succeed, so an abandoned or cancelled call leaves
    no local state behind.
    """

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        application_server_key: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._uow_factory = uow_factory
        self._application_server_key = application_server_key
        self._timeout_seconds = timeout_seconds

    async def subscribe(self, user_id: UUID, device: IDeviceContext) -> SubscribeResult:
        """Register the device for push and store its endpoint.

        Raises:
            SubscriptionRegistrationFailure: If the device, the provider or the
                registry write fails. Nothing is stored in that case.
        """
        if not device.is_supported():
            return SubscribeResult(state=PushState.unsupported())

        try:
            async with asyncio.timeout(self._timeout_seconds):
                device_subscription = await self._establish(device)
        except SubscriptionPermissionDenied as exc:
            logger.info("push_permission_not_granted", user_id=str(user_id), permission=exc.permission)
            return SubscribeResult(
                state=PushState(
                    supported=True,
                    subscribed=False,
                    permission=PushPermission(exc.permission),
                    agent_registered=await device.has_delivery_agent(),
                )
            )
        except TimeoutError:
            logger.warning(
                "push_subscribe_timed_out",
                user_id=str(user_id),
                timeout_seconds=self._timeout_seconds,
            )
            return SubscribeResult(
                state=PushState(supported=True, subscribed=False, permission=PushPermission.DENIED)
            )

        now = datetime.utcnow()
        try:
            async with self._uow_factory() as uow:
                stored = await uow.push_subscriptions.upsert(
                    PushSubscription(
                        user_id=user_id,
                        endpoint=device_subscription.endpoint,
                        public_key=device_subscription.public_key,
                        auth_secret=device_subscription.auth_secret,
                        created_at=now,
                        updated_at=now,
                    )
                )
                await uow.commit()
        except Exception as exc:
            logger.error("push_subscription_store_failed", user_id=str(user_id), error=str(exc))
            raise SubscriptionRegistrationFailure("could not save subscription") from exc

        logger.info("push_subscribed", user_id=str(user_id), endpoint=stored.endpoint)
        return SubscribeResult(
            state=PushState(
                supported=True,
                subscribed=True,
                permission=PushPermission.GRANTED,
                agent_registered=True,
            ),
            subscription=stored,
        )

    async def unsubscribe(self, user_id: UUID, device: IDeviceContext) -> PushState:
        """Tear down the device's push subscription and forget its endpoint.

        A failed provider teardown does not block deleting the row. When the
        device no longer holds a subscription, the endpoint it last held is
        removed instead so an expired registration does not linger.
        """
        if not device.is_supported():
            return PushState.unsupported()

        current = await device.current_subscription()
        if current is not None:
            endpoint: str | None = current.endpoint
            try:
                async with asyncio.timeout(self._timeout_seconds):
                    await device.remove_subscription()
            except (SubscriptionRegistrationFailure, TimeoutError) as exc:
                logger.warning(
                    "push_provider_teardown_failed",
                    user_id=str(user_id),
                    endpoint=endpoint,
                    error=str(exc),
                )
        else:
            endpoint = await device.last_known_endpoint()

        if endpoint is not None:
            try:
                async with self._uow_factory() as uow:
                    deleted = await uow.push_subscriptions.delete(user_id, endpoint)
                    await uow.commit()
            except Exception as exc:
                logger.error("push_subscription_delete_failed", user_id=str(user_id), error=str(exc))
                raise SubscriptionRegistrationFailure("could not remove subscription") from exc

            logger.info(
                "push_unsubscribed",
                user_id=str(user_id),
                endpoint=endpoint,
                row_deleted=deleted,
                device_subscribed=current is not None,
            )

        return PushState(
            supported=True,
            subscribed=False,
            permission=await device.permission(),
            agent_registered=await device.has_delivery_agent(),
        )

    async def get_status(self, device: IDeviceContext, user_id: UUID | None = None) -> PushState:
        """Report the device's push state without writing to the registry.

        A device that lost its delivery agent (e.g. after a restart) gets it
        re-registered. With ``user_id``, the device only counts as
        subscribed when the registry also holds its endpoint.
        """
        if not device.is_supported():
            return PushState.unsupported()

        permission = await device.permission()
        agent_registered = await device.has_delivery_agent()
        if not agent_registered:
            try:
                await device.register_delivery_agent()
                agent_registered = True
            except SubscriptionRegistrationFailure as exc:
                logger.warning("delivery_agent_registration_failed", error=exc.message)

        current = await device.current_subscription()
        subscribed = current is not None
        if subscribed and user_id is not None:
            async with self._uow_factory() as uow:
                stored = await uow.push_subscriptions.get(user_id, current.endpoint)
            if stored is None:
                logger.info("push_subscription_out_of_sync", user_id=str(user_id), endpoint=current.endpoint)
                subscribed = False

        return PushState(
            supported=True,
            subscribed=subscribed,
            permission=permission,
            agent_registered=agent_registered,
        )

    async def _establish(self, device: IDeviceContext) -> DeviceSubscription:
        """Run the remote half of subscribe. Idempotent on the device."""
        permission = await device.request_permission()
        if permission != PushPermission.GRANTED:
            raise SubscriptionPermissionDenied(permission.value)

        if not await device.has_delivery_agent():
            await device.register_delivery_agent()

        existing = await device.current_subscription()
        if existing is not None:
            return existing
        return await device.create_subscription(self._application_server_key)
