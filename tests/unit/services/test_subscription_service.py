"""Unit tests for SubscriptionService."""

import asyncio

import pytest

from core.exceptions import SubscriptionRegistrationFailure
from domain.entities.push_subscription import (
    DeviceState,
    DeviceSubscription,
    PushPermission,
)
from domain.services.subscription_service import SubscriptionService
from infrastructure.push.reported_device import DeviceReport, ReportedDeviceContext

SERVER_KEY = "server-key"

BROWSER_SUBSCRIPTION = DeviceSubscription(
    endpoint="https://push.test/device-1",
    public_key="p256dh",
    auth_secret="auth",
)


def _device(**overrides) -> ReportedDeviceContext:
    fields = {
        "supported": True,
        "permission": PushPermission.GRANTED,
        "agent_registered": True,
        "subscription": BROWSER_SUBSCRIPTION,
        "application_server_key": SERVER_KEY,
    }
    fields.update(overrides)
    return ReportedDeviceContext(DeviceReport(**fields))


class HangingDevice(ReportedDeviceContext):
    """Device whose permission prompt is never answered."""

    async def request_permission(self) -> PushPermission:
        await asyncio.Event().wait()
        return PushPermission.GRANTED


@pytest.fixture
def service(uow) -> SubscriptionService:
    uow.push_subscriptions.upsert.side_effect = lambda subscription: subscription
    return SubscriptionService(lambda: uow, application_server_key=SERVER_KEY, timeout_seconds=1.0)


class TestSubscribe:
    async def test_stores_endpoint(self, service, uow, user_id) -> None:
        result = await service.subscribe(user_id, _device())

        assert result.state.state == DeviceState.SUBSCRIBED
        assert result.subscription is not None
        stored = uow.push_subscriptions.upsert.await_args.args[0]
        assert stored.user_id == user_id
        assert stored.endpoint == BROWSER_SUBSCRIPTION.endpoint
        assert stored.public_key == "p256dh"
        assert stored.auth_secret == "auth"
        assert uow.committed

    async def test_registers_missing_agent(self, service, user_id) -> None:
        result = await service.subscribe(user_id, _device(agent_registered=False))

        assert result.state.subscribed
        assert result.state.agent_registered

    async def test_unsupported_device(self, service, uow, user_id) -> None:
        result = await service.subscribe(user_id, _device(supported=False))

        assert result.state.state == DeviceState.UNSUPPORTED
        uow.push_subscriptions.upsert.assert_not_called()

    @pytest.mark.parametrize("permission", [PushPermission.DENIED, PushPermission.DEFAULT])
    async def test_permission_not_granted_is_a_state(
        self, service, uow, user_id, permission
    ) -> None:
        result = await service.subscribe(user_id, _device(permission=permission))

        assert result.subscription is None
        assert result.state.permission == permission
        assert not result.state.subscribed
        uow.push_subscriptions.upsert.assert_not_called()

    async def test_missing_browser_subscription_raises_without_write(
        self, service, uow, user_id
    ) -> None:
        device = _device(subscription=None)

        with pytest.raises(SubscriptionRegistrationFailure):
            await service.subscribe(user_id, device)

        uow.push_subscriptions.upsert.assert_not_called()

    async def test_timeout_leaves_no_state(self, uow, user_id) -> None:
        service = SubscriptionService(lambda: uow, SERVER_KEY, timeout_seconds=0.01)
        device = HangingDevice(DeviceReport(supported=True, subscription=BROWSER_SUBSCRIPTION))

        result = await service.subscribe(user_id, device)

        assert result.state.permission == PushPermission.DENIED
        assert not result.state.subscribed
        uow.push_subscriptions.upsert.assert_not_called()

    async def test_store_failure_is_retryable_error(self, service, uow, user_id) -> None:
        uow.push_subscriptions.upsert.side_effect = RuntimeError("constraint")

        with pytest.raises(SubscriptionRegistrationFailure) as exc_info:
            await service.subscribe(user_id, _device())

        assert exc_info.value.details == {"retryable": True}

    async def test_subscribe_twice_upserts_same_endpoint(self, service, uow, user_id) -> None:
        await service.subscribe(user_id, _device())
        await service.subscribe(user_id, _device())

        endpoints = {
            call.args[0].endpoint for call in uow.push_subscriptions.upsert.await_args_list
        }
        assert endpoints == {BROWSER_SUBSCRIPTION.endpoint}


class TestUnsubscribe:
    async def test_removes_row(self, service, uow, user_id) -> None:
        uow.push_subscriptions.delete.return_value = True

        state = await service.unsubscribe(user_id, _device())

        assert not state.subscribed
        assert state.permission == PushPermission.GRANTED
        uow.push_subscriptions.delete.assert_awaited_once_with(
            user_id, BROWSER_SUBSCRIPTION.endpoint
        )

    async def test_teardown_failure_still_removes_row(self, service, uow, user_id) -> None:
        uow.push_subscriptions.delete.return_value = True

        state = await service.unsubscribe(user_id, _device(teardown_error="network error"))

        assert not state.subscribed
        uow.push_subscriptions.delete.assert_awaited_once()

    async def test_nothing_to_remove(self, service, uow, user_id) -> None:
        state = await service.unsubscribe(user_id, _device(subscription=None))

        assert state.state == DeviceState.PERMISSION_GRANTED_UNSUBSCRIBED
        uow.push_subscriptions.delete.assert_not_called()

    async def test_expired_subscription_removes_last_endpoint(self, service, uow, user_id) -> None:
        uow.push_subscriptions.delete.return_value = True

        state = await service.unsubscribe(
            user_id,
            _device(subscription=None, last_endpoint=BROWSER_SUBSCRIPTION.endpoint),
        )

        assert not state.subscribed
        uow.push_subscriptions.delete.assert_awaited_once_with(
            user_id, BROWSER_SUBSCRIPTION.endpoint
        )
        assert uow.committed


class TestGetStatus:
    async def test_reports_subscribed(self, service, uow, user_id) -> None:
        uow.push_subscriptions.get.return_value = object()

        state = await service.get_status(_device(), user_id=user_id)

        assert state.state == DeviceState.SUBSCRIBED

    async def test_missing_registry_row_is_not_subscribed(self, service, uow, user_id) -> None:
        uow.push_subscriptions.get.return_value = None

        state = await service.get_status(_device(), user_id=user_id)

        assert state.state == DeviceState.PERMISSION_GRANTED_UNSUBSCRIBED
        assert not uow.committed

    async def test_reregisters_lost_agent(self, service) -> None:
        state = await service.get_status(_device(agent_registered=False, subscription=None))

        assert state.agent_registered
        assert state.state == DeviceState.PERMISSION_GRANTED_UNSUBSCRIBED

    async def test_permission_prompt_state(self, service) -> None:
        state = await service.get_status(
            _device(permission=PushPermission.DEFAULT, subscription=None)
        )

        assert state.state == DeviceState.PERMISSION_PROMPT

    async def test_unsupported(self, service) -> None:
        state = await service.get_status(_device(supported=False))

        assert state.state == DeviceState.UNSUPPORTED
