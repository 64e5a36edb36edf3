"""Unit tests for NotificationService."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from core.exceptions import NotificationEventNotFoundError, PreferenceLookupFailure
from domain.entities.notification import EventStatus, NotificationEventType
from domain.entities.preferences import ChatMode, NotificationPreferences
from domain.services.delivery_dispatcher import (
    DeliveryDispatcher,
    DispatchOutcome,
    DispatchResult,
)
from domain.services.notification_service import NotificationService
from domain.services.preference_router import Decision


@pytest.fixture
def dispatcher() -> MagicMock:
    mock = MagicMock(spec=DeliveryDispatcher)

    async def dispatch(event, decision):
        outcome = DispatchOutcome.SENT if decision.should_deliver else DispatchOutcome.SUPPRESSED
        return DispatchResult(event_id=event.id, outcome=outcome, status=EventStatus(outcome.value))

    mock.dispatch.side_effect = dispatch
    return mock


@pytest.fixture
def service(uow, dispatcher) -> NotificationService:
    uow.preferences.get.return_value = None
    return NotificationService(lambda: uow, dispatcher=dispatcher, batch_size=10, concurrency=2)


class TestEnqueue:
    async def test_new_event_is_stored(self, service, uow, make_event) -> None:
        event = make_event()
        uow.notifications.get_event.return_value = None
        uow.notifications.create_event.return_value = event

        stored, created = await service.enqueue(event)

        assert created is True
        assert stored is event
        assert uow.committed

    async def test_redelivered_event_is_not_stored_twice(self, service, uow, make_event) -> None:
        event = make_event()
        uow.notifications.get_event.return_value = event

        stored, created = await service.enqueue(make_event(id=event.id))

        assert created is False
        assert stored is event
        uow.notifications.create_event.assert_not_called()
        assert not uow.committed

    async def test_lost_insert_race_returns_stored_copy(self, service, uow, make_event) -> None:
        event = make_event()
        uow.notifications.get_event.side_effect = [None, event]
        uow.notifications.create_event.return_value = None

        stored, created = await service.enqueue(make_event(id=event.id))

        assert created is False
        assert stored is event
        assert not uow.committed


class TestGetEvent:
    async def test_missing_event_raises(self, service, uow) -> None:
        uow.notifications.get_event.return_value = None

        with pytest.raises(NotificationEventNotFoundError):
            await service.get_event(uuid4())


class TestProcess:
    async def test_routes_with_stored_preferences(
        self, service, uow, dispatcher, user_id, make_event
    ) -> None:
        uow.preferences.get.return_value = NotificationPreferences(
            user_id=user_id, chat_mode=ChatMode.MUTED
        )

        result = await service.process(make_event(NotificationEventType.CHAT_MESSAGE))

        assert result.outcome == DispatchOutcome.SUPPRESSED
        decision = dispatcher.dispatch.await_args.args[1]
        assert decision.reason == "chat_muted"

    async def test_missing_preferences_use_defaults(
        self, service, dispatcher, make_event
    ) -> None:
        result = await service.process(make_event(NotificationEventType.CHAT_MESSAGE))

        assert result.outcome == DispatchOutcome.SENT

    async def test_terminal_event_skips_routing(
        self, service, uow, dispatcher, make_event
    ) -> None:
        event = make_event(status=EventStatus.SUPPRESSED)
        dispatcher.already_processed.return_value = DispatchResult(
            event_id=event.id, outcome=DispatchOutcome.DUPLICATE, status=EventStatus.SUPPRESSED
        )

        result = await service.process(event)

        assert result.outcome == DispatchOutcome.DUPLICATE
        uow.preferences.get.assert_not_called()
        dispatcher.dispatch.assert_not_called()

    async def test_preference_outage_fails_closed(
        self, service, uow, dispatcher, make_event
    ) -> None:
        uow.preferences.get.side_effect = ConnectionError("db unreachable")

        result = await service.process(make_event(NotificationEventType.REMINDER))

        assert result.outcome == DispatchOutcome.SUPPRESSED
        decision = dispatcher.dispatch.await_args.args[1]
        assert decision.reason == "preferences_unavailable:fail_closed"

    async def test_preference_outage_fails_open_for_security(
        self, service, uow, dispatcher, make_event
    ) -> None:
        uow.preferences.get.side_effect = ConnectionError("db unreachable")

        result = await service.process(make_event(NotificationEventType.ACCOUNT_SECURITY))

        assert result.outcome == DispatchOutcome.SENT
        assert dispatcher.dispatch.await_args.args[1].decision == Decision.DELIVER

    async def test_route_and_dispatch_loads_event(
        self, service, uow, dispatcher, make_event
    ) -> None:
        event = make_event()
        uow.notifications.get_event.return_value = event

        result = await service.route_and_dispatch(event.id)

        assert result.event_id == event.id
        assert dispatcher.dispatch.await_args.args[0] is event


class TestProcessPending:
    async def test_empty_queue(self, service, uow, dispatcher) -> None:
        uow.notifications.list_pending.return_value = []

        assert await service.process_pending() == []
        dispatcher.dispatch.assert_not_called()

    async def test_uses_batch_size_and_limit(self, service, uow) -> None:
        uow.notifications.list_pending.return_value = []

        await service.process_pending()
        await service.process_pending(limit=3)

        limits = [call.args[0] for call in uow.notifications.list_pending.await_args_list]
        assert limits == [10, 3]

    async def test_keeps_per_recipient_order(self, service, uow, dispatcher, make_event) -> None:
        other = uuid4()
        start = datetime.utcnow()
        first = make_event(created_at=start)
        second = make_event(created_at=start + timedelta(seconds=1))
        third = make_event(recipient_id=other)
        uow.notifications.list_pending.return_value = [first, third, second]

        results = await service.process_pending()

        assert len(results) == 3
        dispatched = [call.args[0].id for call in dispatcher.dispatch.await_args_list]
        assert dispatched.index(first.id) < dispatched.index(second.id)

    async def test_error_stops_only_that_recipient(
        self, service, uow, dispatcher, make_event
    ) -> None:
        start = datetime.utcnow()
        broken = make_event(created_at=start)
        after_broken = make_event(created_at=start + timedelta(seconds=1))
        other = make_event(recipient_id=uuid4())
        uow.notifications.list_pending.return_value = [broken, other, after_broken]

        async def dispatch(event, decision):
            if event.id == broken.id:
                raise ConnectionError("database went away")
            return DispatchResult(
                event_id=event.id, outcome=DispatchOutcome.SENT, status=EventStatus.SENT
            )

        dispatcher.dispatch.side_effect = dispatch

        results = await service.process_pending()

        assert [result.event_id for result in results] == [other.id]
        dispatched = [call.args[0].id for call in dispatcher.dispatch.await_args_list]
        assert after_broken.id not in dispatched


class TestPreferences:
    async def test_load_returns_defaults(self, service, user_id) -> None:
        prefs = await service.load_preferences(user_id)

        assert prefs.user_id == user_id
        assert prefs.notifications_enabled is True
        assert prefs.chat_mode == ChatMode.ALL

    async def test_load_wraps_store_errors(self, service, uow, user_id) -> None:
        uow.preferences.get.side_effect = RuntimeError("boom")

        with pytest.raises(PreferenceLookupFailure):
            await service.load_preferences(user_id)

    async def test_partial_update_keeps_other_fields(self, service, uow, user_id) -> None:
        uow.preferences.get.return_value = NotificationPreferences(
            user_id=user_id, task_updates=False
        )
        uow.preferences.upsert.side_effect = lambda prefs: prefs

        saved = await service.update_preferences(user_id, chat_mode=ChatMode.MENTIONS_ONLY)

        assert saved.chat_mode == ChatMode.MENTIONS_ONLY
        assert saved.task_updates is False
        assert uow.committed

    async def test_unknown_field_rejected(self, service, uow, user_id) -> None:
        with pytest.raises(ValueError):
            await service.update_preferences(user_id, email_digest=True)

        uow.preferences.upsert.assert_not_called()


class TestCleanup:
    async def test_deletes_before_retention_cutoff(self, service, uow) -> None:
        uow.notifications.delete_processed_before.return_value = 4

        count = await service.cleanup_processed(retention_days=7)

        assert count == 4
        cutoff = uow.notifications.delete_processed_before.await_args.args[0]
        assert datetime.utcnow() - cutoff >= timedelta(days=7)
        assert uow.committed
