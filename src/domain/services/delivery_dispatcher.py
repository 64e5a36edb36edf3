"""Delivery of routed notification events to the in-app inbox and web push."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID

import structlog

from core.exceptions import DispatchIdempotencyViolation, PushSendFailure
from domain.entities.notification import (
    EventStatus,
    InboxItem,
    NotificationEvent,
    PushPayload,
)
from domain.entities.push_subscription import PushSubscription
from domain.gateways.push_provider import IPushProvider
from domain.gateways.unread_signals import IUnreadSignalBus
from domain.repositories.unit_of_work import IUnitOfWork
from domain.services.preference_router import RoutingDecision

logger = structlog.get_logger()

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MAX_PUSH_FAILURES = 3


class DispatchOutcome(StrEnum):
    """What a dispatch call did."""

    SENT = "sent"
    SUPPRESSED = "suppressed"
    FAILED = "failed"
    RETRY = "retry"
    DUPLICATE = "duplicate"


@dataclass(frozen=True, slots=True)
class PushFanoutStats:
    """Per-event push fan-out counters."""

    attempted: int = 0
    delivered: int = 0
    failed: int = 0
    pruned: int = 0


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """Outcome of processing one event."""

    event_id: UUID
    outcome: DispatchOutcome
    status: EventStatus
    reason: str | None = None
    push: PushFanoutStats = field(default_factory=PushFanoutStats)


class DeliveryDispatcher:
    """Fans an approved event out to the inbox and push endpoints.

    The in-app inbox is authoritative: an event is ``sent`` as soon as its
    inbox item is committed. Push is best-effort and never changes the
    event's status.
    """

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        push_provider: IPushProvider,
        unread_signals: IUnreadSignalBus,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        max_push_failures: int = DEFAULT_MAX_PUSH_FAILURES,
    ) -> None:
        self._uow_factory = uow_factory
        self._push_provider = push_provider
        self._unread_signals = unread_signals
        self._max_attempts = max_attempts
        self._max_push_failures = max_push_failures

    async def dispatch(self, event: NotificationEvent, decision: RoutingDecision) -> DispatchResult:
        """Apply a routing decision to an event exactly once."""
        if event.is_terminal:
            return self.already_processed(event)

        try:
            if decision.should_deliver:
                return await self._deliver(event)
            return await self._suppress(event, decision.reason)
        except DispatchIdempotencyViolation as exc:
            logger.warning(
                "dispatch_idempotency_violation",
                event_id=str(event.id),
                message=exc.message,
            )
            return DispatchResult(
                event_id=event.id,
                outcome=DispatchOutcome.DUPLICATE,
                status=await self._current_status(event.id),
            )

    def already_processed(self, event: NotificationEvent) -> DispatchResult:
        """Result for a redelivered event that already reached a terminal status."""
        logger.info(
            "notification_event_already_processed",
            event_id=str(event.id),
            status=event.status.value,
        )
        return DispatchResult(
            event_id=event.id,
            outcome=DispatchOutcome.DUPLICATE,
            status=event.status,
        )

    # --- Suppress ---

    async def _suppress(self, event: NotificationEvent, reason: str) -> DispatchResult:
        async with self._uow_factory() as uow:
            claimed = await uow.notifications.transition_status(
                event.id,
                EventStatus.SUPPRESSED,
                processed_at=datetime.utcnow(),
                error_message=reason,
            )
            if not claimed:
                raise DispatchIdempotencyViolation(str(event.id))
            await uow.commit()

        logger.info(
            "notification_event_suppressed",
            event_id=str(event.id),
            recipient_id=str(event.recipient_id),
            type=event.type.value,
            reason=reason,
        )
        return DispatchResult(
            event_id=event.id,
            outcome=DispatchOutcome.SUPPRESSED,
            status=EventStatus.SUPPRESSED,
            reason=reason,
        )

    # --- Deliver ---

    async def _deliver(self, event: NotificationEvent) -> DispatchResult:
        now = datetime.utcnow()
        try:
            async with self._uow_factory() as uow:
                # Claim first: a racing dispatcher blocks on the row and then
                # finds it no longer pending.
                claimed = await uow.notifications.transition_status(
                    event.id, EventStatus.SENT, processed_at=now
                )
                if not claimed:
                    await uow.rollback()
                    raise DispatchIdempotencyViolation(str(event.id))
                await uow.notifications.add_inbox_item(InboxItem.from_event(event, delivered_at=now))
                await uow.commit()
        except DispatchIdempotencyViolation:
            raise
        except Exception as exc:
            logger.error(
                "inbox_delivery_failed",
                event_id=str(event.id),
                error=str(exc),
                exc_info=True,
            )
            return await self._record_failure(event, str(exc))

        self._unread_signals.publish(event.recipient_id)

        # The event is committed as sent; push problems end here.
        try:
            push_stats = await self._fan_out(event)
        except Exception as exc:
            logger.error(
                "push_fanout_failed",
                event_id=str(event.id),
                recipient_id=str(event.recipient_id),
                error=str(exc),
                exc_info=True,
            )
            push_stats = PushFanoutStats()

        logger.info(
            "notification_event_sent",
            event_id=str(event.id),
            recipient_id=str(event.recipient_id),
            type=event.type.value,
            push_attempted=push_stats.attempted,
            push_delivered=push_stats.delivered,
        )
        return DispatchResult(
            event_id=event.id,
            outcome=DispatchOutcome.SENT,
            status=EventStatus.SENT,
            push=push_stats,
        )

    async def _record_failure(self, event: NotificationEvent, error: str) -> DispatchResult:
        """Count a failed in-app attempt; give up after max_attempts."""
        async with self._uow_factory() as uow:
            attempts = await uow.notifications.increment_attempts(event.id, error)
            if attempts < self._max_attempts:
                await uow.commit()
                return DispatchResult(
                    event_id=event.id,
                    outcome=DispatchOutcome.RETRY,
                    status=EventStatus.PENDING,
                    reason=error,
                )

            claimed = await uow.notifications.transition_status(
                event.id,
                EventStatus.FAILED,
                processed_at=datetime.utcnow(),
                error_message="Max retries exceeded",
            )
            await uow.commit()

        if not claimed:
            raise DispatchIdempotencyViolation(str(event.id))

        logger.error(
            "notification_event_failed",
            event_id=str(event.id),
            attempts=attempts,
            error=error,
        )
        return DispatchResult(
            event_id=event.id,
            outcome=DispatchOutcome.FAILED,
            status=EventStatus.FAILED,
            reason=error,
        )

    # --- Push fan-out ---

    async def _fan_out(self, event: NotificationEvent) -> PushFanoutStats:
        async with self._uow_factory() as uow:
            subscriptions = await uow.push_subscriptions.list_for_user(event.recipient_id)

        if not subscriptions:
            return PushFanoutStats()

        payload = PushPayload.from_event(event)
        outcomes = await asyncio.gather(
            *(self._send_one(subscription, payload) for subscription in subscriptions)
        )

        failures = [failure for failure in outcomes if failure is not None]
        delivered = [
            subscription
            for subscription, failure in zip(subscriptions, outcomes)
            if failure is None
        ]
        pruned = await self._heal_registry(event.recipient_id, delivered, failures)

        if not delivered:
            logger.warning(
                "push_fanout_all_failed",
                event_id=str(event.id),
                recipient_id=str(event.recipient_id),
                endpoints=len(subscriptions),
            )

        return PushFanoutStats(
            attempted=len(subscriptions),
            delivered=len(delivered),
            failed=len(failures),
            pruned=pruned,
        )

    async def _send_one(
        self, subscription: PushSubscription, payload: PushPayload
    ) -> PushSendFailure | None:
        try:
            await self._push_provider.send(subscription, payload)
        except PushSendFailure as exc:
            logger.warning(
                "push_send_failed",
                endpoint=subscription.endpoint,
                provider_status=exc.provider_status,
                gone=exc.gone,
                message=exc.message,
            )
            return exc
        except Exception as exc:
            logger.warning(
                "push_send_errored",
                endpoint=subscription.endpoint,
                error=str(exc),
                exc_info=True,
            )
            return PushSendFailure(subscription.endpoint, reason=str(exc))
        return None

    async def _heal_registry(
        self,
        user_id: UUID,
        delivered: list[PushSubscription],
        failures: list[PushSendFailure],
    ) -> int:
        """Prune gone or persistently failing endpoints. Returns rows removed."""
        pruned = 0
        async with self._uow_factory() as uow:
            for subscription in delivered:
                if subscription.failure_count:
                    await uow.push_subscriptions.reset_failures(user_id, subscription.endpoint)

            for failure in failures:
                if not failure.gone:
                    count = await uow.push_subscriptions.record_failure(user_id, failure.endpoint)
                    if count < self._max_push_failures:
                        continue
                if await uow.push_subscriptions.delete(user_id, failure.endpoint):
                    pruned += 1
                    logger.info(
                        "push_subscription_pruned",
                        user_id=str(user_id),
                        endpoint=failure.endpoint,
                        gone=failure.gone,
                    )
            await uow.commit()
        return pruned

    async def _current_status(self, event_id: UUID) -> EventStatus:
        async with self._uow_factory() as uow:
            stored = await uow.notifications.get_event(event_id)
        return stored.status if stored else EventStatus.PENDING
