"""Notification pipeline: ingest, route and dispatch events."""

import asyncio
from collections import Counter
from collections.abc import Callable
from dataclasses import fields
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

import structlog

from core.exceptions import NotificationEventNotFoundError, PreferenceLookupFailure
from domain.entities.notification import NotificationEvent
from domain.entities.preferences import NotificationPreferences
from domain.repositories.unit_of_work import IUnitOfWork
from domain.services.delivery_dispatcher import DeliveryDispatcher, DispatchResult
from domain.services.preference_router import (
    RoutingDecision,
    route,
    route_without_preferences,
)

logger = structlog.get_logger()

DEFAULT_BATCH_SIZE = 50
DEFAULT_CONCURRENCY = 8
DEFAULT_RETENTION_DAYS = 30

_PREFERENCE_FIELDS = frozenset(
    f.name for f in fields(NotificationPreferences) if f.name not in {"user_id", "updated_at"}
)


class NotificationService:
    """Single entry point for turning raised events into deliveries."""

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        dispatcher: DeliveryDispatcher,
        batch_size: int = DEFAULT_BATCH_SIZE,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        self._uow_factory = uow_factory
        self._dispatcher = dispatcher
        self._batch_size = batch_size
        self._concurrency = max(1, concurrency)

    # --- Ingest ---

    async def enqueue(self, event: NotificationEvent) -> tuple[NotificationEvent, bool]:
        """Store a raised event unless its ID was already seen.

        Returns:
            Tuple of (stored_event, created). ``created`` is False for a
            redelivered event, in which case the stored copy is returned.
        """
        async with self._uow_factory() as uow:
            existing = await uow.notifications.get_event(event.id)
            if existing:
                logger.debug("notification_event_redelivered", event_id=str(event.id))
                return existing, False

            created = await uow.notifications.create_event(event)
            if created is None:
                # A concurrent redelivery inserted the same ID first.
                stored = await uow.notifications.get_event(event.id)
                if stored is None:
                    raise RuntimeError("notification event vanished after conflicting insert")
                logger.debug("notification_event_redelivered", event_id=str(event.id), raced=True)
                return stored, False
            await uow.commit()

        logger.info(
            "notification_event_enqueued",
            event_id=str(created.id),
            recipient_id=str(created.recipient_id),
            type=created.type.value,
        )
        return created, True

    async def get_event(self, event_id: UUID) -> NotificationEvent:
        """Get a stored event by ID."""
        async with self._uow_factory() as uow:
            event = await uow.notifications.get_event(event_id)
        if not event:
            raise NotificationEventNotFoundError(str(event_id))
        return event

    # --- Routing + dispatch ---

    async def route_and_dispatch(self, event_id: UUID) -> DispatchResult:
        """Process one stored event end to end."""
        event = await self.get_event(event_id)
        return await self.process(event)

    async def process(self, event: NotificationEvent) -> DispatchResult:
        """Route an already-loaded event and hand it to the dispatcher."""
        if event.is_terminal:
            return self._dispatcher.already_processed(event)

        decision = await self._decide(event)
        return await self._dispatcher.dispatch(event, decision)

    async def process_pending(self, limit: int | None = None) -> list[DispatchResult]:
        """Process one batch of pending events.

        Events of one recipient run sequentially in ``created_at`` order;
        different recipients run concurrently. An unexpected error on one
        event stops that recipient for this batch; its remaining events stay
        pending for the next one and other recipients are unaffected.
        """
        async with self._uow_factory() as uow:
            pending = await uow.notifications.list_pending(limit or self._batch_size)

        if not pending:
            return []

        by_recipient: dict[UUID, list[NotificationEvent]] = {}
        for event in pending:
            by_recipient.setdefault(event.recipient_id, []).append(event)

        semaphore = asyncio.Semaphore(self._concurrency)

        async def run_recipient(events: list[NotificationEvent]) -> list[DispatchResult]:
            results: list[DispatchResult] = []
            async with semaphore:
                for event in events:
                    try:
                        results.append(await self.process(event))
                    except Exception:
                        logger.error(
                            "notification_event_processing_failed",
                            event_id=str(event.id),
                            recipient_id=str(event.recipient_id),
                            exc_info=True,
                        )
                        break
            return results

        batches = await asyncio.gather(*(run_recipient(e) for e in by_recipient.values()))
        results = [result for batch in batches for result in batch]

        outcomes = Counter(result.outcome.value for result in results)
        logger.info(
            "notification_batch_processed",
            processed=len(results),
            recipients=len(by_recipient),
            **outcomes,
        )
        return results

    async def _decide(self, event: NotificationEvent) -> RoutingDecision:
        try:
            prefs = await self.load_preferences(event.recipient_id)
        except PreferenceLookupFailure as exc:
            decision = route_without_preferences(event)
            logger.warning(
                "preference_lookup_failed",
                event_id=str(event.id),
                recipient_id=str(event.recipient_id),
                type=event.type.value,
                decision=decision.decision.value,
                reason=exc.details.get("reason") if exc.details else None,
            )
            return decision
        return route(event, prefs)

    # --- Preferences ---

    async def load_preferences(self, user_id: UUID) -> NotificationPreferences:
        """Get a user's preferences, falling back to defaults when none are stored.

        Raises:
            PreferenceLookupFailure: If the preference store cannot be read.
        """
        try:
            async with self._uow_factory() as uow:
                prefs = await uow.preferences.get(user_id)
        except Exception as exc:
            raise PreferenceLookupFailure(str(user_id), reason=str(exc)) from exc
        return prefs or NotificationPreferences(user_id=user_id)

    async def update_preferences(self, user_id: UUID, **changes: Any) -> NotificationPreferences:
        """Apply a partial update to a user's preferences and store the full row."""
        unknown = set(changes) - _PREFERENCE_FIELDS
        if unknown:
            raise ValueError(f"Unknown preference fields: {sorted(unknown)}")

        async with self._uow_factory() as uow:
            current = await uow.preferences.get(user_id) or NotificationPreferences(user_id=user_id)
            for name, value in changes.items():
                setattr(current, name, value)
            current.updated_at = datetime.utcnow()
            saved = await uow.preferences.upsert(current)
            await uow.commit()
            return saved

    # --- Cleanup ---

    async def cleanup_processed(self, retention_days: int = DEFAULT_RETENTION_DAYS) -> int:
        """Delete terminal events older than the retention window."""
        cutoff = datetime.utcnow() - timedelta(days=retention_days)
        async with self._uow_factory() as uow:
            count = await uow.notifications.delete_processed_before(cutoff)
            await uow.commit()
            return count
