"""Dependency injection factories for API v1."""

from functools import lru_cache
from typing import Callable

from core.config import settings
from domain.services.delivery_dispatcher import DeliveryDispatcher
from domain.services.notification_service import NotificationService
from domain.services.subscription_service import SubscriptionService
from domain.services.unread_service import UnreadCounterService
from infrastructure.database.session import async_session_factory
from infrastructure.database.sqlalchemy_uow import SQLAlchemyUnitOfWork
from infrastructure.push.webpush_provider import WebPushProvider
from infrastructure.realtime.signal_bus import InMemoryUnreadSignalBus


def get_uow_factory() -> Callable[[], SQLAlchemyUnitOfWork]:
    """Factory for creating Unit of Work instances."""

    def factory() -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(async_session_factory)

    return factory


@lru_cache
def get_signal_bus() -> InMemoryUnreadSignalBus:
    """Process-wide unread signal bus shared by the dispatcher and SSE streams."""
    return InMemoryUnreadSignalBus()


@lru_cache
def get_push_provider() -> WebPushProvider:
    """Get the Web Push provider."""
    return WebPushProvider(
        vapid_private_key=settings.vapid_private_key,
        vapid_subject=settings.vapid_subject,
        ttl_seconds=settings.push_ttl_seconds,
        urgency=settings.push_urgency,
    )


@lru_cache
def get_delivery_dispatcher() -> DeliveryDispatcher:
    """Get Delivery dispatcher instance."""
    return DeliveryDispatcher(
        get_uow_factory(),
        push_provider=get_push_provider(),
        unread_signals=get_signal_bus(),
        max_attempts=settings.dispatch_max_attempts,
        max_push_failures=settings.push_max_consecutive_failures,
    )


@lru_cache
def get_notification_service() -> NotificationService:
    """Get Notification pipeline instance."""
    return NotificationService(
        get_uow_factory(),
        dispatcher=get_delivery_dispatcher(),
        batch_size=settings.dispatch_batch_size,
        concurrency=settings.dispatch_concurrency,
    )


@lru_cache
def get_unread_service() -> UnreadCounterService:
    """Get Unread counter instance."""
    return UnreadCounterService(get_uow_factory(), unread_signals=get_signal_bus())


@lru_cache
def get_subscription_service() -> SubscriptionService:
    """Get Subscription manager instance."""
    return SubscriptionService(
        get_uow_factory(),
        application_server_key=settings.vapid_public_key,
        timeout_seconds=settings.push_subscribe_timeout_seconds,
    )
