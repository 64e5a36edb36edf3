"""Unit of Work protocol."""

from typing import Protocol

from domain.repositories.notification_repository import INotificationRepository
from domain.repositories.preference_repository import IPreferenceRepository
from domain.repositories.push_subscription_repository import IPushSubscriptionRepository


class IUnitOfWork(Protocol):
    """Unit of Work interface for managing transactions."""

    notifications: INotificationRepository
    preferences: IPreferenceRepository
    push_subscriptions: IPushSubscriptionRepository

    async def commit(self) -> None:
        """Commit the current transaction."""
        ...

    async def rollback(self) -> None:
        """Rollback the current transaction."""
        ...

    async def __aenter__(self) -> "IUnitOfWork":
        """Enter the context manager."""
        ...

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore
        """Exit the context manager."""
        ...
