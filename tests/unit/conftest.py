"""Shared fixtures for unit tests."""

from typing import Any
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest

from domain.entities.notification import NotificationEvent, NotificationEventType


class FakeUnitOfWork:
    """Fake Unit of Work with repository mocks for unit testing."""

    def __init__(self) -> None:
        self.notifications = AsyncMock()
        self.preferences = AsyncMock()
        self.push_subscriptions = AsyncMock()
        self.commits = 0
        self.rollbacks = 0

    @property
    def committed(self) -> bool:
        return self.commits > 0

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1

    async def __aenter__(self) -> "FakeUnitOfWork":
        return self

    async def __aexit__(self, *args: Any) -> None:
        pass


@pytest.fixture
def uow() -> FakeUnitOfWork:
    """Create a fresh FakeUnitOfWork."""
    return FakeUnitOfWork()


@pytest.fixture
def user_id() -> UUID:
    """A random user ID."""
    return uuid4()


@pytest.fixture
def make_event(user_id: UUID):
    """Build a pending event for user_id."""

    def _make(
        event_type: NotificationEventType = NotificationEventType.MENTION,
        **overrides: Any,
    ) -> NotificationEvent:
        fields: dict[str, Any] = {
            "recipient_id": user_id,
            "type": event_type,
            "title": "Alex mentioned you",
            "body": "in Weekly check-in",
            "link": "/app/checkins/42",
        }
        fields.update(overrides)
        return NotificationEvent(**fields)

    return _make
