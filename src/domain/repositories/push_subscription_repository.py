"""Push subscription repository protocol."""

from typing import Protocol
from uuid import UUID

from domain.entities.push_subscription import PushSubscription


class IPushSubscriptionRepository(Protocol):
    """Repository interface for the push subscription registry."""

    async def list_for_user(self, user_id: UUID) -> list[PushSubscription]:
        """Get all push endpoints of a user."""
        ...

    async def get(self, user_id: UUID, endpoint: str) -> PushSubscription | None:
        """Get one subscription by its (user, endpoint) key."""
        ...

    async def upsert(self, subscription: PushSubscription) -> PushSubscription:
        """Insert or update keyed on (user_id, endpoint)."""
        ...

    async def delete(self, user_id: UUID, endpoint: str) -> bool:
        """Delete a subscription. Returns False if none matched."""
        ...

    async def record_failure(self, user_id: UUID, endpoint: str) -> int:
        """Increment the consecutive failure count. Returns the new count."""
        ...

    async def reset_failures(self, user_id: UUID, endpoint: str) -> None:
        """Clear the consecutive failure count after a successful send."""
        ...
