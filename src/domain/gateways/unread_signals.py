"""Unread-change signal protocol."""

from types import TracebackType
from typing import Protocol
from uuid import UUID


class IUnreadListener(Protocol):
    """One consumer's view of the signals for a single user."""

    async def wait(self) -> None:
        """Block until at least one change signal arrived since the last wait."""
        ...

    def close(self) -> None:
        """Stop receiving signals."""
        ...

    def __enter__(self) -> "IUnreadListener": ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None: ...


class IUnreadSignalBus(Protocol):
    """Carries opaque "recipient changed" notices, never counts or payloads."""

    def publish(self, user_id: UUID) -> None:
        """Notify listeners of user_id that their inbox changed."""
        ...

    def listen(self, user_id: UUID) -> IUnreadListener:
        """Start listening for changes to user_id's inbox."""
        ...
