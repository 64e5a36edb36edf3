"""In-process unread change signals."""

import asyncio
from types import TracebackType
from uuid import UUID

import structlog

logger = structlog.get_logger()


class UnreadListener:
    """Receives change signals for one user.

    Holds at most one pending signal: bursts of changes collapse into a
    single wake-up, after which the consumer re-reads the count.
    """

    def __init__(self, bus: "InMemoryUnreadSignalBus", user_id: UUID) -> None:
        self._bus = bus
        self.user_id = user_id
        self._queue: asyncio.Queue[None] = asyncio.Queue(maxsize=1)
        self._closed = False

    def notify(self) -> None:
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            pass

    async def wait(self) -> None:
        await self._queue.get()

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._bus.remove(self)

    def __enter__(self) -> "UnreadListener":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


class InMemoryUnreadSignalBus:
    """IUnreadSignalBus for a single process.

    Must be used from one event loop. Listeners registered after a publish
    do not see it; callers register before their first read.
    """

    def __init__(self) -> None:
        self._listeners: dict[UUID, set[UnreadListener]] = {}

    def publish(self, user_id: UUID) -> None:
        for listener in list(self._listeners.get(user_id, ())):
            listener.notify()

    def listen(self, user_id: UUID) -> UnreadListener:
        listener = UnreadListener(self, user_id)
        self._listeners.setdefault(user_id, set()).add(listener)
        logger.debug("unread_listener_added", user_id=str(user_id))
        return listener

    def remove(self, listener: UnreadListener) -> None:
        listeners = self._listeners.get(listener.user_id)
        if not listeners:
            return
        listeners.discard(listener)
        if not listeners:
            del self._listeners[listener.user_id]
        logger.debug("unread_listener_removed", user_id=str(listener.user_id))

    def listener_count(self, user_id: UUID) -> int:
        return len(self._listeners.get(user_id, ()))
