# =============================================================================
# notilisten -- In-Process Transport
# =============================================================================
#
# A broker living in the event loop.  Useful for tests, examples and for
# wiring components of one process together through the same Listener API
# that is used against a real notification service.
# =============================================================================

from __future__ import annotations

import asyncio
import itertools

from ._logging import logger
from .errors import ConnectError, SessionError, SubscribeError
from .types import Notification

_CLOSED = object()


class MemorySession:
    """A session on a :class:`MemoryBroker`."""

    def __init__(self, broker: MemoryBroker, session_id: int) -> None:
        self._broker = broker
        self.session_id = session_id
        self._queue: asyncio.Queue[Notification | BaseException | object] = asyncio.Queue()
        self._topics: set[str] = set()
        self._closed = False
        self.close_count = 0

    @property
    def topics(self) -> frozenset[str]:
        return frozenset(self._topics)

    @property
    def closed(self) -> bool:
        return self._closed

    async def subscribe(self, topic: str) -> None:
        if self._closed:
            raise SubscribeError(topic, "Session is closed")
        failure = self._broker._subscribe_failures.pop(topic, None)
        if failure is not None:
            raise failure
        self._topics.add(topic)

    async def wait_for_notification(self) -> Notification:
        if self._closed:
            raise SessionError("Session is closed")
        item = await self._queue.get()
        if isinstance(item, Notification):
            return item
        if isinstance(item, BaseException):
            self._closed = True
            raise item
        raise SessionError("Session is closed")

    async def close(self) -> None:
        self.close_count += 1
        self._closed = True
        self._broker._sessions.discard(self)
        self._queue.put_nowait(_CLOSED)

    def _deliver(self, notification: Notification) -> None:
        if not self._closed and notification.topic in self._topics:
            self._queue.put_nowait(notification)

    def _fail(self, exc: BaseException) -> None:
        self._queue.put_nowait(exc)

    def __repr__(self) -> str:
        return f"MemorySession(id={self.session_id}, topics={sorted(self._topics)})"


class MemoryBroker:
    """In-process publish/subscribe service.

    ``connect`` has the :data:`~notilisten.session.Connect` signature, so a
    broker plugs straight into a listener::

        broker = MemoryBroker()
        listener = Listener(broker.connect)
        broker.publish("orders", "42")

    Notifications published while no session is subscribed to the topic are
    dropped, as with a real LISTEN/NOTIFY style service.
    """

    def __init__(self) -> None:
        self._sessions: set[MemorySession] = set()
        self._ids = itertools.count(1)
        self._connect_failures = 0
        self._subscribe_failures: dict[str, BaseException] = {}
        self.connect_count = 0
        self.history: list[MemorySession] = []

    @property
    def open_sessions(self) -> list[MemorySession]:
        return sorted(self._sessions, key=lambda s: s.session_id)

    async def connect(self) -> MemorySession:
        self.connect_count += 1
        if self._connect_failures > 0:
            self._connect_failures -= 1
            raise ConnectError("Broker refused the connection")
        session = MemorySession(self, next(self._ids))
        self._sessions.add(session)
        self.history.append(session)
        logger.debug("Memory session %d opened", session.session_id)
        return session

    def publish(self, topic: str, payload: str, sender_id: int | None = None) -> int:
        """Deliver to every open session subscribed to *topic*.

        Returns the number of sessions the notification was queued on.
        """
        notification = Notification(topic=topic, payload=payload, sender_id=sender_id)
        delivered = 0
        for session in self.open_sessions:
            if topic in session.topics:
                session._deliver(notification)
                delivered += 1
        return delivered

    def fail_sessions(self, exc: BaseException | None = None) -> None:
        """Break every open session; their next wait raises *exc*."""
        for session in self.open_sessions:
            session._fail(exc or SessionError("Connection lost"))
            self._sessions.discard(session)

    def fail_next_connects(self, count: int = 1) -> None:
        self._connect_failures += count

    def fail_next_subscribe(self, topic: str, exc: BaseException | None = None) -> None:
        self._subscribe_failures[topic] = exc or SubscribeError(topic, "Broker rejected LISTEN")

    async def wait_subscribed(self, topic: str, timeout: float | None = None) -> MemorySession:
        """Wait until some open session is subscribed to *topic*."""

        async def poll() -> MemorySession:
            while True:
                for session in self.open_sessions:
                    if topic in session.topics:
                        return session
                await asyncio.sleep(0.001)

        return await asyncio.wait_for(poll(), timeout=timeout)
