# =============================================================================
# notilisten -- Handler Capabilities
# =============================================================================
#
# A handler must be able to handle a notification.  It may additionally be
# able to recover backlog, which the listener runs once per new session
# before live dispatch starts.  The optional capability is detected with a
# runtime-checkable protocol, not through a base class.
# =============================================================================

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .session import Session
    from .types import Notification

NotificationFunc = Callable[
    ["Notification", "Session", asyncio.Event], Awaitable[Any]
]
BacklogFunc = Callable[[str, "Session", asyncio.Event], Awaitable[Any]]


@runtime_checkable
class Handler(Protocol):
    """Processes notifications for one topic.

    ``stop`` is the listener's stop signal.  Handlers that block on their
    own I/O should watch it and return early once it is set; the listener
    never interrupts a running handler.
    """

    async def handle_notification(
        self, notification: Notification, session: Session, stop: asyncio.Event
    ) -> None: ...


@runtime_checkable
class BacklogHandler(Protocol):
    """Optional capability: catch up on work missed while disconnected."""

    async def handle_backlog(
        self, topic: str, session: Session, stop: asyncio.Event
    ) -> None: ...


def supports_backlog(handler: Any) -> bool:
    if isinstance(handler, HandlerFunc):
        return handler.backlog is not None
    return isinstance(handler, BacklogHandler)


class HandlerFunc:
    """Adapt coroutine functions into a handler.

    Args:
        fn: ``async fn(notification, session, stop)``.
        backlog: Optional ``async backlog(topic, session, stop)``.  The
            wrapper offers backlog recovery only when this is given.

    Example::

        async def on_order(notification, session, stop):
            print(notification.payload)

        listener.handle("orders", HandlerFunc(on_order))
    """

    __slots__ = ("fn", "backlog")

    def __init__(self, fn: NotificationFunc, backlog: BacklogFunc | None = None) -> None:
        self.fn = fn
        self.backlog = backlog

    async def handle_notification(
        self, notification: Notification, session: Session, stop: asyncio.Event
    ) -> None:
        await self.fn(notification, session, stop)

    async def handle_backlog(self, topic: str, session: Session, stop: asyncio.Event) -> None:
        if self.backlog is not None:
            await self.backlog(topic, session, stop)

    def __repr__(self) -> str:
        name = getattr(self.fn, "__qualname__", repr(self.fn))
        return f"HandlerFunc({name})"


def as_handler(handler: Handler | NotificationFunc) -> Handler:
    """Return *handler* unchanged, or wrap a bare coroutine function."""
    if isinstance(handler, Handler):
        return handler
    if callable(handler):
        return HandlerFunc(handler)
    raise TypeError(f"Not a notification handler: {handler!r}")
