"""Reconnecting publish/subscribe notification listener.

Usage::

    import asyncio
    from notilisten import Listener
    from notilisten.postgres import connect_postgres

    async def on_order(notification, session, stop):
        print(notification.topic, notification.payload)

    listener = Listener(connect_postgres("postgresql://localhost/app"))
    listener.handle("orders", on_order)

    stop = asyncio.Event()
    await listener.listen(stop)   # returns once stop is set

The listener keeps one session open, subscribes every registered topic,
runs backlog recovery for handlers that offer it, then dispatches
notifications one at a time.  Lost sessions are re-established with
backoff; failing handlers are reported and skipped.

Optional extras::

    pip install notilisten[fast]   # orjson for WebSocket frame decoding
"""

from ._version import __version__
from .backoff import BackoffPolicy
from .errors import (
    BacklogError,
    ConnectError,
    HandlerError,
    ListenerError,
    SessionError,
    SubscribeError,
)
from .handlers import BacklogHandler, Handler, HandlerFunc, supports_backlog
from .listener import Listener
from .memory import MemoryBroker, MemorySession
from .registry import HandlerRegistry
from .session import Connect, Session
from .types import (
    BackoffConfig,
    BackoffMode,
    BacklogFailurePolicy,
    ListenerConfig,
    ListenerState,
    ListenerStats,
    Notification,
)

__all__ = [
    "__version__",
    "Listener",
    "Notification",
    "Handler",
    "BacklogHandler",
    "HandlerFunc",
    "supports_backlog",
    "HandlerRegistry",
    "Session",
    "Connect",
    "BackoffPolicy",
    "BackoffConfig",
    "BackoffMode",
    "BacklogFailurePolicy",
    "ListenerConfig",
    "ListenerState",
    "ListenerStats",
    "MemoryBroker",
    "MemorySession",
    "ListenerError",
    "ConnectError",
    "SessionError",
    "SubscribeError",
    "BacklogError",
    "HandlerError",
]
