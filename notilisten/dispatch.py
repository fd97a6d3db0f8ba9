# =============================================================================
# notilisten -- Notification Dispatch
# =============================================================================

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from ._logging import logger
from .errors import HandlerError
from .observer import ErrorObserver, report_error

if TYPE_CHECKING:
    from .registry import HandlerRegistry
    from .session import Session
    from .types import ListenerStats, Notification


class Dispatcher:
    """Routes notifications to the handler registered for their topic.

    Handler failures are isolated here: they are logged and reported to the
    error observer, and dispatch carries on with the next notification.
    Only the handler decides how long it runs; it is awaited to completion.
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        stats: ListenerStats,
        *,
        on_error: ErrorObserver | None = None,
    ) -> None:
        self._registry = registry
        self._stats = stats
        self._on_error = on_error

    async def dispatch(
        self, notification: Notification, session: Session, stop: asyncio.Event
    ) -> bool:
        """Deliver *notification*.  Returns True if the handler succeeded."""
        handler = self._registry.get(notification.topic)
        if handler is None:
            self._stats.notifications_unrouted += 1
            logger.warning(
                "Discarding notification for unregistered topic %r",
                notification.topic,
            )
            return False

        try:
            await handler.handle_notification(notification, session, stop)
        except Exception as exc:
            self._stats.handler_errors += 1
            logger.exception("Handler for topic %r failed", notification.topic)
            err = HandlerError(notification.topic, f"Handler for {notification.topic!r} failed: {exc}")
            err.__cause__ = exc
            await report_error(self._on_error, err, stop)
            return False

        self._stats.notifications_dispatched += 1
        return True
