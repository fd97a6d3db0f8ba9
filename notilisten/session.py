# =============================================================================
# notilisten -- Session Management
# =============================================================================
#
# A SessionManager owns exactly one transport session for one connection
# cycle: open, subscribe every registered topic, run backlog recovery, then
# serve notifications until something fails.  It always closes the session
# it opened, once.
# =============================================================================

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Awaitable, Callable, Protocol, runtime_checkable

from ._logging import logger
from ._stop import Stopped, run_until_stopped
from .errors import BacklogError, ConnectError, SessionError, SubscribeError
from .observer import ErrorObserver, report_error
from .types import BacklogFailurePolicy

if TYPE_CHECKING:
    from .dispatch import Dispatcher
    from .registry import HandlerRegistry
    from .types import ListenerStats, Notification


@runtime_checkable
class Session(Protocol):
    """One live connection to the notification service.

    Implementations are supplied by transports (see ``notilisten.memory``,
    ``notilisten.postgres`` and ``notilisten.websocket``).
    """

    async def subscribe(self, topic: str) -> None:
        """Register interest in *topic* on this session."""
        ...

    async def wait_for_notification(self) -> Notification:
        """Block until the next notification arrives or the session fails."""
        ...

    async def close(self) -> None:
        """Release the session.  Must be safe to call on a broken session."""
        ...


Connect = Callable[[], Awaitable[Session]]


class SessionManager:
    """Drives a single session through open -> subscribe -> backlog -> serve.

    Every blocking step races the stop signal and raises ``Stopped`` when it
    loses.  Collaborator failures are re-raised as the matching
    :class:`~notilisten.errors.ListenerError` subclass.
    """

    def __init__(
        self,
        connect: Connect,
        registry: HandlerRegistry,
        dispatcher: Dispatcher,
        stop: asyncio.Event,
        stats: ListenerStats,
        *,
        backlog_failure_policy: BacklogFailurePolicy = BacklogFailurePolicy.RECONNECT,
        close_timeout: float | None = None,
        on_error: ErrorObserver | None = None,
    ) -> None:
        self._connect = connect
        self._registry = registry
        self._dispatcher = dispatcher
        self._stop = stop
        self._stats = stats
        self._backlog_policy = backlog_failure_policy
        self._close_timeout = close_timeout
        self._on_error = on_error

        self._session: Session | None = None
        self._closed = False

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def is_open(self) -> bool:
        return self._session is not None and not self._closed

    # -- Lifecycle ------------------------------------------------------------

    async def open(self) -> Session:
        if self._session is not None:
            raise SessionError("SessionManager already opened a session")
        try:
            session = await run_until_stopped(self._connect(), self._stop)
        except (Stopped, ConnectError):
            raise
        except Exception as exc:
            raise ConnectError(f"Failed to connect: {exc}") from exc

        self._session = session
        self._stats.sessions_opened += 1
        return session

    async def subscribe_all(self) -> None:
        session = self._require_session()
        for topic in self._registry.topics:
            try:
                await run_until_stopped(session.subscribe(topic), self._stop)
            except (Stopped, SubscribeError):
                raise
            except Exception as exc:
                raise SubscribeError(topic, f"Failed to subscribe to {topic!r}: {exc}") from exc
            logger.debug("Subscribed to %r", topic)

    async def recover_backlog(self) -> None:
        """Run every backlog-capable handler once, in registration order."""
        session = self._require_session()
        for topic, handler in self._registry.backlog_handlers():
            try:
                await run_until_stopped(
                    handler.handle_backlog(topic, session, self._stop),  # type: ignore[attr-defined]
                    self._stop,
                )
            except Stopped:
                raise
            except Exception as exc:
                err = BacklogError(topic, f"Backlog recovery for {topic!r} failed: {exc}")
                if self._backlog_policy == BacklogFailurePolicy.RECONNECT:
                    raise err from exc
                err.__cause__ = exc
                logger.warning("Skipping backlog recovery for %r: %s", topic, exc)
                self._stats.session_errors += 1
                await report_error(self._on_error, err, self._stop)

    async def next_notification(self) -> Notification:
        session = self._require_session()
        try:
            notification = await run_until_stopped(
                session.wait_for_notification(), self._stop
            )
        except (Stopped, SessionError):
            raise
        except Exception as exc:
            raise SessionError(f"Waiting for notification failed: {exc}") from exc
        self._stats.notifications_received += 1
        return notification

    async def dispatch(self, notification: Notification) -> bool:
        return await self._dispatcher.dispatch(
            notification, self._require_session(), self._stop
        )

    async def close(self) -> None:
        """Close the session if one was opened.  Only the first call acts."""
        if self._closed:
            return
        self._closed = True
        session = self._session
        if session is None:
            return

        started = time.monotonic()
        try:
            if self._close_timeout is not None:
                await asyncio.wait_for(session.close(), timeout=self._close_timeout)
            else:
                await session.close()
        except asyncio.TimeoutError:
            logger.warning("Session close timed out after %.1fs", self._close_timeout)
        except Exception as exc:
            logger.warning("Session close failed: %s", exc)
        else:
            logger.debug("Session closed in %.3fs", time.monotonic() - started)

    def _require_session(self) -> Session:
        if self._session is None or self._closed:
            raise SessionError("No open session")
        return self._session
