# =============================================================================
# notilisten -- Listener
# =============================================================================
#
# Reconnecting notification listener.  One task runs the state machine:
#
#   CONNECTING -> SUBSCRIBING -> RECOVERING_BACKLOG -> WAITING <-> DISPATCHING
#        ^                                                  |
#        +-------- BACKING_OFF <-------- CLOSING <----------+
#                                           |
#                                        STOPPED
#
# Any session-level failure goes through CLOSING and BACKING_OFF back to
# CONNECTING.  Handler failures never leave WAITING/DISPATCHING.  Only the
# stop signal leads to STOPPED.
# =============================================================================

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable

from ._logging import logger
from ._stop import Stopped, sleep_until_stopped
from .backoff import BackoffPolicy
from .dispatch import Dispatcher
from .errors import ListenerError
from .handlers import Handler, NotificationFunc, as_handler
from .observer import ErrorObserver, report_error
from .registry import HandlerRegistry
from .session import Connect, SessionManager
from .types import ListenerConfig, ListenerState, ListenerStats, Notification


class Listener:
    """Keeps one subscription session alive and routes its notifications.

    Args:
        connect: Coroutine function opening a new session.
        config: Backoff, backlog policy and close timeout settings.
        on_error: Called (sync or async) as ``on_error(exc, stop)`` with every
            non-fatal error and the stop event of the current run:
            connect, subscribe, backlog, wait and handler failures.
        on_state_change: Called with each new :class:`ListenerState`.

    Example::

        listener = Listener(connect_postgres("postgresql://localhost/app"))
        listener.handle("orders", OrderHandler())

        stop = asyncio.Event()
        task = asyncio.create_task(listener.listen(stop))
        ...
        stop.set()
        await task
    """

    def __init__(
        self,
        connect: Connect,
        *,
        config: ListenerConfig | None = None,
        on_error: ErrorObserver | None = None,
        on_state_change: Callable[[ListenerState], Any] | None = None,
    ) -> None:
        self._connect = connect
        self._config = config or ListenerConfig()
        self._backoff = BackoffPolicy(self._config.backoff)
        self._on_error = on_error
        self._on_state_change = on_state_change

        self._registry = HandlerRegistry()
        self._stats = ListenerStats()
        self._state = ListenerState.IDLE

        # Per-run state, only touched by the task running listen()
        self._stop: asyncio.Event | None = None
        self._running = False
        self._active: HandlerRegistry | None = None
        self._dispatcher: Dispatcher | None = None
        self._manager: SessionManager | None = None
        self._notification: Notification | None = None

        self._transitions: dict[ListenerState, Callable[[], Awaitable[ListenerState]]] = {
            ListenerState.CONNECTING: self._connecting,
            ListenerState.SUBSCRIBING: self._subscribing,
            ListenerState.RECOVERING_BACKLOG: self._recovering_backlog,
            ListenerState.WAITING: self._waiting,
            ListenerState.DISPATCHING: self._dispatching,
            ListenerState.CLOSING: self._closing,
            ListenerState.BACKING_OFF: self._backing_off,
        }

    # -- Properties -----------------------------------------------------------

    @property
    def state(self) -> ListenerState:
        return self._state

    @property
    def stats(self) -> ListenerStats:
        return self._stats

    @property
    def is_listening(self) -> bool:
        return self._running

    @property
    def topics(self) -> list[str]:
        return self._registry.topics

    # -- Public API -----------------------------------------------------------

    def handle(self, topic: str, handler: Handler | NotificationFunc) -> None:
        """Register *handler* for *topic*, replacing any previous one.

        Registrations are picked up when :meth:`listen` starts; changes made
        while it runs apply to the next run.
        """
        self._registry.register(topic, as_handler(handler))

    def stop(self) -> None:
        """Ask the running :meth:`listen` call to close its session and return."""
        if self._stop is not None:
            self._stop.set()

    async def listen(self, stop: asyncio.Event | None = None) -> None:
        """Listen until *stop* is set or :meth:`stop` is called.

        Returns normally on stop.  Transient failures are reported and
        retried with backoff, never raised.  If the calling task is
        cancelled the session is still closed and ``CancelledError``
        propagates.
        """
        if self._running:
            raise ListenerError("Listener is already listening")

        self._running = True
        self._stop = stop if stop is not None else asyncio.Event()
        self._active = self._registry.snapshot()
        self._dispatcher = Dispatcher(self._active, self._stats, on_error=self._on_error)
        self._stats.consecutive_failures = 0
        logger.info("Listening on %d topic(s): %s", len(self._active), ", ".join(self._active))

        state = ListenerState.CONNECTING
        try:
            while state is not ListenerState.STOPPED:
                self._set_state(state)
                state = await self._transitions[state]()
        finally:
            if self._manager is not None:
                await self._manager.close()
                self._manager = None
            self._stats.connected_since = None
            self._notification = None
            self._running = False
            self._set_state(ListenerState.STOPPED)
            logger.info("Listener stopped")

    # -- States ---------------------------------------------------------------

    async def _connecting(self) -> ListenerState:
        assert self._stop is not None and self._active is not None
        assert self._dispatcher is not None
        self._manager = SessionManager(
            self._connect,
            self._active,
            self._dispatcher,
            self._stop,
            self._stats,
            backlog_failure_policy=self._config.backlog_failure_policy,
            close_timeout=self._config.close_timeout,
            on_error=self._on_error,
        )
        return await self._attempt(self._manager.open, ListenerState.SUBSCRIBING)

    async def _subscribing(self) -> ListenerState:
        assert self._manager is not None
        return await self._attempt(self._manager.subscribe_all, ListenerState.RECOVERING_BACKLOG)

    async def _recovering_backlog(self) -> ListenerState:
        assert self._manager is not None
        next_state = await self._attempt(self._manager.recover_backlog, ListenerState.WAITING)
        if next_state is ListenerState.WAITING:
            # Fully (re)established: the only condition that resets backoff.
            self._stats.consecutive_failures = 0
            self._stats.connected_since = time.monotonic()
            logger.info("Session established (%d topic(s))", len(self._active or ()))
        return next_state

    async def _waiting(self) -> ListenerState:
        assert self._manager is not None

        async def receive() -> None:
            self._notification = await self._manager.next_notification()  # type: ignore[union-attr]

        return await self._attempt(receive, ListenerState.DISPATCHING)

    async def _dispatching(self) -> ListenerState:
        assert self._manager is not None and self._notification is not None
        notification, self._notification = self._notification, None
        await self._manager.dispatch(notification)
        return ListenerState.WAITING

    async def _closing(self) -> ListenerState:
        assert self._stop is not None
        if self._manager is not None:
            await self._manager.close()
            self._manager = None
        self._stats.connected_since = None
        if self._stop.is_set():
            return ListenerState.STOPPED
        return ListenerState.BACKING_OFF

    async def _backing_off(self) -> ListenerState:
        assert self._stop is not None
        failures = self._stats.consecutive_failures
        delay = self._backoff.delay(failures)
        logger.info("Reconnecting in %.1fs (failure streak %d)", delay, failures + 1)
        stopped = await sleep_until_stopped(delay, self._stop)
        self._stats.consecutive_failures += 1
        if stopped:
            return ListenerState.STOPPED
        self._stats.reconnect_count += 1
        return ListenerState.CONNECTING

    # -- Helpers --------------------------------------------------------------

    async def _attempt(
        self, step: Callable[[], Awaitable[Any]], next_state: ListenerState
    ) -> ListenerState:
        """Run one session step; any failure or stop routes to CLOSING."""
        try:
            await step()
        except Stopped:
            return ListenerState.CLOSING
        except ListenerError as exc:
            self._stats.session_errors += 1
            logger.warning("Session failed in %s: %s", self._state.value, exc)
            await report_error(self._on_error, exc, self._stop)
            return ListenerState.CLOSING
        return next_state

    def _set_state(self, new_state: ListenerState) -> None:
        if new_state == self._state:
            return
        old = self._state
        self._state = new_state
        logger.debug("State: %s -> %s", old.value, new_state.value)
        if self._on_state_change:
            try:
                self._on_state_change(new_state)
            except Exception:
                logger.exception("State change callback failed")
