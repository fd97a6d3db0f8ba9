# =============================================================================
# notilisten -- Type Definitions
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .constants import (
    BACKOFF_BASE_DELAY,
    BACKOFF_FACTOR,
    BACKOFF_MAX_DELAY,
    SESSION_CLOSE_TIMEOUT,
)


class ListenerState(str, Enum):
    """Lifecycle state of a :class:`~notilisten.listener.Listener`.

    Typical flow: IDLE -> CONNECTING -> SUBSCRIBING -> RECOVERING_BACKLOG ->
    WAITING <-> DISPATCHING -> CLOSING -> CONNECTING (or STOPPED).
    STOPPED is reached only once the stop signal has been observed.
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    SUBSCRIBING = "subscribing"
    RECOVERING_BACKLOG = "recovering_backlog"
    WAITING = "waiting"
    DISPATCHING = "dispatching"
    CLOSING = "closing"
    BACKING_OFF = "backing_off"
    STOPPED = "stopped"


class BackoffMode(str, Enum):
    """Growth curve of the delay between reconnection attempts."""

    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    FIBONACCI = "fibonacci"
    CONSTANT = "constant"


class BacklogFailurePolicy(str, Enum):
    """What to do when a backlog recovery handler fails.

    RECONNECT -- treat it as a session failure: close, back off, retry.
    SKIP -- report it, skip that handler and continue to live dispatch.
    """

    RECONNECT = "reconnect"
    SKIP = "skip"


@dataclass(frozen=True, slots=True)
class Notification:
    """A message received on a subscribed topic.

    Attributes:
        topic: Topic (channel) the notification was published on.
        payload: Message body as delivered by the transport.
        sender_id: Identity of the publisher when the transport reports
            one (e.g. the PostgreSQL backend PID).
    """

    topic: str
    payload: str
    sender_id: int | None = None


@dataclass
class BackoffConfig:
    """Configuration for the delay between reconnection attempts.

    Attributes:
        mode: Growth curve (default: exponential).
        base_delay: Delay in seconds after the first failure.
        max_delay: Upper bound for any delay, in seconds.
        factor: Multiplier per failure for exponential backoff.
        jitter: Randomise each delay by +/-10% to avoid thundering herd.
    """

    mode: BackoffMode = BackoffMode.EXPONENTIAL
    base_delay: float = BACKOFF_BASE_DELAY
    max_delay: float = BACKOFF_MAX_DELAY
    factor: float = BACKOFF_FACTOR
    jitter: bool = False


@dataclass
class ListenerConfig:
    """Configuration for a :class:`~notilisten.listener.Listener`.

    Attributes:
        backoff: Reconnection backoff settings.
        backlog_failure_policy: How a failing backlog handler is treated.
        close_timeout: Seconds to wait for ``Session.close()`` before
            abandoning it.
    """

    backoff: BackoffConfig = field(default_factory=BackoffConfig)
    backlog_failure_policy: BacklogFailurePolicy = BacklogFailurePolicy.RECONNECT
    close_timeout: float = SESSION_CLOSE_TIMEOUT


@dataclass
class ListenerStats:
    """Counters for a single listener."""

    sessions_opened: int = 0
    reconnect_count: int = 0
    consecutive_failures: int = 0
    notifications_received: int = 0
    notifications_dispatched: int = 0
    notifications_unrouted: int = 0
    handler_errors: int = 0
    session_errors: int = 0
    connected_since: float | None = None
