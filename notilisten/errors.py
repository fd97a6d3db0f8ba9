# =============================================================================
# notilisten -- Error Types
# =============================================================================


class ListenerError(Exception):
    """Base exception for all notilisten errors."""


class ConnectError(ListenerError):
    """Opening a notification session failed."""


class SessionError(ListenerError):
    """An open session failed (lost connection, broken stream, failed close)."""


class SubscribeError(ListenerError):
    """Registering interest in a topic on an open session failed."""

    def __init__(self, topic: str, message: str = "") -> None:
        self.topic = topic
        super().__init__(message or f"Failed to subscribe to {topic!r}")


class BacklogError(ListenerError):
    """A backlog recovery handler failed."""

    def __init__(self, topic: str, message: str = "") -> None:
        self.topic = topic
        super().__init__(message or f"Backlog recovery failed for {topic!r}")


class HandlerError(ListenerError):
    """A notification handler raised while processing a notification.

    Handler errors are isolated: they are reported but never end the session.
    """

    def __init__(self, topic: str, message: str = "") -> None:
        self.topic = topic
        super().__init__(message or f"Handler for {topic!r} failed")
