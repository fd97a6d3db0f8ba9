# =============================================================================
# notilisten -- Handler Registry
# =============================================================================

from __future__ import annotations

from types import MappingProxyType
from typing import Iterator, Mapping

from .handlers import Handler, supports_backlog


class HandlerRegistry:
    """Topic -> handler mapping, kept in registration order.

    Registering a topic twice replaces the handler but keeps the topic's
    original position, so subscription order stays deterministic.
    """

    def __init__(self, handlers: Mapping[str, Handler] | None = None) -> None:
        self._handlers: dict[str, Handler] = dict(handlers) if handlers else {}

    def register(self, topic: str, handler: Handler) -> None:
        self._handlers[topic] = handler

    def get(self, topic: str) -> Handler | None:
        return self._handlers.get(topic)

    @property
    def topics(self) -> list[str]:
        return list(self._handlers)

    def backlog_handlers(self) -> list[tuple[str, Handler]]:
        """Handlers offering backlog recovery, in registration order."""
        return [(t, h) for t, h in self._handlers.items() if supports_backlog(h)]

    def snapshot(self) -> HandlerRegistry:
        """Copy used by one ``listen`` run; later registrations do not leak in."""
        return HandlerRegistry(self._handlers)

    def as_mapping(self) -> Mapping[str, Handler]:
        return MappingProxyType(self._handlers)

    def __contains__(self, topic: object) -> bool:
        return topic in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)
