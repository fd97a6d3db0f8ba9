"""Tests for handler capabilities and the registry."""

import asyncio

import pytest

from notilisten.handlers import (
    BacklogHandler,
    Handler,
    HandlerFunc,
    as_handler,
    supports_backlog,
)
from notilisten.registry import HandlerRegistry
from notilisten.types import Notification


class PlainHandler:
    async def handle_notification(self, notification, session, stop):
        pass


class CatchUpHandler(PlainHandler):
    async def handle_backlog(self, topic, session, stop):
        pass


async def noop(notification, session, stop):
    pass


class TestCapabilities:
    def test_plain_handler_has_no_backlog(self):
        h = PlainHandler()
        assert isinstance(h, Handler)
        assert not isinstance(h, BacklogHandler)
        assert supports_backlog(h) is False

    def test_backlog_capability_detected(self):
        h = CatchUpHandler()
        assert isinstance(h, Handler)
        assert supports_backlog(h) is True

    def test_handler_func_without_backlog(self):
        assert supports_backlog(HandlerFunc(noop)) is False

    def test_handler_func_with_backlog(self):
        async def backlog(topic, session, stop):
            pass

        assert supports_backlog(HandlerFunc(noop, backlog=backlog)) is True

    @pytest.mark.asyncio
    async def test_handler_func_forwards_arguments(self):
        seen = []

        async def fn(notification, session, stop):
            seen.append((notification, session, stop))

        async def backlog(topic, session, stop):
            seen.append((topic, session, stop))

        n = Notification("foo", "a")
        stop = asyncio.Event()
        h = HandlerFunc(fn, backlog=backlog)
        await h.handle_notification(n, "session", stop)
        await h.handle_backlog("foo", "session", stop)
        assert seen == [(n, "session", stop), ("foo", "session", stop)]

    def test_as_handler_wraps_functions(self):
        wrapped = as_handler(noop)
        assert isinstance(wrapped, HandlerFunc)
        assert wrapped.fn is noop
        assert "noop" in repr(wrapped)

    def test_as_handler_keeps_handlers(self):
        h = CatchUpHandler()
        assert as_handler(h) is h

    def test_as_handler_rejects_non_callables(self):
        with pytest.raises(TypeError):
            as_handler(42)


class TestNotification:
    def test_defaults(self):
        n = Notification(topic="foo", payload="a")
        assert n.sender_id is None

    def test_immutable(self):
        n = Notification(topic="foo", payload="a", sender_id=7)
        with pytest.raises(AttributeError):
            n.payload = "b"


class TestRegistry:
    def test_topics_in_registration_order(self):
        reg = HandlerRegistry()
        for topic in ("b", "a", "c"):
            reg.register(topic, PlainHandler())
        assert reg.topics == ["b", "a", "c"]
        assert list(reg) == ["b", "a", "c"]
        assert len(reg) == 3

    def test_last_registration_wins_and_keeps_position(self):
        reg = HandlerRegistry()
        first, second = PlainHandler(), PlainHandler()
        reg.register("a", first)
        reg.register("b", PlainHandler())
        reg.register("a", second)
        assert reg.get("a") is second
        assert reg.topics == ["a", "b"]

    def test_get_unknown_topic(self):
        assert HandlerRegistry().get("nope") is None
        assert "nope" not in HandlerRegistry()

    def test_backlog_handlers_filtered_in_order(self):
        reg = HandlerRegistry()
        c1, c2 = CatchUpHandler(), CatchUpHandler()
        reg.register("x", c1)
        reg.register("y", PlainHandler())
        reg.register("z", c2)
        assert reg.backlog_handlers() == [("x", c1), ("z", c2)]

    def test_snapshot_is_independent(self):
        reg = HandlerRegistry()
        reg.register("a", PlainHandler())
        snap = reg.snapshot()
        reg.register("b", PlainHandler())
        assert snap.topics == ["a"]
        assert reg.topics == ["a", "b"]

    def test_mapping_view_is_read_only(self):
        reg = HandlerRegistry()
        reg.register("a", PlainHandler())
        view = reg.as_mapping()
        with pytest.raises(TypeError):
            view["b"] = PlainHandler()
