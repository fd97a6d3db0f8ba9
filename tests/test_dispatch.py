"""Tests for notification dispatch and handler error isolation."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from notilisten.dispatch import Dispatcher
from notilisten.errors import HandlerError
from notilisten.handlers import HandlerFunc
from notilisten.registry import HandlerRegistry
from notilisten.types import ListenerStats, Notification


def collect(errors):
    return lambda exc, stop: errors.append(exc)


def make_dispatcher(handlers, on_error=None):
    reg = HandlerRegistry()
    for topic, fn in handlers.items():
        reg.register(topic, HandlerFunc(fn))
    stats = ListenerStats()
    return Dispatcher(reg, stats, on_error=on_error), stats


class TestDispatch:
    @pytest.mark.asyncio
    async def test_routes_by_topic(self):
        foo, bar = AsyncMock(), AsyncMock()
        dispatcher, stats = make_dispatcher({"foo": foo, "bar": bar})
        session, stop = MagicMock(), asyncio.Event()

        n = Notification("bar", "c")
        assert await dispatcher.dispatch(n, session, stop) is True
        bar.assert_awaited_once_with(n, session, stop)
        foo.assert_not_awaited()
        assert stats.notifications_dispatched == 1

    @pytest.mark.asyncio
    async def test_unregistered_topic_discarded(self):
        on_error = MagicMock()
        dispatcher, stats = make_dispatcher({"foo": AsyncMock()}, on_error=on_error)
        ok = await dispatcher.dispatch(Notification("other", "x"), MagicMock(), asyncio.Event())
        assert ok is False
        assert stats.notifications_unrouted == 1
        on_error.assert_not_called()

    @pytest.mark.asyncio
    async def test_handler_error_is_reported_not_raised(self):
        boom = RuntimeError("boom")
        errors = []
        dispatcher, stats = make_dispatcher(
            {"foo": AsyncMock(side_effect=boom)}, on_error=collect(errors)
        )
        ok = await dispatcher.dispatch(Notification("foo", "a"), MagicMock(), asyncio.Event())
        assert ok is False
        assert stats.handler_errors == 1
        assert len(errors) == 1
        assert isinstance(errors[0], HandlerError)
        assert errors[0].topic == "foo"
        assert errors[0].__cause__ is boom

    @pytest.mark.asyncio
    async def test_observer_receives_stop_event(self):
        on_error = MagicMock()
        dispatcher, _ = make_dispatcher(
            {"foo": AsyncMock(side_effect=ValueError("bad"))}, on_error=on_error
        )
        stop = asyncio.Event()
        await dispatcher.dispatch(Notification("foo", "a"), MagicMock(), stop)
        err, passed_stop = on_error.call_args.args
        assert isinstance(err, HandlerError)
        assert passed_stop is stop

    @pytest.mark.asyncio
    async def test_async_observer_awaited(self):
        on_error = AsyncMock()
        dispatcher, _ = make_dispatcher(
            {"foo": AsyncMock(side_effect=ValueError("bad"))}, on_error=on_error
        )
        await dispatcher.dispatch(Notification("foo", "a"), MagicMock(), asyncio.Event())
        on_error.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_observer_does_not_escape(self):
        on_error = MagicMock(side_effect=RuntimeError("observer broke"))
        dispatcher, _ = make_dispatcher(
            {"foo": AsyncMock(side_effect=ValueError("bad"))}, on_error=on_error
        )
        ok = await dispatcher.dispatch(Notification("foo", "a"), MagicMock(), asyncio.Event())
        assert ok is False
        on_error.assert_called_once()

    @pytest.mark.asyncio
    async def test_cancellation_is_not_isolated(self):
        dispatcher, _ = make_dispatcher({"foo": AsyncMock(side_effect=asyncio.CancelledError)})
        with pytest.raises(asyncio.CancelledError):
            await dispatcher.dispatch(Notification("foo", "a"), MagicMock(), asyncio.Event())
