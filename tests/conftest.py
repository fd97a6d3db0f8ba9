"""Shared fixtures for notilisten tests."""

import asyncio
import contextlib

import pytest

from notilisten.memory import MemoryBroker
from notilisten.types import BackoffConfig, BackoffMode, ListenerConfig

# Generous upper bound for anything that should happen "promptly"
PROMPT = 2.0


@pytest.fixture()
def broker():
    return MemoryBroker()


@pytest.fixture()
def fast_config():
    """Listener config with millisecond backoff so reconnect tests stay fast."""
    return ListenerConfig(
        backoff=BackoffConfig(mode=BackoffMode.EXPONENTIAL, base_delay=0.005, max_delay=0.02),
        close_timeout=1.0,
    )


@pytest.fixture()
def running():
    """Run ``listener.listen`` in a task for the duration of an ``async with``.

    Yields the stop event; leaving the block sets it and waits for ``listen``
    to return.
    """

    @contextlib.asynccontextmanager
    async def _running(listener, stop=None):
        stop = stop if stop is not None else asyncio.Event()
        task = asyncio.create_task(listener.listen(stop))
        try:
            yield stop
        finally:
            stop.set()
            await asyncio.wait_for(task, timeout=PROMPT)

    return _running


@pytest.fixture()
def wait_until():
    async def _wait_until(predicate, timeout=PROMPT):
        async def poll():
            while not predicate():
                await asyncio.sleep(0.001)

        await asyncio.wait_for(poll(), timeout=timeout)

    return _wait_until
