# =============================================================================
# notilisten -- Stop Signal Racing
# =============================================================================
#
# Every suspension point of the listener races the operation against the
# stop signal and resolves as soon as either completes.
# =============================================================================

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, TypeVar

T = TypeVar("T")


class Stopped(Exception):
    """Internal: the stop signal won the race."""


async def run_until_stopped(aw: Awaitable[T], stop: asyncio.Event) -> T:
    """Await *aw* unless *stop* is set first.

    Returns the result of *aw*.  Raises :class:`Stopped` when the stop
    signal wins; the operation is then cancelled and awaited so it can
    release whatever it holds.  An operation that completed successfully
    wins a tie.
    """
    if stop.is_set():
        if asyncio.iscoroutine(aw):
            aw.close()
        raise Stopped

    task: asyncio.Future[T] = asyncio.ensure_future(aw)
    stopper = asyncio.ensure_future(stop.wait())
    try:
        await asyncio.wait({task, stopper}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        pending: list[asyncio.Future[Any]] = [f for f in (task, stopper) if not f.done()]
        for fut in pending:
            fut.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    if not task.cancelled() and task.exception() is None:
        return task.result()
    if stop.is_set():
        raise Stopped
    return task.result()


async def sleep_until_stopped(delay: float, stop: asyncio.Event) -> bool:
    """Sleep for *delay* seconds.  Returns True if woken by the stop signal."""
    if stop.is_set():
        return True
    if delay <= 0:
        return False
    try:
        await asyncio.wait_for(stop.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return False
    return True
