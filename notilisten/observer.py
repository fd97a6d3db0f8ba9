# =============================================================================
# notilisten -- Error Observation
# =============================================================================

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable

from ._logging import logger

# Called with the error and the stop event governing the run that hit it.
ErrorObserver = Callable[[BaseException, asyncio.Event], Any]


async def report_error(
    observer: ErrorObserver | None, exc: BaseException, stop: asyncio.Event
) -> None:
    """Hand a non-fatal error to *observer*, which may be sync or async.

    A failing observer is logged and otherwise ignored: observation must not
    change what the listener does next.
    """
    if observer is None:
        return
    try:
        result = observer(exc, stop)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception("Error observer raised while reporting %r", exc)
