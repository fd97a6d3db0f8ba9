# =============================================================================
# notilisten -- Reconnect Backoff
# =============================================================================

from __future__ import annotations

import random

from .constants import BACKOFF_FIB_LIMIT, BACKOFF_JITTER_RATIO
from .types import BackoffConfig, BackoffMode


class BackoffPolicy:
    """Maps a failure streak to the wait before the next connect attempt.

    ``delay(0)`` is the wait after the first failure.  Without jitter the
    mapping is pure, non-decreasing and capped at ``max_delay``.

    Args:
        config: Backoff settings.  Defaults to exponential, 1s base, 60s cap.
    """

    def __init__(self, config: BackoffConfig | None = None) -> None:
        self._cfg = config or BackoffConfig()

    @property
    def config(self) -> BackoffConfig:
        return self._cfg

    def delay(self, failures: int) -> float:
        cfg = self._cfg
        n = max(0, failures)

        if cfg.mode == BackoffMode.CONSTANT:
            delay = cfg.base_delay
        elif cfg.mode == BackoffMode.LINEAR:
            delay = cfg.base_delay * (n + 1)
        elif cfg.mode == BackoffMode.FIBONACCI:
            delay = cfg.base_delay * _fib(min(n + 1, BACKOFF_FIB_LIMIT))
        else:
            # Exponential; once the cap is reached further growth is moot and
            # large exponents would overflow.
            try:
                delay = cfg.base_delay * (cfg.factor**n)
            except OverflowError:
                delay = cfg.max_delay

        delay = max(0.0, min(delay, cfg.max_delay))

        if cfg.jitter and delay > 0:
            jitter_amount = delay * BACKOFF_JITTER_RATIO * (2 * random.random() - 1)
            delay = max(0.0, min(delay + jitter_amount, cfg.max_delay))

        return delay


def _fib(n: int) -> int:
    a, b = 0, 1
    for _ in range(n):
        a, b = b, a + b
    return a
