"""Stand-in for the expensive, fragile downstream service."""

from __future__ import annotations

import asyncio
import random
from typing import Any

from allotment.balancer.exceptions import ProcessingError


class ExpensiveFragileService:
    """Sleeps a random latency per item and occasionally fails.

    Keeps counters so callers can verify how it was driven: ``processed``,
    ``failed``, the number of calls currently in progress and the peak of
    that number.
    """

    def __init__(
        self,
        max_latency_ms: float = 10.0,
        failure_rate: float = 0.0,
        rng: random.Random | None = None,
    ) -> None:
        self._max_latency = max_latency_ms / 1000.0
        self._failure_rate = failure_rate
        self._rng = rng or random.Random()
        self.processed = 0
        self.failed = 0
        self.concurrent = 0
        self.peak_concurrency = 0

    async def process(self, item: Any, cancel: asyncio.Event) -> None:
        self.concurrent += 1
        self.peak_concurrency = max(self.peak_concurrency, self.concurrent)
        try:
            await asyncio.sleep(self._rng.uniform(0.0, self._max_latency))
            if self._rng.random() < self._failure_rate:
                self.failed += 1
                raise ProcessingError(f"failed to process item {item!r}")
            self.processed += 1
        finally:
            self.concurrent -= 1
