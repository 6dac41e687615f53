"""A customer with a fixed amount of work and a periodic readiness signal."""

from __future__ import annotations

import asyncio
import random
from collections.abc import AsyncIterator

from allotment.balancer.config import SimulationConfig


class SimulatedCustomer:
    """Customer that asks to be served every ``interval`` seconds.

    The remaining workload is shared by every registration, so a customer
    that is registered again continues where the previous job left off.
    ``done`` is set once the last item has been handed out.
    """

    def __init__(
        self,
        workload: int,
        weight: int,
        interval: float = 1.0,
        name: str = "customer",
    ) -> None:
        if workload < 0:
            raise ValueError(f"workload must be non-negative, got {workload}")
        if weight < 0:
            raise ValueError(f"weight must be non-negative, got {weight}")
        self.name = name
        self.total_workload = workload
        self._remaining = workload
        self._weight = weight
        self._interval = interval
        self._stopped = asyncio.Event()
        self.done = asyncio.Event()
        if workload == 0:
            self.done.set()

    @classmethod
    def random(
        cls,
        rng: random.Random,
        config: SimulationConfig,
        name: str = "customer",
    ) -> SimulatedCustomer:
        """Draw workload, weight and tick interval from ``config`` ranges."""
        return cls(
            workload=rng.randint(1, config.max_workload),
            weight=rng.randrange(config.max_weight),
            interval=rng.uniform(
                config.min_notify_interval_seconds,
                config.max_notify_interval_seconds,
            ),
            name=name,
        )

    def __repr__(self) -> str:
        return (
            f"SimulatedCustomer(name={self.name!r}, weight={self._weight}, "
            f"remaining={self._remaining})"
        )

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def weight(self) -> int:
        return self._weight

    def stop(self) -> None:
        self._stopped.set()

    async def notify(self) -> AsyncIterator[float]:
        loop = asyncio.get_running_loop()
        while not self._stopped.is_set():
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self._interval)
            except TimeoutError:
                pass
            else:
                return
            yield loop.time()

    async def workload(self, cancel: asyncio.Event) -> AsyncIterator[int]:
        while self._remaining > 0 and not cancel.is_set():
            self._remaining -= 1
            if self._remaining == 0:
                self.done.set()
            yield self.total_workload - self._remaining
