"""Shared test doubles for allotment tests."""

from __future__ import annotations

import asyncio
from collections import Counter, deque
from collections.abc import AsyncIterator, Callable, Iterable
from typing import Any

from allotment.balancer.exceptions import ProcessingError


class ListCustomer:
    """Customer backed by a fixed list of items shared by all registrations."""

    def __init__(self, items: Iterable[Any], weight: int = 0) -> None:
        self._items = deque(items)
        self._weight = weight
        self.stop_calls = 0

    def weight(self) -> int:
        return self._weight

    def stop(self) -> None:
        self.stop_calls += 1

    async def notify(self) -> AsyncIterator[float]:
        while self.stop_calls == 0:
            await asyncio.sleep(0.01)
            yield 0.0

    async def workload(self, cancel: asyncio.Event) -> AsyncIterator[Any]:
        while self._items and not cancel.is_set():
            yield self._items.popleft()


def tagged(tag: str, count: int, weight: int = 0) -> ListCustomer:
    """Customer whose items are ``(tag, n)`` tuples."""
    return ListCustomer(((tag, n) for n in range(count)), weight=weight)


class GatedService:
    """Service that holds every item until its tag's gate is opened.

    Items are ``(tag, n)`` tuples. ``active`` counts calls in progress per
    tag; ``current``/``peak`` count them overall.
    """

    def __init__(self) -> None:
        self._gates: dict[str, asyncio.Event] = {}
        self.active: Counter[str] = Counter()
        self.current = 0
        self.peak = 0
        self.seen: list[Any] = []

    def gate(self, tag: str) -> asyncio.Event:
        return self._gates.setdefault(tag, asyncio.Event())

    def release(self, *tags: str) -> None:
        for tag in tags:
            self.gate(tag).set()

    async def process(self, item: Any, cancel: asyncio.Event) -> None:
        tag = item[0]
        self.active[tag] += 1
        self.current += 1
        self.peak = max(self.peak, self.current)
        try:
            await self.gate(tag).wait()
        finally:
            self.active[tag] -= 1
            self.current -= 1
        self.seen.append(item)


class RecordingService:
    """Service that succeeds instantly and remembers what it processed."""

    def __init__(self, fail: Callable[[Any], bool] | None = None) -> None:
        self._fail = fail or (lambda item: False)
        self.seen: list[Any] = []
        self.failures = 0

    async def process(self, item: Any, cancel: asyncio.Event) -> None:
        await asyncio.sleep(0)
        self.seen.append(item)
        if self._fail(item):
            self.failures += 1
            raise ProcessingError(f"cannot process {item!r}")


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the event loop until ``predicate()`` holds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.001)
