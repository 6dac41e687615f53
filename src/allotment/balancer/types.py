"""Contracts for the collaborators the balancer talks to.

Customers produce work, the service consumes it. Both are structural
protocols so any object with the right methods can be registered or
wrapped; the bundled simulation in ``allotment.simulation`` provides one
implementation of each.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Customer(Protocol):
    """A weighted producer of work items."""

    def notify(self) -> AsyncIterator[float]:
        """Readiness ticks on the customer's own schedule.

        Each tick means "register me"; the iterator ends once the customer
        is stopped.
        """
        ...

    def workload(self, cancel: asyncio.Event) -> AsyncIterator[Any]:
        """Work items still to be processed.

        Ends when the workload is exhausted or ``cancel`` is set. Called
        once per registration.
        """
        ...

    def weight(self) -> int:
        """Non-negative importance; larger weights get more capacity."""
        ...

    def stop(self) -> None:
        """Release customer-owned resources."""
        ...


@runtime_checkable
class Service(Protocol):
    """The downstream service whose concurrency the balancer protects."""

    async def process(self, item: Any, cancel: asyncio.Event) -> None:
        """Process one item.

        Raises:
            ProcessingError: If the item could not be processed.
        """
        ...


__all__ = ["Customer", "Service"]
