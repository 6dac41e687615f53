"""Weighted-fair admission control in front of a fragile service.

The downstream service must never see more than ``ceiling`` items in
flight, but it is expensive, so it should be kept as busy as possible.
Any number of customers may be registered at any time, each with its own
weight, and the ceiling is divided among the jobs currently active in
proportion to their weights.

Example: with a ceiling of 100 and two equal-weight customers, each gets
50 concurrent items. With two customers of priority 1 and one of priority
2 the split is 25/25/50. When the heavier customer finishes early the
other two are re-divided the whole ceiling on the next round.

Internals: one decision-loop task owns all round state (the active job
list and the token counter). It is fed through two inboxes, pending token
grants and pending registrations, and wakes whenever either receives
something. Each round drains both inboxes, runs ``divide_resources`` and
dispatches the assigned token counts. A dispatch returns its tokens by
posting a grant when all of its consumers are done, so freed capacity only
becomes visible to a later round. Nothing outside the loop reads or
writes the round counter.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Any

from allotment.balancer.allocation import divide_resources
from allotment.balancer.config import BalancerConfig
from allotment.balancer.exceptions import (
    BalancerClosedError,
    ConfigurationError,
    ProcessingError,
)
from allotment.balancer.job import Job
from allotment.balancer.types import Customer, Service
from allotment.core.logging import ExecutionContext, get_current_context, get_logger, with_context

_logger = get_logger("balancer")


@dataclass
class BalancerStats:
    """Statistics snapshot from the balancer.

    ``available + in_flight == ceiling`` holds for every snapshot.
    """

    ceiling: int
    available: int
    in_flight: int
    queued_jobs: int
    rounds: int
    dispatched: int
    completed_jobs: int


class Balancer:
    """Divides a fixed pool of concurrency tokens among weighted jobs.

    Use ``await Balancer.create(service, ceiling)`` or ``async with
    Balancer(service, ceiling)`` to get a running instance, then
    ``await register(customer)`` whenever a customer asks to be served.
    """

    def __init__(
        self,
        service: Service,
        ceiling: int,
        *,
        queue_size: int = 100,
    ) -> None:
        if ceiling < 0:
            raise ConfigurationError(f"ceiling must be non-negative, got {ceiling}")
        if queue_size < 1:
            raise ConfigurationError(f"queue_size must be at least 1, got {queue_size}")

        self._service = service
        self._ceiling = ceiling
        self._queue_size = queue_size

        # Inboxes
        self._grants: deque[int] = deque([ceiling])
        self._registrations: asyncio.Queue[Job] = asyncio.Queue(maxsize=queue_size)
        self._wakeup = asyncio.Event()
        self._wakeup.set()

        # Round state, touched only by the decision loop
        self._chunks = 0
        self._active: list[Job] = []

        self._in_flight: dict[asyncio.Task[int], int] = {}
        self._task: asyncio.Task[None] | None = None
        self._closed = False
        self._context = ExecutionContext(component="balancer")

        self._rounds = 0
        self._dispatched = 0
        self._completed_jobs = 0

    # ─── Construction ──────────────────────────────────────────────

    @classmethod
    async def create(
        cls,
        service: Service,
        ceiling: int,
        *,
        queue_size: int = 100,
    ) -> Balancer:
        """Build a balancer and start its decision loop."""
        balancer = cls(service, ceiling, queue_size=queue_size)
        await balancer.start()
        return balancer

    @classmethod
    def from_config(cls, service: Service, config: BalancerConfig) -> Balancer:
        """Build a (not yet started) balancer from a ``BalancerConfig``."""
        return cls(service, config.ceiling, queue_size=config.queue_size)

    async def __aenter__(self) -> Balancer:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    # ─── Lifecycle ─────────────────────────────────────────────────

    async def start(self) -> None:
        """Start the decision loop. Calling it again is a no-op."""
        if self._task is not None:
            return
        if self._closed:
            raise BalancerClosedError("balancer was stopped and cannot be restarted")
        current = get_current_context()
        if current is not None:
            self._context = current.with_component("balancer")
        self._task = asyncio.create_task(self._run(), name="balancer-loop")
        self._task.add_done_callback(self._on_loop_done)
        _logger.info(
            "balancer.started", ceiling=self._ceiling, queue_size=self._queue_size,
        )

    async def stop(self) -> None:
        """Stop the decision loop and cancel every in-flight dispatch."""
        self._closed = True
        # A loop that already died was reported by _on_loop_done
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

        pending = list(self._in_flight)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        _logger.info("balancer.stopped", rounds=self._rounds, dispatched=self._dispatched)

    def _on_loop_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._closed = True
            _logger.error(
                "balancer.loop_died",
                error=str(exc),
                error_type=type(exc).__name__,
                task_name=task.get_name(),
            )

    # ─── Public API ────────────────────────────────────────────────

    async def register(
        self,
        customer: Customer,
        cancel: asyncio.Event | None = None,
    ) -> Job:
        """Queue a new job for ``customer``.

        Waits while the registration queue is full.

        Args:
            customer: The customer to serve.
            cancel: Cancellation token for this registration. Setting it
                ends the customer's item sequence, which completes the job.

        Returns:
            The job created for this registration.

        Raises:
            BalancerClosedError: If the balancer has been stopped.
            ValueError: If the customer reports a negative weight.
        """
        if self._closed:
            raise BalancerClosedError("cannot register on a stopped balancer")
        if cancel is None:
            cancel = asyncio.Event()

        async def process(item: Any) -> None:
            try:
                await self._service.process(item, cancel)
            except ProcessingError as exc:
                # job_id comes from the consumer's ExecutionContext
                _logger.warning("balancer.processing_error", error=str(exc))

        job = Job(customer, process, cancel)
        await self._registrations.put(job)
        self._wakeup.set()
        _logger.debug("balancer.job_registered", job_id=job.job_id, priority=job.priority)
        return job

    def stats(self) -> BalancerStats:
        """Return a snapshot of balancer state."""
        return BalancerStats(
            ceiling=self._ceiling,
            available=self._chunks + sum(self._grants),
            in_flight=sum(self._in_flight.values()),
            queued_jobs=len(self._active) + self._registrations.qsize(),
            rounds=self._rounds,
            dispatched=self._dispatched,
            completed_jobs=self._completed_jobs,
        )

    @property
    def ceiling(self) -> int:
        return self._ceiling

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ─── Decision loop ─────────────────────────────────────────────

    async def _run(self) -> None:
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()
            try:
                self._drain()
                if self._chunks == 0 or not self._active:
                    continue
                self._run_round()
            except Exception:
                # Round state stays consistent; the next wakeup retries
                _logger.exception("balancer.round_failed", round_num=self._rounds)

    def _drain(self) -> None:
        """Absorb every pending grant and registration without blocking."""
        while self._grants:
            self._chunks += self._grants.popleft()
        while True:
            try:
                job = self._registrations.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._active.append(job)
        self._retire_completed()

    def _run_round(self) -> None:
        self._rounds += 1
        assignment = divide_resources(self._active, self._chunks)

        with with_context(self._context.with_round(self._rounds)):
            for index, tokens in assignment.items():
                job = self._active[index]
                self._track(job.dispatch(tokens), tokens)
                self._chunks -= tokens
                self._dispatched += tokens

        _logger.debug(
            "balancer.round_dispatched",
            round_num=self._rounds,
            jobs=len(self._active),
            tokens=sum(assignment.values()),
            assignment={self._active[i].job_id: n for i, n in assignment.items()},
        )
        self._retire_completed()

    def _retire_completed(self) -> None:
        remaining = [job for job in self._active if not job.is_complete]
        self._completed_jobs += len(self._active) - len(remaining)
        self._active = remaining

    # ─── Reclaim ───────────────────────────────────────────────────

    def _track(self, task: asyncio.Task[int], tokens: int) -> None:
        self._in_flight[task] = tokens
        task.add_done_callback(self._reclaim)

    def _reclaim(self, task: asyncio.Task[int]) -> None:
        tokens = self._in_flight.pop(task)
        if not task.cancelled() and task.exception() is not None:
            _logger.error("balancer.dispatch_failed", error=str(task.exception()))
        self._grants.append(tokens)
        self._wakeup.set()


__all__ = ["Balancer", "BalancerStats"]
