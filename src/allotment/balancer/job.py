"""One customer registration as seen by the balancer.

A job owns the item sequence obtained from the customer at registration
time, the customer's priority (weight + 1, so that 0 never occurs) and a
completion flag. The balancer hands it a token count each round through
``dispatch()``, which runs that many consumers against the sequence and
reports the tokens back once they are all done.

All consumers run on the balancer's event loop. Completion is a
check-and-set with no await in between, so it happens exactly once even
when several consumers observe exhaustion together.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from allotment.balancer.types import Customer
from allotment.core.logging import ExecutionContext, get_current_context, get_logger, with_context

_logger = get_logger("job")

ProcessFn = Callable[[Any], Awaitable[None]]

_EXHAUSTED = object()


class Job:
    """Unit of scheduling wrapping one registered customer."""

    def __init__(
        self,
        customer: Customer,
        process: ProcessFn,
        cancel: asyncio.Event | None = None,
    ) -> None:
        weight = customer.weight()
        if weight < 0:
            raise ValueError(f"customer weight must be non-negative, got {weight}")

        self.customer = customer
        self.job_id = uuid.uuid4().hex[:8]
        self.cancel = cancel if cancel is not None else asyncio.Event()
        # Shifted by one so that priority 0 stays free to mean "unset"
        self.priority = weight + 1
        self._process = process
        self._workload: AsyncIterator[Any] = customer.workload(self.cancel)
        # Async iterators don't tolerate concurrent __anext__ calls
        self._pull_lock = asyncio.Lock()
        self._complete = False
        self._processed = 0
        self._log = _logger.bind(job_id=self.job_id)

    def __repr__(self) -> str:
        return (
            f"Job(job_id={self.job_id!r}, priority={self.priority}, "
            f"complete={self._complete})"
        )

    @property
    def is_complete(self) -> bool:
        """Whether the job's item sequence has been exhausted."""
        return self._complete

    @property
    def processed(self) -> int:
        """Items this job has forwarded to the service so far."""
        return self._processed

    def mark_complete(self) -> bool:
        """Mark the job complete and stop the customer, once.

        Returns:
            True if this call completed the job, False if it was already
            complete.
        """
        if self._complete:
            return False
        self._complete = True
        try:
            self.customer.stop()
        except Exception:
            self._log.exception("job.stop_failed")
        self._log.info("job.completed", processed=self._processed)
        return True

    def dispatch(self, tokens: int) -> asyncio.Task[int]:
        """Run ``tokens`` concurrent consumers against this job.

        Args:
            tokens: Tokens assigned to this job for the round.

        Returns:
            A task resolving to ``tokens`` once every consumer has finished.

        Raises:
            ValueError: If ``tokens`` is negative.
        """
        if tokens < 0:
            raise ValueError(f"tokens must be non-negative, got {tokens}")
        return asyncio.create_task(
            self._run_consumers(tokens), name=f"job-{self.job_id}-dispatch",
        )

    async def _run_consumers(self, tokens: int) -> int:
        # Consumers log and process under this job's correlation context
        ctx = get_current_context() or ExecutionContext(component="job")
        with with_context(ctx.with_job(self.job_id)):
            consumers = [
                asyncio.create_task(self._consume(), name=f"job-{self.job_id}-consumer")
                for _ in range(tokens)
            ]
        # Cancelling this task cancels the consumers through gather
        outcomes = await asyncio.gather(*consumers, return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, Exception):
                self._log.error(
                    "job.consumer_failed",
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
        return tokens

    async def _consume(self) -> None:
        if self._complete:
            return
        async with self._pull_lock:
            if self._complete:
                return
            item = await anext(self._workload, _EXHAUSTED)
        if item is _EXHAUSTED:
            self.mark_complete()
            return
        self._processed += 1
        await self._process(item)


__all__ = ["Job", "ProcessFn"]
