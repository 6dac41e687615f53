"""End-to-end simulation: random customers feeding one balancer.

``run_simulation`` wires everything the balancer itself leaves to its
caller: it seeds the RNG, creates a random set of customers, picks a
ceiling, registers each customer whenever it signals readiness and stops
the whole thing after a fixed duration.
"""

from __future__ import annotations

import asyncio
import random
import time
from collections import Counter
from dataclasses import dataclass, field

from allotment.balancer.balancer import Balancer, BalancerStats
from allotment.balancer.config import BalancerConfig, SimulationConfig
from allotment.core.logging import ExecutionContext, get_logger, with_context
from allotment.simulation.customer import SimulatedCustomer
from allotment.simulation.service import ExpensiveFragileService

_logger = get_logger("simulation")


@dataclass
class CustomerSummary:
    """Final state of one simulated customer."""

    name: str
    weight: int
    workload: int
    remaining: int
    registrations: int
    done: bool


@dataclass
class SimulationReport:
    """Outcome of one ``run_simulation`` call."""

    run_id: str
    seed: int
    ceiling: int
    duration_seconds: float
    processed: int
    failed: int
    peak_concurrency: int
    stats: BalancerStats
    customers: list[CustomerSummary] = field(default_factory=list)

    @property
    def completed_customers(self) -> int:
        return sum(1 for c in self.customers if c.done)


async def run_simulation(
    config: SimulationConfig,
    balancer_config: BalancerConfig | None = None,
) -> SimulationReport:
    """Run one simulation and report what happened.

    Args:
        config: Customer population, service behaviour and duration.
        balancer_config: Fixed ceiling and queue size. When None the
            ceiling is drawn from ``[0, config.max_ceiling)``.

    Returns:
        A SimulationReport. ``peak_concurrency`` never exceeds ``ceiling``.
    """
    seed = config.seed if config.seed is not None else time.time_ns()
    rng = random.Random(seed)

    customers = [
        SimulatedCustomer.random(rng, config, name=f"customer-{i}")
        for i in range(rng.randint(1, config.max_customers))
    ]
    if balancer_config is None:
        ceiling = rng.randrange(config.max_ceiling) if config.max_ceiling > 0 else 0
        balancer_config = BalancerConfig(ceiling=ceiling)

    service = ExpensiveFragileService(
        max_latency_ms=config.max_latency_ms,
        failure_rate=config.failure_rate,
        rng=rng,
    )
    registrations: Counter[str] = Counter()
    cancel = asyncio.Event()
    ctx = ExecutionContext(component="simulation")

    with with_context(ctx):
        _logger.info(
            "simulation.started",
            seed=seed,
            customers=len(customers),
            ceiling=balancer_config.ceiling,
            duration_seconds=config.duration_seconds,
        )
        started = time.monotonic()

        async with Balancer.from_config(service, balancer_config) as balancer:

            async def serve(customer: SimulatedCustomer) -> None:
                async for _ in customer.notify():
                    await balancer.register(customer, cancel)
                    registrations[customer.name] += 1

            feeders = [
                asyncio.create_task(serve(c), name=f"feed-{c.name}") for c in customers
            ]
            try:
                await asyncio.sleep(config.duration_seconds)
            finally:
                cancel.set()
                for feeder in feeders:
                    feeder.cancel()
                await asyncio.gather(*feeders, return_exceptions=True)
                for customer in customers:
                    customer.stop()

        elapsed = time.monotonic() - started
        report = SimulationReport(
            run_id=ctx.run_id,
            seed=seed,
            ceiling=balancer_config.ceiling,
            duration_seconds=elapsed,
            processed=service.processed,
            failed=service.failed,
            peak_concurrency=service.peak_concurrency,
            stats=balancer.stats(),
            customers=[
                CustomerSummary(
                    name=c.name,
                    weight=c.weight(),
                    workload=c.total_workload,
                    remaining=c.remaining,
                    registrations=registrations[c.name],
                    done=c.done.is_set(),
                )
                for c in customers
            ],
        )
        _logger.info(
            "simulation.finished",
            processed=report.processed,
            failed=report.failed,
            peak_concurrency=report.peak_concurrency,
            completed_customers=report.completed_customers,
        )
    return report


__all__ = ["CustomerSummary", "SimulationReport", "run_simulation"]
