"""Simulated customers and downstream service for exercising the balancer."""

from allotment.simulation.customer import SimulatedCustomer
from allotment.simulation.runner import CustomerSummary, SimulationReport, run_simulation
from allotment.simulation.service import ExpensiveFragileService

__all__ = [
    "CustomerSummary",
    "ExpensiveFragileService",
    "SimulatedCustomer",
    "SimulationReport",
    "run_simulation",
]
