"""Weighted-fair capacity allocator for a concurrency-limited service."""

from allotment.balancer.allocation import (
    assign_resources,
    divide_resources,
    normalize_priorities,
)
from allotment.balancer.balancer import Balancer, BalancerStats
from allotment.balancer.config import (
    AllotmentConfig,
    BalancerConfig,
    LogConfig,
    SimulationConfig,
    load_config,
)
from allotment.balancer.exceptions import (
    AllotmentError,
    BalancerClosedError,
    ConfigurationError,
    ProcessingError,
)
from allotment.balancer.job import Job
from allotment.balancer.types import Customer, Service

__all__ = [
    "AllotmentConfig",
    "AllotmentError",
    "Balancer",
    "BalancerClosedError",
    "BalancerConfig",
    "BalancerStats",
    "ConfigurationError",
    "Customer",
    "Job",
    "LogConfig",
    "ProcessingError",
    "Service",
    "SimulationConfig",
    "assign_resources",
    "divide_resources",
    "load_config",
    "normalize_priorities",
]
