"""Configuration models for allotment.

Defines Pydantic v2 models for the balancer (token ceiling, registration
queue bound), the bundled simulation (customer population, service
behaviour, run duration) and logging, plus YAML loading.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, model_validator

from allotment.core.logging import get_logger

_logger = get_logger("config")


class BalancerConfig(BaseModel):
    """Capacity settings for a single balancer instance."""

    ceiling: int = Field(
        default=100,
        ge=0,
        description="Maximum work items in flight against the downstream "
        "service at any instant. 0 is valid: nothing is ever dispatched.",
    )
    queue_size: int = Field(
        default=100,
        ge=1,
        description="Bound of the pending-registration queue. When full, "
        "register() waits for space (backpressure).",
    )


class SimulationConfig(BaseModel):
    """Settings for the bundled customer/service simulation.

    Mirrors the wiring of a typical deployment: a random number of
    customers with random workloads and weights, a random ceiling and a
    fixed run duration.
    """

    seed: int | None = Field(
        default=None,
        description="Seed for the simulation RNG. None seeds from the clock.",
    )
    max_customers: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Upper bound of the customer count; 1..max_customers are created.",
    )
    max_ceiling: int = Field(
        default=150,
        ge=0,
        description="The ceiling is drawn from [0, max_ceiling). 0 forces ceiling 0.",
    )
    max_workload: int = Field(
        default=100,
        ge=1,
        description="Each customer gets a workload drawn from [1, max_workload].",
    )
    max_weight: int = Field(
        default=10,
        ge=1,
        description="Each customer gets a weight drawn from [0, max_weight).",
    )
    min_notify_interval_seconds: float = Field(default=1.0, gt=0.0)
    max_notify_interval_seconds: float = Field(default=3.0, gt=0.0)
    max_latency_ms: float = Field(
        default=10.0,
        ge=0.0,
        description="Service latency per item is drawn from [0, max_latency_ms).",
    )
    failure_rate: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Probability that the simulated service fails an item.",
    )
    duration_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Wall-clock duration of the simulation run.",
    )

    @model_validator(mode="after")
    def _check_interval_range(self) -> SimulationConfig:
        """Reject an inverted notify interval range."""
        if self.min_notify_interval_seconds > self.max_notify_interval_seconds:
            raise ValueError(
                "min_notify_interval_seconds must not exceed max_notify_interval_seconds"
            )
        return self


class LogConfig(BaseModel):
    """Logging settings applied by the CLI at startup."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "console", "both"] = "console"
    file: Path | None = None

    @model_validator(mode="after")
    def _require_file_for_both(self) -> LogConfig:
        if self.format == "both" and self.file is None:
            raise ValueError("logging.file is required when logging.format is 'both'")
        return self


class AllotmentConfig(BaseModel):
    """Top-level configuration file model."""

    balancer: BalancerConfig = Field(default_factory=BalancerConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    logging: LogConfig = Field(default_factory=LogConfig)
    config_file: Path | None = Field(
        default=None,
        description="Path of the YAML file this config was loaded from. "
        "Set automatically by load_config().",
    )


def load_config(config_file: Path | None) -> AllotmentConfig:
    """Load AllotmentConfig from a YAML file or return defaults.

    Raises:
        pydantic.ValidationError: If the file contents are invalid.
    """
    if config_file and config_file.exists():
        with open(config_file) as f:
            data = yaml.safe_load(f) or {}
        config = AllotmentConfig.model_validate(data)
        config.config_file = config_file.resolve()
        return config
    if config_file is not None:
        _logger.warning("config.file_missing", config_file=str(config_file))
    return AllotmentConfig()


__all__ = [
    "AllotmentConfig",
    "BalancerConfig",
    "LogConfig",
    "SimulationConfig",
    "load_config",
]
