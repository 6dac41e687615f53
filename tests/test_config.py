"""Tests for allotment.balancer.config."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from allotment.balancer.config import (
    AllotmentConfig,
    BalancerConfig,
    LogConfig,
    SimulationConfig,
    load_config,
)


class TestBalancerConfig:
    """Validation of balancer capacity settings."""

    def test_defaults(self):
        config = BalancerConfig()
        assert config.ceiling == 100
        assert config.queue_size == 100

    def test_zero_ceiling_allowed(self):
        assert BalancerConfig(ceiling=0).ceiling == 0

    def test_negative_ceiling_rejected(self):
        with pytest.raises(ValidationError):
            BalancerConfig(ceiling=-1)

    def test_queue_size_must_be_positive(self):
        with pytest.raises(ValidationError):
            BalancerConfig(queue_size=0)


class TestSimulationConfig:
    """Validation of simulation settings."""

    def test_defaults_mirror_reference_wiring(self):
        config = SimulationConfig()
        assert config.max_customers == 10
        assert config.max_ceiling == 150
        assert config.duration_seconds == 5.0
        assert config.failure_rate == 0.0

    def test_failure_rate_bounds(self):
        with pytest.raises(ValidationError):
            SimulationConfig(failure_rate=1.5)

    def test_inverted_interval_range_rejected(self):
        with pytest.raises(ValidationError, match="min_notify_interval_seconds"):
            SimulationConfig(
                min_notify_interval_seconds=4.0, max_notify_interval_seconds=2.0,
            )

    def test_duration_must_be_positive(self):
        with pytest.raises(ValidationError):
            SimulationConfig(duration_seconds=0)


class TestLogConfig:
    def test_both_requires_file(self):
        with pytest.raises(ValidationError, match="logging.file"):
            LogConfig(format="both")

    def test_both_with_file(self, tmp_path: Path):
        config = LogConfig(format="both", file=tmp_path / "a.log")
        assert config.file == tmp_path / "a.log"


class TestLoadConfig:
    """YAML loading."""

    def test_none_returns_defaults(self):
        config = load_config(None)
        assert config == AllotmentConfig()
        assert config.config_file is None

    def test_missing_file_returns_defaults(self, tmp_path: Path):
        config = load_config(tmp_path / "absent.yaml")
        assert config.balancer.ceiling == 100

    def test_loads_sections(self, tmp_path: Path):
        path = tmp_path / "allotment.yaml"
        path.write_text(yaml.safe_dump({
            "balancer": {"ceiling": 12, "queue_size": 4},
            "simulation": {"seed": 7, "max_customers": 3},
            "logging": {"level": "DEBUG"},
        }))

        config = load_config(path)

        assert config.balancer.ceiling == 12
        assert config.balancer.queue_size == 4
        assert config.simulation.seed == 7
        assert config.simulation.max_customers == 3
        assert config.logging.level == "DEBUG"
        assert config.config_file == path.resolve()
        assert "balancer" in config.model_fields_set

    def test_empty_file_returns_defaults(self, tmp_path: Path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        config = load_config(path)
        assert config.simulation == SimulationConfig()
        assert "balancer" not in config.model_fields_set

    def test_invalid_values_raise(self, tmp_path: Path):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump({"balancer": {"ceiling": -3}}))
        with pytest.raises(ValidationError):
            load_config(path)
