"""Run command for the allotment CLI.

``allotment run`` drives the bundled simulation: random weighted
customers are registered with a balancer in front of a slow, fragile
service for a fixed duration, then a summary is printed.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer
from pydantic import ValidationError

from allotment.balancer.config import BalancerConfig, load_config
from allotment.core.logging import get_logger

from ..helpers import configure_global_logging
from ..output import build_customer_table, build_summary_panel, console, report_to_dict

_logger = get_logger("cli")


def run(
    config_file: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a YAML configuration file",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    seed: int | None = typer.Option(
        None,
        "--seed",
        "-s",
        help="Seed the simulation RNG for a reproducible run",
    ),
    duration: float | None = typer.Option(
        None,
        "--duration",
        "-d",
        help="Run duration in seconds (overrides the config file)",
    ),
    ceiling: int | None = typer.Option(
        None,
        "--ceiling",
        help="Fixed concurrency ceiling. Without it (and without a balancer "
        "section in the config file) the ceiling is drawn at random.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output result as JSON for machine parsing",
    ),
) -> None:
    """Run a balancer simulation with random weighted customers."""
    from allotment.simulation.runner import run_simulation

    try:
        config = load_config(config_file)
        simulation = config.simulation
        overrides: dict[str, object] = {}
        if seed is not None:
            overrides["seed"] = seed
        if duration is not None:
            overrides["duration_seconds"] = duration
        if overrides:
            simulation = simulation.model_validate(
                {**simulation.model_dump(), **overrides},
            )

        balancer_config: BalancerConfig | None = None
        if ceiling is not None:
            balancer_config = BalancerConfig(
                ceiling=ceiling, queue_size=config.balancer.queue_size,
            )
        elif "balancer" in config.model_fields_set:
            balancer_config = config.balancer
    except ValidationError as e:
        if json_output:
            typer.echo(json.dumps({"error": str(e)}, indent=2))
        else:
            console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(1) from None

    configure_global_logging(console, config.logging)
    if config.config_file is not None:
        _logger.debug("config.loaded", config_file=str(config.config_file))

    report = asyncio.run(run_simulation(simulation, balancer_config))

    if json_output:
        typer.echo(json.dumps(report_to_dict(report), indent=2))
        return

    console.print(build_summary_panel(report))
    console.print(build_customer_table(report))
