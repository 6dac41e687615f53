"""Rich output formatting for the allotment CLI."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from allotment.simulation.runner import SimulationReport

# Shared console; commands print through this instance.
console = Console()


def format_duration(seconds: float) -> str:
    """Format seconds as a short human-readable string."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs}s"


def build_customer_table(report: SimulationReport) -> Table:
    """Per-customer breakdown of a simulation run."""
    table = Table(title="Customers", show_lines=False)
    table.add_column("Name", style="cyan")
    table.add_column("Weight", justify="right")
    table.add_column("Workload", justify="right")
    table.add_column("Remaining", justify="right")
    table.add_column("Registrations", justify="right")
    table.add_column("Status")

    for c in report.customers:
        status = "[green]done[/green]" if c.done else "[yellow]pending[/yellow]"
        table.add_row(
            c.name,
            str(c.weight),
            str(c.workload),
            str(c.remaining),
            str(c.registrations),
            status,
        )
    return table


def build_summary_panel(report: SimulationReport) -> Panel:
    """Headline numbers of a simulation run."""
    peak_style = "red" if report.peak_concurrency > report.ceiling else "green"
    lines = [
        f"Run: {report.run_id}",
        f"Seed: {report.seed}",
        f"Ceiling: {report.ceiling}",
        f"Duration: {format_duration(report.duration_seconds)}",
        f"Processed: {report.processed} (failed {report.failed})",
        f"Peak concurrency: [{peak_style}]{report.peak_concurrency}[/{peak_style}]",
        f"Rounds: {report.stats.rounds}",
        f"Customers done: {report.completed_customers}/{len(report.customers)}",
    ]
    return Panel("\n".join(lines), title="Simulation", expand=False)


def report_to_dict(report: SimulationReport) -> dict[str, Any]:
    """JSON-friendly view of a simulation report."""
    return {
        "run_id": report.run_id,
        "seed": report.seed,
        "ceiling": report.ceiling,
        "duration_seconds": round(report.duration_seconds, 3),
        "processed": report.processed,
        "failed": report.failed,
        "peak_concurrency": report.peak_concurrency,
        "stats": {
            "rounds": report.stats.rounds,
            "dispatched": report.stats.dispatched,
            "completed_jobs": report.stats.completed_jobs,
            "available": report.stats.available,
            "in_flight": report.stats.in_flight,
        },
        "customers": [
            {
                "name": c.name,
                "weight": c.weight,
                "workload": c.workload,
                "remaining": c.remaining,
                "registrations": c.registrations,
                "done": c.done,
            }
            for c in report.customers
        ],
    }
