"""``conduitload run``: execute a script with live terminal output."""

from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from conduitload._internal.errors import ConduitLoadError
from conduitload.engine.runner import LoadTestRunner

if TYPE_CHECKING:
    from conduitload._internal.config import ConduitLoadConfig
    from conduitload.dsl.scenario import ScenarioDefinition
    from conduitload.metrics.models import MetricSnapshot, TestResult

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Rich live display
# ---------------------------------------------------------------------------


def _make_live_table(snapshot: MetricSnapshot | None) -> Table:
    """Build a Rich table summarising the latest interval.

    Args:
        snapshot: Latest metric snapshot, or None if no data yet.

    Returns:
        Formatted Rich Table.
    """
    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    if snapshot is None:
        table.add_row("Status", "Running setup...")
        return table

    table.add_row("Elapsed", f"{snapshot.elapsed_seconds:.0f}s")
    table.add_row("Active Users", str(snapshot.active_users))
    table.add_row("Requests/sec", f"{snapshot.requests_per_second:.1f}")
    table.add_row("p50 Latency", f"{snapshot.latency_p50:.1f}ms")
    table.add_row("p95 Latency", f"{snapshot.latency_p95:.1f}ms")
    table.add_row("p95 Latency (run)", f"{snapshot.run_latency_p95:.1f}ms")
    table.add_row("Error Rate", f"{snapshot.error_rate * 100:.2f}%")
    table.add_row("Checks", f"{snapshot.checks_rate * 100:.2f}%")
    table.add_row("Iterations", str(snapshot.iterations))

    return table


def _print_summary(result: TestResult) -> None:
    """Print the final summary, endpoint, check and threshold tables."""
    summary = result.final_summary
    table = Table(title="Run Complete", show_header=True, header_style="bold green", expand=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Scenario", result.scenario_name)
    table.add_row("Schedule", result.pattern_description)
    table.add_row("Duration", f"{result.duration_seconds:.1f}s")
    table.add_row("Iterations", str(result.total_iterations))

    if summary:
        table.add_row("Total Requests", str(summary.total_requests))
        table.add_row("Avg Requests/sec", f"{summary.requests_per_second:.1f}")
        table.add_row("Avg Latency", f"{summary.latency_avg:.1f}ms")
        table.add_row("p90 Latency", f"{summary.latency_p90:.1f}ms")
        table.add_row("p95 Latency", f"{summary.latency_p95:.1f}ms")
        table.add_row("Max Latency", f"{summary.latency_max:.1f}ms")
        table.add_row("Failed Requests", str(summary.total_errors))
        table.add_row("Failure Rate", f"{summary.error_rate * 100:.2f}%")
        for status, count in sorted(summary.errors_by_status.items()):
            label = "no response" if status == 0 else f"HTTP {status}"
            table.add_row(f"  {label}", str(count))

        if summary.endpoints:
            ep_table = Table(
                title="Per-Request Breakdown",
                show_header=True,
                header_style="bold cyan",
                expand=True,
            )
            ep_table.add_column("Request")
            ep_table.add_column("Count", justify="right")
            ep_table.add_column("RPS", justify="right")
            ep_table.add_column("p50", justify="right")
            ep_table.add_column("p95", justify="right")
            ep_table.add_column("p99", justify="right")
            ep_table.add_column("Failed %", justify="right")
            for ep in summary.endpoints.values():
                ep_table.add_row(
                    ep.name,
                    str(ep.request_count),
                    f"{ep.requests_per_second:.1f}",
                    f"{ep.latency_p50:.1f}ms",
                    f"{ep.latency_p95:.1f}ms",
                    f"{ep.latency_p99:.1f}ms",
                    f"{ep.error_rate * 100:.2f}%",
                )
            console.print(ep_table)

    if result.checks:
        check_table = Table(title="Checks", show_header=True, header_style="bold cyan", expand=True)
        check_table.add_column("Group")
        check_table.add_column("Check")
        check_table.add_column("Passed", justify="right")
        check_table.add_column("Failed", justify="right")
        check_table.add_column("Rate", justify="right")
        for check in result.checks:
            style = "green" if check.fails == 0 else "red"
            check_table.add_row(
                check.group or "-",
                check.name,
                str(check.passes),
                str(check.fails),
                f"[{style}]{check.rate * 100:.1f}%[/{style}]",
            )
        console.print(check_table)

    if result.thresholds:
        thr_table = Table(
            title="Thresholds", show_header=True, header_style="bold cyan", expand=True
        )
        thr_table.add_column("Metric")
        thr_table.add_column("Expression")
        thr_table.add_column("Observed", justify="right")
        thr_table.add_column("Result", justify="right")
        for verdict in result.thresholds:
            observed = "no data" if verdict.observed is None else f"{verdict.observed:.2f}"
            outcome = "[green]PASS[/green]" if verdict.passed else "[red]FAIL[/red]"
            thr_table.add_row(
                verdict.threshold.key, verdict.threshold.expression, observed, outcome
            )
        console.print(thr_table)

    console.print(table)


def summary_payload(
    result: TestResult,
    definition: ScenarioDefinition,
    config: ConduitLoadConfig,
    base_url: str,
) -> dict[str, Any]:
    """JSON-serializable run summary written by ``--summary-export``."""
    return {
        "scenario": result.scenario_name,
        "title": definition.title,
        "target": base_url,
        "tags": result.tags,
        "cloud": {
            "name": definition.cloud_name,
            "project_id": config.cloud_project_id,
        },
        "schedule": result.pattern_description,
        "duration_seconds": result.duration_seconds,
        "iterations": result.total_iterations,
        "metrics": (
            dataclasses.asdict(result.final_summary) if result.final_summary is not None else None
        ),
        "checks": [
            {
                "group": c.group,
                "name": c.name,
                "passes": c.passes,
                "fails": c.fails,
            }
            for c in result.checks
        ],
        "thresholds": [
            {
                "key": t.threshold.key,
                "expression": t.threshold.expression,
                "observed": t.observed,
                "passed": t.passed,
            }
            for t in result.thresholds
        ],
        "passed": result.thresholds_passed,
    }


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


def run_cmd(
    target: str = typer.Argument(
        ...,
        help="Bundled script name (see `conduitload list`) or path to a .py script.",
    ),
    base_url: str | None = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Target API base URL. Overrides CONDUITLOAD_BASE_URL.",
    ),
    users: int | None = typer.Option(
        None,
        "--users",
        "-u",
        help="Run a constant number of users instead of the script's stages.",
        min=1,
    ),
    duration: str | None = typer.Option(
        None,
        "--duration",
        "-d",
        help="Run length for --users, e.g. 30s, 2m or 45.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit log records as JSON lines.",
    ),
    summary_export: Path | None = typer.Option(
        None,
        "--summary-export",
        help="Write the run summary as JSON to this path.",
        dir_okay=False,
    ),
) -> None:
    """Execute a script with live terminal output.

    Exits with status 1 when a threshold fails or the run cannot start.
    """
    log_level = logging.DEBUG if verbose else logging.INFO
    live_holder: list[Live | None] = [None]

    def _on_snapshot(snapshot: MetricSnapshot) -> None:
        live = live_holder[0]
        if live is not None:
            live.update(_make_live_table(snapshot))

    try:
        test_runner = LoadTestRunner(
            target,
            base_url=base_url,
            users=users,
            duration=duration,
            on_snapshot=_on_snapshot,
            log_level=log_level,
            json_logs=json_logs,
        )
    except ConduitLoadError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    definition = test_runner.definition
    schedule = test_runner.session().describe()
    console.print(
        Panel(
            f"[bold]Scenario:[/bold] {definition.title}\n"
            f"[bold]Target:[/bold]   {test_runner.base_url}\n"
            f"[bold]Schedule:[/bold] {schedule}",
            title="conduitload",
            border_style="cyan",
        )
    )

    try:
        with Live(
            _make_live_table(None),
            console=console,
            refresh_per_second=2,
            transient=True,
        ) as live:
            live_holder[0] = live
            result = test_runner.run()
    except ConduitLoadError as exc:
        console.print(f"[red]Run failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    finally:
        live_holder[0] = None

    _print_summary(result)

    if summary_export is not None:
        payload = summary_payload(result, definition, test_runner.config, test_runner.base_url)
        summary_export.parent.mkdir(parents=True, exist_ok=True)
        summary_export.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        console.print(f"Summary written to {summary_export}")

    if not result.thresholds_passed:
        for verdict in result.failed_thresholds:
            console.print(f"[red]FAIL:[/red] {verdict.describe()}")
        raise typer.Exit(code=1)

    console.print("[green]Run completed, all thresholds passed.[/green]")
