"""Rich display functions for the insertplanner CLI."""

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from insertplanner.core.plan import WritePlan
from insertplanner.exceptions import InsertPlannerError

console = Console()


def display_write_plan(plan: WritePlan, sql: str) -> None:
    """Display a write plan as summary, projection SQL and config tables."""
    console.print("✅ [bold green]Insert planned successfully[/bold green]")

    summary = Table(show_header=True, header_style="bold blue")
    summary.add_column("Property", style="cyan")
    summary.add_column("Value", style="white")
    summary.add_row("Operation", plan.operation.value)
    summary.add_row("Payload", plan.payload_strategy.value)
    summary.add_row("Save mode", plan.save_mode.value)
    summary.add_row("Columns", str(len(plan.aligned_projection)))
    console.print(summary)

    console.print(
        Panel(
            Syntax(sql, "sql"),
            title="Aligned projection",
            border_style="blue",
        )
    )

    config = Table(show_header=True, header_style="bold blue", title="Writer config")
    config.add_column("Key", style="cyan", no_wrap=True)
    config.add_column("Value", style="white")
    for key in sorted(plan.config_map):
        config.add_row(key, plan.config_map[key])
    console.print(config)


def display_json_output(data: Any) -> None:
    """Display JSON output without Rich markup processing."""
    json_str = json.dumps(data, indent=2, ensure_ascii=False)
    console.print(json_str, markup=False, highlight=False, soft_wrap=True)


def display_planning_error(error: InsertPlannerError) -> None:
    """Display a planning error with its suggestions."""
    console.print(
        f"❌ [bold red]{type(error).__name__}:[/bold red] {escape(error.message)}",
        highlight=False,
    )
    for suggestion in error.suggestions:
        console.print(f"  💡 {suggestion}", markup=False)
