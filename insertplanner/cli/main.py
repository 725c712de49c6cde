#!/usr/bin/env python3
"""insertplanner CLI.

Plans an insert described in a YAML document and shows the resolved write
operation, the aligned projection and the writer configuration.
"""

from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from insertplanner.cli.display import (
    display_json_output,
    display_planning_error,
    display_write_plan,
)
from insertplanner.core.loader import load_plan_request
from insertplanner.core.options import SessionOptions
from insertplanner.core.plan import InsertPlanner
from insertplanner.core.table_config import PropertiesTableConfigReader
from insertplanner.exceptions import InsertPlannerError
from insertplanner.logging import (
    configure_logging,
    get_logger,
    suppress_third_party_loggers,
)

logger = get_logger(__name__)
console = Console()

OUTPUT_FORMATS = ("table", "json")

app = typer.Typer(
    name="insertplanner",
    help="Plan inserts into versioned, key-addressable tables",
    add_completion=False,
)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose output"
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Only show warnings and errors"
    ),
) -> None:
    """Plan inserts into versioned, key-addressable tables.

    Examples:
        insertplanner plan request.yml
        insertplanner plan request.yml --session profiles/dev.yml --format json
    """
    if version:
        from insertplanner import __version__

        console.print(f"insertplanner v{__version__}")
        raise typer.Exit()

    configure_logging(verbose=verbose, quiet=quiet)
    suppress_third_party_loggers()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help(), markup=False, highlight=False)


@app.command()
def plan(
    request_file: str = typer.Argument(..., help="YAML file describing the insert"),
    session: Optional[str] = typer.Option(
        None, "--session", "-s", help="YAML profile with session options"
    ),
    source: str = typer.Option(
        "source_rows", "--source", help="Relation name used in the projection SQL"
    ),
    format: str = typer.Option(
        "table", "--format", help="Output format: table or json"
    ),
) -> None:
    """Resolve the write plan of an insert."""
    if format not in OUTPUT_FORMATS:
        console.print(
            f"❌ [bold red]Invalid format:[/bold red] {escape(format)}. "
            f"Must be one of: {', '.join(OUTPUT_FORMATS)}"
        )
        raise typer.Exit(1)

    try:
        session_options = SessionOptions.from_yaml(session) if session else None
        plan_request = load_plan_request(request_file, session_options)
        planner = InsertPlanner(PropertiesTableConfigReader())
        write_plan = planner.plan(plan_request.table, plan_request.request)
        sql = write_plan.aligned_projection.to_sql(source)
    except InsertPlannerError as e:
        display_planning_error(e)
        logger.debug(f"Planning failed: {e}")
        raise typer.Exit(1)
    except OSError as e:
        console.print(f"❌ [bold red]Cannot read input:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"❌ [bold red]Invalid input:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)

    if format == "json":
        output = write_plan.to_dict()
        output["sql"] = sql
        display_json_output(output)
    else:
        display_write_plan(write_plan, sql)


def cli() -> None:
    """Entry point for the console script."""
    app()


if __name__ == "__main__":
    cli()
