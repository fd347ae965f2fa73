from __future__ import annotations

import asyncio
import json
from dataclasses import asdict

import typer
from rich.console import Console
from rich.table import Table

from p4scm_core.errors import CommandFailed, InvalidRecordShape
from p4scm_ops.info import INFO_FIELDS, fetch_info

from .. import util

console = Console()


def info(
    ctx: typer.Context,
    format: str = typer.Option("plain", "--format", "-f", help="Output format: plain, json"),
) -> None:
    """Show the user, client and server p4 reports for this workspace."""
    settings = util.load_settings(ctx)
    executor = util.make_executor(settings)
    try:
        result = asyncio.run(fetch_info(executor, settings.options))
    except (CommandFailed, InvalidRecordShape) as e:
        util.err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    data = asdict(result)
    if format == "json":
        typer.echo(json.dumps(data, indent=2))
        return

    table = Table(title="Perforce Info", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for field_name, label in INFO_FIELDS.items():
        table.add_row(label, data.get(field_name) or "[dim]-[/dim]")
    console.print(table)
