"""
status.py - Run one reconciliation cycle and show the workspace state.
"""

from __future__ import annotations

import asyncio
import json

import typer
from rich.console import Console
from rich.table import Table

from p4scm_core.state_store import RepositoryStateStore
from p4scm_ops.reconcile import ReconciliationEngine

from .. import util

console = Console()


def format_state_plain(store: RepositoryStateStore) -> None:
    changes = Table(title="Changelists", show_header=True)
    changes.add_column("Change", style="bold")
    changes.add_column("User")
    changes.add_column("Client")
    changes.add_column("Files", justify="right")
    changes.add_column("Flags")
    changes.add_column("Description")
    for change in store.changelists():
        flags = []
        if change.has_shelved_files:
            flags.append("shelved")
        if change.is_restricted:
            flags.append("restricted")
        changes.add_row(
            change.id,
            change.user,
            change.client,
            str(len(change.files)),
            ", ".join(flags),
            change.description.splitlines()[0] if change.description else "",
        )
    console.print(changes)

    files = Table(title="Files", show_header=True)
    files.add_column("Path", style="bold")
    files.add_column("Action")
    files.add_column("Status")
    files.add_column("Change")
    files.add_column("Rev")
    for change in store.changelists():
        for file in change.files:
            action = file.action
            if file.diff_status:
                action = f"{action} [yellow]({file.diff_status})[/yellow]"
            if file.shelved:
                action = f"{action} [cyan]shelved@{file.shelved_changelist_id}[/cyan]"
            files.add_row(file.key, action, file.status, change.id, file.revision or "")
    console.print(files)


def format_state_json(store: RepositoryStateStore) -> None:
    output = {
        "changelists": [c.to_dict() for c in store.changelists()],
        "files": [f.to_dict() for f in store.files()],
    }
    typer.echo(json.dumps(output, indent=2))


def status(
    ctx: typer.Context,
    format: str = typer.Option(
        "plain", "--format", "-f",
        help="Output format: plain, json",
    ),
) -> None:
    """
    Refresh the workspace state once and print it.

    Runs opened, status, pending changes and shelved describes, resolves
    local paths, then lists changelists and their files.
    """
    settings = util.load_settings(ctx)
    executor = util.make_executor(settings)
    engine = ReconciliationEngine(executor, settings.options)
    asyncio.run(engine.refresh())

    if engine.last_error is not None:
        util.err_console.print(f"[red]Error:[/red] {engine.last_error}")
        raise typer.Exit(1)

    if format == "json":
        format_state_json(engine.store)
    else:
        format_state_plain(engine.store)
