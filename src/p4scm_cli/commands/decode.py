from __future__ import annotations

import json
from pathlib import Path

import typer

from p4scm_core.errors import MalformedOutput
from p4scm_core.tagged_output import NO_VALUE, decode as decode_value, decode_stream

from .. import util


def decode(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="File holding captured `p4 -G` output"),
    single: bool = typer.Option(False, "--single", help="Expect exactly one value instead of a record stream"),
) -> None:
    """Decode a captured tagged-output buffer and print it as JSON."""
    data = path.read_bytes()
    try:
        if single:
            value = decode_value(data)
            result = None if value is NO_VALUE else value
        else:
            result = decode_stream(data)
    except MalformedOutput as e:
        util.err_console.print(f"[red]MalformedOutput:[/red] {e}")
        raise typer.Exit(1)
    typer.echo(json.dumps(result, indent=2, ensure_ascii=False))
