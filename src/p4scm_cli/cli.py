from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from .util import CliContext, configure_logging

app = typer.Typer(help="p4scm: Perforce workspace state from tagged p4 output")


@app.callback()
def _init(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", help="Path to p4scm.toml"),
    client: Optional[str] = typer.Option(None, "--client", help="Perforce client (workspace) name"),
    user: Optional[str] = typer.Option(None, "--user", help="Perforce user name"),
    port: Optional[str] = typer.Option(None, "--port", help="Perforce server address"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    ctx.obj = CliContext(
        config_path=config,
        overrides={"client": client, "user": user, "port": port},
        verbose=verbose,
    )
    configure_logging("debug" if verbose else "warning")


# Subcommands are registered in commands/*.py
from .commands import config_cmd  # noqa: E402
from .commands.decode import decode as decode_fn  # noqa: E402
from .commands.doctor import doctor as doctor_fn  # noqa: E402
from .commands.info import info as info_fn  # noqa: E402
from .commands.status import status as status_fn  # noqa: E402

app.add_typer(config_cmd.app, name="config", help="Configuration inspection and validation")
app.command(name="status")(status_fn)
app.command(name="decode")(decode_fn)
app.command(name="info")(info_fn)
app.command(name="doctor")(doctor_fn)


def main():
    app()
