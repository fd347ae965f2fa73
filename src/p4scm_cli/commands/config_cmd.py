from __future__ import annotations

import json
from pathlib import Path

import typer

from p4scm_core.config import (
    CONFIG_FILENAME,
    ConfigLoader,
    render_default_config,
    validate_config_dict,
)
from p4scm_core.errors import ConfigError

from .. import util

app = typer.Typer(help="Configuration inspection and validation")


@app.command("show")
def config_show(ctx: typer.Context):
    """Print the effective merged config as JSON (password redacted)."""
    settings = util.load_settings(ctx)
    typer.echo(
        json.dumps(
            {
                "source": str(settings.source) if settings.source else None,
                "perforce": settings.options.redacted(),
                "log": settings.log.model_dump(),
            },
            indent=2,
            default=str,
        )
    )


@app.command("validate")
def config_validate(ctx: typer.Context):
    """Validate the config file; exit 0 if ok, 1 otherwise."""
    cli = util.cli_context(ctx)
    path = cli.config_path or ConfigLoader.find_config_file()
    if path is None:
        typer.echo(f"No {CONFIG_FILENAME} found; defaults apply")
        return

    try:
        raw = ConfigLoader.read_toml(path)
    except ConfigError as e:
        typer.echo(f"ConfigError: {e}")
        raise typer.Exit(1)

    errors = validate_config_dict(raw)
    if not errors:
        try:
            ConfigLoader.load(path, overrides=cli.overrides)
        except ConfigError as e:
            errors.append(str(e))

    if errors:
        typer.echo("Validation failed:")
        for err in errors:
            typer.echo(f"- {err}")
        raise typer.Exit(1)

    typer.echo("Config is valid")


@app.command("init")
def config_init(
    path: Path = typer.Option(Path("."), "--path", help="Directory to write p4scm.toml into"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
):
    """Write a starter p4scm.toml."""
    target = path / CONFIG_FILENAME
    if target.exists() and not force:
        typer.echo(f"{target} already exists (use --force to overwrite)")
        raise typer.Exit(1)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(render_default_config(), encoding="utf-8")
    typer.echo(f"Wrote {target}")
