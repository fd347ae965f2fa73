from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from p4scm_core.config import ConfigLoader, P4ScmConfig
from p4scm_core.errors import ConfigError
from p4scm_core.vcs import CommandExecutor, P4CommandExecutor

err_console = Console(stderr=True)


@dataclass
class CliContext:
    """Options shared by every subcommand (set by the top-level callback)."""
    config_path: Optional[Path] = None
    overrides: Dict[str, Any] = field(default_factory=dict)
    verbose: bool = False


def configure_logging(verbosity: str) -> None:
    root = logging.getLogger()
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(RichHandler(console=err_console, show_path=False))
    root.setLevel(getattr(logging, verbosity.upper(), logging.WARNING))


def cli_context(ctx: typer.Context) -> CliContext:
    obj = ctx.find_object(CliContext)
    return obj if obj is not None else CliContext()


def load_settings(ctx: typer.Context) -> P4ScmConfig:
    """Load config for the current invocation; exits 1 on ``ConfigError``."""
    cli = cli_context(ctx)
    try:
        settings = ConfigLoader.load(cli.config_path, overrides=cli.overrides)
    except ConfigError as e:
        err_console.print(f"[red]ConfigError:[/red] {e}")
        raise typer.Exit(1)
    if not cli.verbose:
        configure_logging(settings.log.verbosity)
    return settings


def make_executor(settings: P4ScmConfig) -> CommandExecutor:
    return P4CommandExecutor(settings.options, debug_commands=settings.log.debug_commands)
