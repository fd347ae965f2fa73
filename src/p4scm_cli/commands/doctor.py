"""
doctor.py - Environment health check command.

Checks configuration, the p4 client and server reachability. Each check runs
only when the one before it passed.
"""

from __future__ import annotations

import asyncio
import json
import shutil
from dataclasses import dataclass, field, asdict
from typing import Optional, List

import typer
from rich.console import Console
from rich.table import Table

from p4scm_core.config import ConfigLoader, P4ScmConfig
from p4scm_core.errors import CommandFailed, ConfigError, InvalidRecordShape
from p4scm_ops.info import fetch_info

from .. import util

console = Console()


@dataclass
class CheckResult:
    name: str
    passed: bool
    message: str
    details: Optional[str] = None


@dataclass
class DoctorResult:
    checks: List[CheckResult] = field(default_factory=list)

    @property
    def all_passed(self) -> bool:
        return all(c.passed for c in self.checks)


def check_config(cli: util.CliContext) -> tuple[CheckResult, Optional[P4ScmConfig]]:
    """Check that the effective configuration loads."""
    try:
        settings = ConfigLoader.load(cli.config_path, overrides=cli.overrides)
    except ConfigError as e:
        return CheckResult(
            name="Configuration",
            passed=False,
            message="Configuration could not be loaded",
            details=str(e),
        ), None

    source = str(settings.source) if settings.source else "defaults only (no p4scm.toml found)"
    return CheckResult(name="Configuration", passed=True, message=f"Loaded from {source}"), settings


def check_p4_executable(settings: P4ScmConfig) -> CheckResult:
    """Check that the p4 client can be found."""
    exe = settings.options.executable
    found = shutil.which(exe)
    if found is None:
        return CheckResult(
            name="p4 Executable",
            passed=False,
            message=f"'{exe}' not found on PATH",
            details="Install the Helix command-line client or set [perforce].command in p4scm.toml",
        )
    return CheckResult(name="p4 Executable", passed=True, message=found)


def check_server(settings: P4ScmConfig) -> CheckResult:
    """Check that `p4 info` answers with a user and client."""
    executor = util.make_executor(settings)
    try:
        info = asyncio.run(fetch_info(executor, settings.options))
    except (CommandFailed, InvalidRecordShape) as e:
        return CheckResult(
            name="Server Connection",
            passed=False,
            message="p4 info failed",
            details=str(e),
        )
    return CheckResult(
        name="Server Connection",
        passed=True,
        message=f"{info.user_name}@{info.client_name} on {info.server_address or 'unknown server'}",
        details=f"Client root: {info.client_root}" if info.client_root else None,
    )


def run_doctor(cli: util.CliContext) -> DoctorResult:
    result = DoctorResult()
    config_check, settings = check_config(cli)
    result.checks.append(config_check)
    if settings is None:
        return result
    exe_check = check_p4_executable(settings)
    result.checks.append(exe_check)
    if exe_check.passed:
        result.checks.append(check_server(settings))
    return result


def print_table(result: DoctorResult) -> None:
    table = Table(title="p4scm Doctor", show_header=True)
    table.add_column("Check", style="bold")
    table.add_column("Status")
    table.add_column("Result")
    table.add_column("Details", style="dim")

    for check in result.checks:
        status = "[green]PASS[/green]" if check.passed else "[red]FAIL[/red]"
        table.add_row(check.name, status, check.message, check.details or "")

    console.print(table)
    if not result.all_passed:
        console.print("[red bold]p4scm is not ready to use this workspace.[/red bold]")


def doctor(
    ctx: typer.Context,
    format: str = typer.Option(
        "plain", "--format", "-f",
        help="Output format: plain, json",
    ),
) -> None:
    """
    Check that p4scm can talk to Perforce.

    Verifies the configuration loads, the p4 executable is on PATH and the
    server answers `p4 info`.
    """
    result = run_doctor(util.cli_context(ctx))

    if format == "json":
        typer.echo(json.dumps({"all_passed": result.all_passed, **asdict(result)}, indent=2))
    else:
        print_table(result)

    raise typer.Exit(0 if result.all_passed else 1)
