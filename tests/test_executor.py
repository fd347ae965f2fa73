"""P4CommandExecutor tests, using the Python interpreter as a stand-in for p4."""

import sys
from pathlib import Path

import pytest

from p4scm_core.config import P4Options
from p4scm_core.errors import CommandFailed
from p4scm_core.vcs import P4CommandExecutor


def _python(**kwargs) -> P4CommandExecutor:
    return P4CommandExecutor(P4Options(executable_path=sys.executable, **kwargs))


def test_build_argv_puts_tagged_flag_before_command() -> None:
    executor = P4CommandExecutor()
    opts = P4Options()
    assert executor.build_argv("changes", ["-s", "pending"], opts, tagged=True) == ["p4", "-G", "changes", "-s", "pending"]
    assert executor.build_argv("where", ["//ws/a"], opts, tagged=False) == ["p4", "where", "//ws/a"]


def test_build_env_layers_options(monkeypatch) -> None:
    monkeypatch.setenv("P4CLIENT", "from-shell")
    monkeypatch.setenv("HOME_MARKER", "kept")
    env = P4CommandExecutor().build_env(P4Options(client_name="from-options", server_address="perforce:1666"))
    assert env["P4CLIENT"] == "from-options"
    assert env["P4PORT"] == "perforce:1666"
    assert env["HOME_MARKER"] == "kept"


@pytest.mark.asyncio
async def test_stdout_is_returned_as_bytes() -> None:
    result = await _python().execute("-c", ["import sys; sys.stdout.buffer.write(b'{0')"])
    assert result.stdout == b"{0"
    assert result.exit_code == 0


@pytest.mark.asyncio
async def test_environment_and_cwd_reach_the_process(tmp_path: Path) -> None:
    executor = _python(client_name="alice-ws", cwd=str(tmp_path))
    result = await executor.execute("-c", ["import os; print(os.environ['P4CLIENT']); print(os.getcwd())"])
    client, cwd = result.stdout_text.splitlines()
    assert client == "alice-ws"
    assert Path(cwd).resolve() == tmp_path.resolve()


@pytest.mark.asyncio
async def test_stdin_is_forwarded() -> None:
    result = await _python().execute("-c", ["import sys; sys.stdout.write(sys.stdin.read().upper())"], stdin=b"change 12")
    assert result.stdout == b"CHANGE 12"


@pytest.mark.asyncio
async def test_non_zero_exit_raises_command_failed() -> None:
    with pytest.raises(CommandFailed) as excinfo:
        await _python().execute("-c", ["import sys; sys.stderr.write('Connect to server failed'); sys.exit(3)"])
    err = excinfo.value
    assert err.exit_code == 3
    assert err.command == "-c"
    assert "Connect to server failed" in err.stderr
    assert "exit code 3" in str(err)


@pytest.mark.asyncio
async def test_missing_executable_raises_command_failed(tmp_path: Path) -> None:
    executor = P4CommandExecutor(P4Options(executable_path=str(tmp_path / "no-such-p4")))
    with pytest.raises(CommandFailed) as excinfo:
        await executor.execute("info")
    assert excinfo.value.exit_code is None
    assert "could not be run" in str(excinfo.value)


@pytest.mark.asyncio
async def test_per_call_options_override_defaults(tmp_path: Path) -> None:
    executor = _python(client_name="default-ws")
    result = await executor.execute(
        "-c",
        ["import os; print(os.environ['P4CLIENT'])"],
        options=P4Options(executable_path=sys.executable, client_name="other-ws"),
    )
    assert result.stdout_text.strip() == "other-ws"
