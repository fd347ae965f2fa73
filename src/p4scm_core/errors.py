"""Error taxonomy for p4scm."""

from __future__ import annotations

from typing import Optional, Sequence


class P4ScmError(Exception):
    """Base class for all p4scm errors."""


class ConfigError(P4ScmError):
    """Configuration file missing, unreadable, or invalid."""


class MalformedOutput(P4ScmError):
    """Tagged output buffer is corrupt, truncated, or nested too deeply."""

    def __init__(self, message: str, offset: Optional[int] = None):
        self.offset = offset
        if offset is not None:
            message = f"{message} (at byte {offset})"
        super().__init__(message)


class InvalidRecordShape(P4ScmError):
    """Decoded output does not have the top-level shape a query expects."""


class CommandFailed(P4ScmError):
    """The p4 process exited non-zero or could not be started."""

    def __init__(
        self,
        command: str,
        args: Sequence[str] = (),
        stderr: str = "",
        exit_code: Optional[int] = None,
    ):
        self.command = command
        self.args_list = list(args)
        self.stderr = stderr
        self.exit_code = exit_code
        detail = stderr.strip() or "no error output"
        if exit_code is None:
            message = f"p4 {command} could not be run: {detail}"
        else:
            message = f"p4 {command} failed with exit code {exit_code}: {detail}"
        super().__init__(message)
