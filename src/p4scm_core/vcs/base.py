"""Command executor abstraction."""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from ..config import P4Options


@dataclass(frozen=True)
class CommandResult:
    """Raw output of one p4 invocation."""
    stdout: bytes = b""
    stderr: bytes = b""
    exit_code: int = 0

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", errors="surrogateescape")


class CommandExecutor(Protocol):
    """Runs p4 commands; raises ``CommandFailed`` on non-zero exit."""

    async def execute(
        self,
        command: str,
        args: Sequence[str] = (),
        options: Optional[P4Options] = None,
        tagged: bool = False,
        stdin: Optional[bytes] = None,
    ) -> CommandResult:
        """Run ``command`` with ``args``; ``tagged`` requests ``-G`` output."""
        ...
