"""p4 command executor backed by asyncio subprocesses."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Dict, List, Optional, Sequence

from ..config import P4Options
from ..errors import CommandFailed
from .base import CommandResult

logger = logging.getLogger(__name__)


class P4CommandExecutor:
    """Spawn the p4 client for each command."""

    def __init__(self, options: Optional[P4Options] = None, debug_commands: bool = False):
        self._options = options or P4Options()
        self._debug_commands = debug_commands

    @property
    def options(self) -> P4Options:
        return self._options

    def build_argv(self, command: str, args: Sequence[str], options: P4Options, tagged: bool) -> List[str]:
        argv = [options.executable]
        if tagged:
            argv.append("-G")
        argv.append(command)
        argv.extend(args)
        return argv

    def build_env(self, options: P4Options) -> Dict[str, str]:
        env = dict(os.environ)
        env.update(options.to_env())
        return env

    async def execute(
        self,
        command: str,
        args: Sequence[str] = (),
        options: Optional[P4Options] = None,
        tagged: bool = False,
        stdin: Optional[bytes] = None,
    ) -> CommandResult:
        opts = options or self._options
        argv = self.build_argv(command, args, opts, tagged)
        if self._debug_commands:
            logger.debug(f"Executing: {' '.join(argv)} (cwd={opts.cwd or os.getcwd()})")

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=opts.cwd,
                env=self.build_env(opts),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"Error spawning {opts.executable} for '{command}': {e}")
            raise CommandFailed(command, args, stderr=str(e)) from e

        stdout, stderr = await proc.communicate(stdin)
        result = CommandResult(stdout=stdout or b"", stderr=stderr or b"", exit_code=proc.returncode or 0)

        if self._debug_commands:
            logger.debug(f"p4 {command}: exit={proc.returncode} stdout={len(result.stdout)}B stderr={len(result.stderr)}B")
            if result.stderr:
                logger.debug(f"p4 {command} stderr: {result.stderr_text.strip()}")

        if proc.returncode != 0:
            logger.error(f"Error running p4 {command} {' '.join(args)}: {result.stderr_text.strip()}")
            raise CommandFailed(command, args, stderr=result.stderr_text, exit_code=proc.returncode)

        return result
