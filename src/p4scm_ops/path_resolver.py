"""Resolve depot / workspace paths to local filesystem paths with ``p4 where``.

Paths arrive in the decoder's one-byte-per-character form. They are turned
back into their original bytes before reaching ``p4`` and compared byte for
byte against its output, so non-ASCII names resolve whatever their encoding.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from typing import Dict, Iterable, List, Optional

from p4scm_core.config import P4Options
from p4scm_core.errors import CommandFailed
from p4scm_core.vcs.base import CommandExecutor

logger = logging.getLogger(__name__)

UNMAPPED_MARKERS = ("not in client view", "no such file(s)")

# Start of the local column: a drive letter, a UNC share or a single leading slash.
_LOCAL_START = re.compile(r" (?=[A-Za-z]:[\\/]|\\\\|/(?!/))")


def _raw_bytes(path: str) -> bytes:
    try:
        return path.encode("latin-1")
    except UnicodeEncodeError:
        return os.fsencode(path)


def _local_after_depot(rest: str) -> Optional[str]:
    # ``rest`` is "<workspace> <local>"; the workspace path always starts with "//".
    match = _LOCAL_START.search(rest)
    if match is None:
        return None
    return rest[match.end():]


def select_mapping(output: str, query: str) -> Optional[str]:
    """Pick the local path for ``query`` from ``p4 where`` text output.

    Each line reads ``<depot> <workspace> <local>`` and any column may contain
    spaces, so lines are matched against the known query rather than split:
    a depot query must open the line, a workspace query must follow the depot
    column. The first matching line wins. Exclusion mappings (``-//...``) and
    ``/dev/null`` targets never match.
    """
    depot_prefix = f"{query} "
    workspace_marker = f" {query} "
    for line in output.splitlines():
        line = line.strip()
        if not line or line.startswith("-"):
            continue
        if line.startswith(depot_prefix):
            local = _local_after_depot(line[len(depot_prefix):])
        else:
            at = line.find(workspace_marker)
            if at <= 0:
                continue
            local = line[at + len(workspace_marker):]
        if not local or local == "/dev/null" or local.startswith("-"):
            continue
        return local
    return None


class PathResolver:
    def __init__(self, executor: CommandExecutor, options: Optional[P4Options] = None):
        self.executor = executor
        self.options = options

    async def resolve_one(self, path: str) -> Optional[str]:
        raw = _raw_bytes(path)
        try:
            result = await self.executor.execute("where", [os.fsdecode(raw)], self.options, tagged=False)
        except CommandFailed as e:
            logger.warning(f"p4 where {path} failed: {e}")
            return None

        stderr = result.stderr_text.strip()
        if stderr:
            logger.debug(f"p4 where {path} reported: {stderr}")
            if any(marker in stderr for marker in UNMAPPED_MARKERS):
                return None

        local = select_mapping(result.stdout.decode("latin-1"), raw.decode("latin-1"))
        if local is None:
            logger.debug(f"No local mapping for {path}")
            return None
        return os.fsdecode(local.encode("latin-1"))

    async def resolve(self, paths: Iterable[str]) -> Dict[str, Optional[str]]:
        """Resolve each unique non-empty path once, concurrently.

        Unresolvable paths map to ``None``; resolved ones are native
        filesystem paths.
        """
        unique: List[str] = list(dict.fromkeys(p for p in paths if p))
        if not unique:
            return {}
        results = await asyncio.gather(*(self.resolve_one(p) for p in unique))
        resolved = dict(zip(unique, results))
        misses = sum(1 for v in results if v is None)
        logger.debug(f"Resolved {len(unique) - misses}/{len(unique)} path(s)")
        return resolved
