"""``p4 info``: connection identity and workspace root."""

from __future__ import annotations

import logging
import re
from typing import Dict, Optional

from p4scm_core.config import P4Options
from p4scm_core.errors import CommandFailed, InvalidRecordShape
from p4scm_core.models import P4Info
from p4scm_core.vcs.base import CommandExecutor

logger = logging.getLogger(__name__)

INFO_FIELDS: Dict[str, str] = {
    "user_name": "User name",
    "client_name": "Client name",
    "client_host": "Client host",
    "client_root": "Client root",
    "server_address": "Server address",
    "server_version": "Server version",
    "server_license": "Server license",
    "case_handling": "Case Handling",
}


def _match(text: str, label: str) -> Optional[str]:
    match = re.search(rf"^{re.escape(label)}:\s*(.*)$", text, re.IGNORECASE | re.MULTILINE)
    if not match:
        return None
    return match.group(1).strip() or None


def parse_info_output(text: str) -> P4Info:
    values = {field: _match(text, label) for field, label in INFO_FIELDS.items()}
    missing = [INFO_FIELDS[k] for k in ("user_name", "client_name") if not values[k]]
    if missing:
        raise InvalidRecordShape(f"p4 info output has no {' or '.join(missing)}")
    return P4Info(**values)


async def fetch_info(executor: CommandExecutor, options: Optional[P4Options] = None) -> P4Info:
    result = await executor.execute("info", [], options, tagged=False)
    info = parse_info_output(result.stdout_text)
    logger.debug(f"p4 info: user={info.user_name} client={info.client_name} server={info.server_address}")
    return info


async def detect_client_root(executor: CommandExecutor, options: Optional[P4Options] = None) -> Optional[str]:
    """Return the workspace root p4 reports for ``options.cwd``, or ``None``.

    A directory outside any workspace is not an error: p4 answers with
    ``Client root`` missing or the client name unknown.
    """
    try:
        result = await executor.execute("info", [], options, tagged=False)
    except CommandFailed as e:
        logger.info(f"No Perforce workspace detected: {e}")
        return None
    root = _match(result.stdout_text, "Client root")
    if root is None:
        logger.info("p4 info reported no client root")
    return root
