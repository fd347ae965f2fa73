"""Field-level merge rules for combining query results into one ``P4File``."""

from __future__ import annotations

from typing import Any, Dict

from p4scm_core.models import P4File

OVERRIDE = "override"
FILL = "fill"

# How a ``p4 status`` record updates a file already seen in ``p4 opened``.
STATUS_MERGE_POLICY: Dict[str, str] = {
    "status": OVERRIDE,
    "action": OVERRIDE,
    "diff_status": OVERRIDE,
    "depot_path": FILL,
    "workspace_path": FILL,
    "changelist_id": FILL,
    "revision": FILL,
    "head_revision": FILL,
    "have_revision": FILL,
    "file_type": FILL,
    "user": FILL,
    "client": FILL,
    "shelved": FILL,
    "shelved_changelist_id": FILL,
}


def _absent(value: Any) -> bool:
    return value is None or value == "" or value is False


def merge_status_file(existing: P4File, incoming: P4File) -> P4File:
    """Apply ``STATUS_MERGE_POLICY`` to ``existing`` in place and return it.

    ``changelist_id`` always holds a value, so a status record never moves a
    file out of the changelist ``p4 opened`` reported.
    """
    for name, rule in STATUS_MERGE_POLICY.items():
        value = getattr(incoming, name)
        if rule == OVERRIDE:
            setattr(existing, name, value)
        elif _absent(getattr(existing, name)) and not _absent(value):
            setattr(existing, name, value)
    return existing


def merge_shelved_file(existing: P4File, shelved: P4File) -> P4File:
    """Mark ``existing`` as also shelved in ``shelved``'s changelist."""
    existing.shelved = True
    existing.shelved_changelist_id = shelved.shelved_changelist_id or shelved.changelist_id
    if not existing.workspace_path and shelved.workspace_path:
        existing.workspace_path = shelved.workspace_path
    return existing
