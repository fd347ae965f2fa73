"""Turn decoded ``p4 -G`` records into canonical ``P4File`` / ``Changelist`` objects.

Each normalizer takes the list produced by ``decode_stream``. A top-level value
that is not a list is a protocol mismatch and raises ``InvalidRecordShape``.
Individual bad records are skipped with a warning so one odd record never
costs the rest of the batch.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from p4scm_core.errors import InvalidRecordShape
from p4scm_core.models import (
    CHANGELIST_STATUSES,
    DEFAULT_CHANGELIST,
    Changelist,
    P4File,
    format_revision,
)

logger = logging.getLogger(__name__)

# p4 status composite state -> canonical action
STATUS_ACTIONS: Dict[str, str] = {
    "modifiedNotOpened": "modify-local",
    "needsAdd": "add-local",
    "needsDelete": "delete-local",
}

MESSAGE_CODES = ("error", "info")

# Field spellings: the tool's first, then the documented contract names.
DEPOT_FIELDS = ("depotFile", "depotPath")
CLIENT_FIELDS = ("clientFile", "clientPath")


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _field(record: Mapping[str, Any], *names: str) -> Optional[str]:
    """First non-empty value among ``names``."""
    for name in names:
        value = _text(record.get(name))
        if value is not None:
            return value
    return None


def _indexed(record: Mapping[str, Any], names: Sequence[str], index: int) -> Optional[str]:
    return _field(record, *(f"{name}{index}" for name in names))


def _require_sequence(records: Any, query: str) -> Sequence[Any]:
    if not isinstance(records, (list, tuple)):
        raise InvalidRecordShape(
            f"Expected a list of records from p4 {query}, got {type(records).__name__}"
        )
    return records


def _usable(record: Any, query: str, index: int) -> bool:
    if not isinstance(record, dict):
        logger.warning(f"Skipping {query} record #{index}: not a mapping ({type(record).__name__})")
        return False
    code = record.get("code")
    if code in MESSAGE_CODES:
        message = _text(record.get("data")) or ""
        logger.warning(f"Skipping {query} {code} message: {message}")
        return False
    return True


def parse_change_time(value: Any) -> datetime:
    """Parse unix seconds into an aware UTC datetime; unparseable means now."""
    try:
        return datetime.fromtimestamp(int(str(value).strip()), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        logger.warning(f"Unparseable changelist time {value!r}, using current time")
        return datetime.now(timezone.utc)


def normalize_opened(records: Any) -> List[P4File]:
    """Normalize ``p4 opened`` records."""
    files: List[P4File] = []
    for index, record in enumerate(_require_sequence(records, "opened")):
        if not _usable(record, "opened", index):
            continue
        depot = _field(record, *DEPOT_FIELDS) or ""
        client = _field(record, *CLIENT_FIELDS) or ""
        action = _field(record, "action")
        if not (depot or client):
            logger.warning(f"Skipping opened record #{index}: no depot or client path")
            continue
        if action is None:
            logger.warning(f"Skipping opened record #{index} ({depot or client}): no action")
            continue
        files.append(
            P4File(
                depot_path=depot,
                workspace_path=client,
                status=action,
                action=action,
                changelist_id=_field(record, "change") or DEFAULT_CHANGELIST,
                revision=format_revision(record.get("rev")),
                head_revision=format_revision(record.get("headRev")),
                have_revision=format_revision(record.get("haveRev")),
                file_type=_field(record, "type"),
                user=_field(record, "user"),
                client=_field(record, "client"),
            )
        )
    logger.debug(f"Normalized {len(files)} opened file(s)")
    return files


def normalize_status(records: Any) -> List[P4File]:
    """Normalize ``p4 status`` records.

    The composite status string is kept verbatim; ``action`` comes from
    ``STATUS_ACTIONS`` when the status is one of the reconcile states, else
    from the record's own ``action`` field.
    """
    files: List[P4File] = []
    for index, record in enumerate(_require_sequence(records, "status")):
        if not _usable(record, "status", index):
            continue
        depot = _field(record, *DEPOT_FIELDS) or ""
        client = _field(record, *CLIENT_FIELDS) or ""
        if not (depot or client):
            logger.warning(f"Skipping status record #{index}: no depot or client path")
            continue
        status = _field(record, "status") or "unknown"
        action = STATUS_ACTIONS.get(status) or _field(record, "action") or "unknown"
        files.append(
            P4File(
                depot_path=depot,
                workspace_path=client,
                status=status,
                action=action,
                changelist_id=_field(record, "change", "otherChange") or DEFAULT_CHANGELIST,
                revision=format_revision(record.get("rev")),
                head_revision=format_revision(record.get("headRev")),
                have_revision=format_revision(record.get("haveRev")),
                file_type=_field(record, "type"),
                user=_field(record, "user", "otherUser"),
                client=_field(record, "client", "otherClient"),
                diff_status="unresolved" if "Resolve" in status else None,
                shelved=_text(record.get("isShelved")) == "1",
            )
        )
    logger.debug(f"Normalized {len(files)} status file(s)")
    return files


def normalize_changes(records: Any) -> List[Changelist]:
    """Normalize ``p4 changes -l`` records."""
    changes: List[Changelist] = []
    for index, record in enumerate(_require_sequence(records, "changes")):
        if not _usable(record, "changes", index):
            continue
        change_id = _field(record, "change")
        if change_id is None:
            logger.warning(f"Skipping changes record #{index}: no change id")
            continue
        status = _field(record, "status") or "pending"
        if status not in CHANGELIST_STATUSES:
            status = "pending"
        shelved = record.get("shelved")
        change_type = _field(record, "changeType") or ""
        changes.append(
            Changelist(
                id=change_id,
                description=(_text(record.get("desc")) or ""),
                user=_field(record, "user") or "unknown",
                client=_field(record, "client") or "unknown",
                status=status,
                has_shelved_files=shelved is not None and _text(shelved) != "0",
                is_restricted="restricted" in change_type,
                date=parse_change_time(record.get("time")),
            )
        )
    logger.debug(f"Normalized {len(changes)} changelist(s)")
    return changes


def normalize_shelved(records: Any, changelist_id: str) -> List[P4File]:
    """Normalize ``p4 describe -s -S`` output for one shelved changelist.

    File details arrive as indexed fields (``depotFile0``, ``action0``, ...)
    inside a record; iteration stops at the first missing index.
    """
    files: List[P4File] = []
    for index, record in enumerate(_require_sequence(records, "describe")):
        if not _usable(record, "describe", index):
            continue
        owner = _field(record, "change") or changelist_id
        n = 0
        while True:
            depot = _indexed(record, DEPOT_FIELDS, n)
            if depot is None:
                break
            action = _indexed(record, ("action",), n) or "unknown"
            files.append(
                P4File(
                    depot_path=depot,
                    workspace_path=_indexed(record, CLIENT_FIELDS, n) or "",
                    status=action,
                    action=action,
                    changelist_id=owner,
                    revision=format_revision(record.get(f"rev{n}")),
                    file_type=_indexed(record, ("type",), n),
                    user=_field(record, "user"),
                    client=_field(record, "client"),
                    shelved=True,
                    shelved_changelist_id=owner,
                )
            )
            n += 1
    logger.debug(f"Normalized {len(files)} shelved file(s) for changelist {changelist_id}")
    return files
