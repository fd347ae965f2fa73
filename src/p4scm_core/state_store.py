"""In-memory repository state: files keyed by identity, changelists keyed by id.

The reconciliation engine is the only writer. Readers get live objects and
must not mutate them; re-read after each change notification.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional

from .models import DEFAULT_CHANGELIST, Changelist, P4File

logger = logging.getLogger(__name__)


def _changelist_sort_key(change: Changelist):
    # Numeric ids descending, anything non-numeric after them, default last.
    if change.is_default:
        return (2, 0, change.id)
    if change.id.isdigit():
        return (0, -int(change.id), change.id)
    return (1, 0, change.id)


class RepositoryStateStore:
    def __init__(self) -> None:
        self._files: Dict[str, P4File] = {}
        self._changelists: Dict[str, Changelist] = {}

    # -- read API -----------------------------------------------------------

    def get_file(self, key: str) -> Optional[P4File]:
        return self._files.get(key)

    def get_changelist(self, changelist_id: str) -> Optional[Changelist]:
        return self._changelists.get(changelist_id)

    def files(self) -> List[P4File]:
        return list(self._files.values())

    def file_keys(self) -> List[str]:
        return list(self._files.keys())

    def changelists(self) -> List[Changelist]:
        return sorted(self._changelists.values(), key=_changelist_sort_key)

    def changelist_ids(self) -> List[str]:
        return list(self._changelists.keys())

    @property
    def file_count(self) -> int:
        return len(self._files)

    @property
    def changelist_count(self) -> int:
        return len(self._changelists)

    # -- writer API ---------------------------------------------------------

    def reset(self) -> None:
        """Drop all files and empty every changelist's derived file list."""
        self._files.clear()
        for change in self._changelists.values():
            change.files = []

    def ensure_default_changelist(self, user: Optional[str] = None, client: Optional[str] = None) -> Changelist:
        change = self._changelists.get(DEFAULT_CHANGELIST)
        if change is None:
            change = Changelist(
                id=DEFAULT_CHANGELIST,
                description="Default changelist",
                user=user or "unknown",
                client=client or "unknown",
                status="pending",
                date=datetime.now(timezone.utc),
            )
            self._changelists[DEFAULT_CHANGELIST] = change
        else:
            change.files = []
        return change

    def lookup_file(self, key: str) -> Optional[P4File]:
        return self._files.get(key)

    def insert_file(self, key: str, file: P4File) -> None:
        self._files[key] = file

    def upsert_changelist(self, incoming: Changelist) -> Changelist:
        """Update an existing changelist in place, or add ``incoming``."""
        existing = self._changelists.get(incoming.id)
        if existing is None:
            incoming.files = []
            self._changelists[incoming.id] = incoming
            return incoming
        existing.update_from(incoming)
        existing.files = []
        return existing

    def add_changelist(self, change: Changelist) -> None:
        self._changelists[change.id] = change

    def remove_changelist(self, changelist_id: str) -> Optional[Changelist]:
        if changelist_id == DEFAULT_CHANGELIST:
            raise ValueError("The default changelist cannot be removed")
        return self._changelists.pop(changelist_id, None)

    def migrate_keys(self, new_keys: Mapping[str, Optional[str]]) -> List[str]:
        """Re-index files under new keys.

        ``new_keys`` maps a current key to its new key, or to ``None`` to drop
        the file. Keys absent from the mapping are dropped too. A new key that
        is already taken keeps the earlier file and drops the later one. The
        swap is done by building a fresh index, so no file is ever reachable
        under two keys. Returns the keys that were dropped.
        """
        migrated: Dict[str, P4File] = {}
        dropped: List[str] = []
        for old_key, file in self._files.items():
            new_key = new_keys.get(old_key)
            if not new_key:
                dropped.append(old_key)
                continue
            if new_key in migrated:
                logger.warning(
                    f"Multiple files resolved to the same local path {new_key!r}; "
                    f"keeping the first, dropping {old_key!r}"
                )
                dropped.append(old_key)
                continue
            migrated[new_key] = file
        self._files = migrated
        return dropped

    def attach_files(self, change: Changelist, files: Iterable[P4File]) -> None:
        seen = {id(f) for f in change.files}
        for file in files:
            if id(file) not in seen:
                seen.add(id(file))
                change.files.append(file)
