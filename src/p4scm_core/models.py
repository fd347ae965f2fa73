"""Canonical entities tracked by the repository state store."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

DEFAULT_CHANGELIST = "default"

CHANGELIST_STATUSES = ("pending", "submitted", "shelved")


def format_revision(value: object) -> Optional[str]:
    """Render a revision marker as ``#N`` (or ``#none``); empty means absent."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if text.startswith("#"):
        return text
    return f"#{text}"


@dataclass(eq=False)
class P4File:
    """One tracked file.

    Equality is identity: the store and changelists hold the same live object.
    """
    depot_path: str = ""
    workspace_path: str = ""
    status: str = "unknown"
    action: str = "unknown"
    changelist_id: str = DEFAULT_CHANGELIST
    resolved_local_path: Optional[str] = None
    revision: Optional[str] = None
    head_revision: Optional[str] = None
    have_revision: Optional[str] = None
    file_type: Optional[str] = None
    user: Optional[str] = None
    client: Optional[str] = None
    diff_status: Optional[str] = None
    shelved: bool = False
    shelved_changelist_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.changelist_id:
            self.changelist_id = DEFAULT_CHANGELIST

    @property
    def placeholder_key(self) -> str:
        """Provisional identity used before the local path is known."""
        return self.depot_path or self.workspace_path

    @property
    def key(self) -> str:
        return self.resolved_local_path or self.placeholder_key

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "depot_path": self.depot_path,
            "workspace_path": self.workspace_path,
            "resolved_local_path": self.resolved_local_path,
            "status": self.status,
            "action": self.action,
            "changelist_id": self.changelist_id,
            "revision": self.revision,
            "head_revision": self.head_revision,
            "have_revision": self.have_revision,
            "file_type": self.file_type,
            "user": self.user,
            "client": self.client,
            "diff_status": self.diff_status,
            "shelved": self.shelved,
            "shelved_changelist_id": self.shelved_changelist_id,
        }


@dataclass(eq=False)
class Changelist:
    """A pending (or default) changelist. ``files`` is derived each cycle."""
    id: str
    description: str = ""
    user: str = "unknown"
    client: str = "unknown"
    status: str = "pending"
    files: List[P4File] = field(default_factory=list)
    has_shelved_files: bool = False
    is_restricted: bool = False
    date: Optional[datetime] = None

    @property
    def is_default(self) -> bool:
        return self.id == DEFAULT_CHANGELIST

    def update_from(self, other: "Changelist") -> None:
        """Copy observed attributes from ``other``, keeping this object and its file list."""
        self.description = other.description
        self.user = other.user
        self.client = other.client
        self.status = other.status
        self.has_shelved_files = other.has_shelved_files
        self.is_restricted = other.is_restricted
        self.date = other.date

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "user": self.user,
            "client": self.client,
            "status": self.status,
            "has_shelved_files": self.has_shelved_files,
            "is_restricted": self.is_restricted,
            "date": self.date.isoformat() if self.date else None,
            "files": [f.key for f in self.files],
        }


@dataclass(frozen=True)
class P4Info:
    """Parsed ``p4 info`` output."""
    user_name: str
    client_name: str
    client_host: Optional[str] = None
    client_root: Optional[str] = None
    server_address: Optional[str] = None
    server_version: Optional[str] = None
    server_license: Optional[str] = None
    case_handling: Optional[str] = None
