"""Reconciliation engine: one refresh cycle rebuilds the repository state.

A cycle queries ``opened``, ``status`` and pending ``changes``, describes the
shelved changelists, resolves local paths, re-associates files with their
changelists and prunes changelists that disappeared. Files are rebuilt every
cycle; changelist objects are updated in place so readers holding a
reference keep a live object.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from p4scm_core.config import P4Options
from p4scm_core.errors import CommandFailed, InvalidRecordShape, MalformedOutput
from p4scm_core.models import DEFAULT_CHANGELIST, Changelist, P4File
from p4scm_core.state_store import RepositoryStateStore
from p4scm_core.tagged_output import decode_stream
from p4scm_core.vcs.base import CommandExecutor

from .merge import merge_shelved_file, merge_status_file
from .normalize import normalize_changes, normalize_opened, normalize_shelved, normalize_status
from .path_resolver import PathResolver

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


def pending_changes_args(options: Optional[P4Options]) -> List[str]:
    args = ["-s", "pending", "-l"]
    if options is not None and options.user_name:
        args.extend(["-u", options.user_name])
    if options is not None and options.client_name:
        args.extend(["-c", options.client_name])
    return args


class ReconciliationEngine:
    """Owns the ``RepositoryStateStore`` for one workspace and refreshes it."""

    def __init__(
        self,
        executor: CommandExecutor,
        options: Optional[P4Options] = None,
        store: Optional[RepositoryStateStore] = None,
        on_change: Optional[Callable[[], Any]] = None,
    ):
        self.executor = executor
        self.options = options
        self.store = store if store is not None else RepositoryStateStore()
        self.on_change = on_change
        self.path_resolver = PathResolver(executor, options)
        self.last_error: Optional[BaseException] = None
        self.cycles_completed = 0
        self._state = EngineState.IDLE

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is EngineState.RUNNING

    async def refresh(self) -> None:
        """Run one cycle, or do nothing if a cycle is already running."""
        # Check-and-set with no await in between.
        if self._state is EngineState.RUNNING:
            logger.debug("Refresh requested while a cycle is running; dropped")
            return
        self._state = EngineState.RUNNING
        try:
            await self._run_cycle()
        except Exception as e:
            self.last_error = e
            logger.error(f"Error updating repository state: {e}")
            return
        finally:
            self._state = EngineState.IDLE

        self.last_error = None
        self.cycles_completed += 1
        logger.info(
            f"Repository state updated: {self.store.file_count} file(s), "
            f"{self.store.changelist_count} changelist(s)"
        )
        if self.on_change is not None:
            self.on_change()

    # -- query helpers ------------------------------------------------------

    async def _query(self, command: str, args: Sequence[str]) -> List[Any]:
        """Run a tagged query. ``CommandFailed`` propagates; corrupt output means no records."""
        result = await self.executor.execute(command, list(args), self.options, tagged=True)
        try:
            return decode_stream(result.stdout)
        except MalformedOutput as e:
            logger.warning(f"Ignoring malformed output of p4 {command}: {e}")
            return []

    @staticmethod
    def _normalized(source: str, normalizer: Callable[..., List[Any]], records: Any, *extra: Any) -> List[Any]:
        try:
            return normalizer(records, *extra)
        except InvalidRecordShape as e:
            logger.warning(f"Ignoring p4 {source} output: {e}")
            return []

    async def _describe_shelved(self, changelist_id: str) -> List[P4File]:
        try:
            records = await self._query("describe", ["-s", "-S", changelist_id])
        except CommandFailed as e:
            logger.warning(f"Could not describe shelved changelist {changelist_id}: {e}")
            return []
        return self._normalized(f"describe {changelist_id}", normalize_shelved, records, changelist_id)

    # -- cycle ----------------------------------------------------------------

    async def _run_cycle(self) -> None:
        store = self.store
        opts = self.options

        # 1. previous non-default changelists, for pruning
        previous: Set[str] = {cid for cid in store.changelist_ids() if cid != DEFAULT_CHANGELIST}

        # 2. fresh file map, default changelist guaranteed
        store.reset()
        store.ensure_default_changelist(
            opts.user_name if opts else None,
            opts.client_name if opts else None,
        )

        # 3. opened
        records = await self._query("opened", [])
        by_workspace: Dict[str, str] = {}
        for file in self._normalized("opened", normalize_opened, records):
            key = file.placeholder_key
            if store.lookup_file(key) is not None:
                logger.debug(f"Duplicate opened record for {key}; keeping the first")
                continue
            store.insert_file(key, file)
            if file.workspace_path:
                by_workspace.setdefault(file.workspace_path, key)

        # 4. status
        records = await self._query("status", [])
        for file in self._normalized("status", normalize_status, records):
            key = file.placeholder_key
            existing = store.lookup_file(key)
            if existing is None and file.workspace_path in by_workspace:
                existing = store.lookup_file(by_workspace[file.workspace_path])
            if existing is not None:
                merge_status_file(existing, file)
                logger.debug(f"Merged status {file.status!r} into {existing.placeholder_key}")
            else:
                store.insert_file(key, file)
                if file.workspace_path:
                    by_workspace.setdefault(file.workspace_path, key)
                logger.debug(f"Added file from status: {key} ({file.status})")

        # 5. pending changelists; file association happens in step 8
        records = await self._query("changes", pending_changes_args(opts))
        observed: Set[str] = {DEFAULT_CHANGELIST}
        shelved_ids: List[str] = []
        for change in self._normalized("changes", normalize_changes, records):
            kept = store.upsert_changelist(change)
            observed.add(kept.id)
            if kept.has_shelved_files and kept.status == "pending":
                shelved_ids.append(kept.id)

        # 6. shelved files, one describe per changelist, concurrently
        if shelved_ids:
            batches = await asyncio.gather(*(self._describe_shelved(cid) for cid in shelved_ids))
            for shelved in (f for batch in batches for f in batch):
                key = shelved.placeholder_key
                existing = store.lookup_file(key)
                if existing is None and shelved.workspace_path in by_workspace:
                    existing = store.lookup_file(by_workspace[shelved.workspace_path])
                if existing is not None:
                    merge_shelved_file(existing, shelved)
                else:
                    store.insert_file(key, shelved)
                    if shelved.workspace_path:
                        by_workspace.setdefault(shelved.workspace_path, key)

        # 7. local paths; unresolvable files are dropped
        files_by_key = {key: store.lookup_file(key) for key in store.file_keys()}
        resolved = await self.path_resolver.resolve(
            f.workspace_path for f in files_by_key.values() if f is not None
        )
        new_keys: Dict[str, Optional[str]] = {}
        for key, file in files_by_key.items():
            if file is None or not file.workspace_path:
                logger.debug(f"Dropping {key}: no workspace path")
                continue
            local = resolved.get(file.workspace_path)
            if local is None:
                logger.debug(f"Dropping {key}: workspace path {file.workspace_path} did not resolve")
                continue
            new_keys[key] = local
        dropped = store.migrate_keys(new_keys)
        for key, local in new_keys.items():
            file = files_by_key[key]
            if file is not None and key not in dropped:
                file.resolved_local_path = local

        # 8. changelist association, with placeholders for unknown ids
        members: Dict[str, List[P4File]] = {}
        for file in store.files():
            if store.get_changelist(file.changelist_id) is None:
                store.add_changelist(self._placeholder_changelist(file))
                logger.debug(f"Created placeholder for changelist {file.changelist_id}")
            observed.add(file.changelist_id)
            members.setdefault(file.changelist_id, []).append(file)
        for cid, files in members.items():
            store.attach_files(store.get_changelist(cid), files)

        # 9. prune changelists that were known before and are gone now
        for cid in sorted(previous - observed):
            logger.info(f"Pruning changelist no longer pending: {cid}")
            store.remove_changelist(cid)

    def _placeholder_changelist(self, file: P4File) -> Changelist:
        opts = self.options
        return Changelist(
            id=file.changelist_id,
            description=f"Changelist {file.changelist_id}",
            user=file.user or (opts.user_name if opts else None) or "unknown",
            client=file.client or (opts.client_name if opts else None) or "unknown",
            status="pending",
            date=datetime.now(timezone.utc),
        )
