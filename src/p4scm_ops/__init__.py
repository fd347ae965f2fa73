"""Operations over the p4scm core: normalization, merging, resolution, reconciliation."""

from .info import detect_client_root, fetch_info, parse_info_output
from .merge import STATUS_MERGE_POLICY, merge_shelved_file, merge_status_file
from .normalize import (
    STATUS_ACTIONS,
    normalize_changes,
    normalize_opened,
    normalize_shelved,
    normalize_status,
)
from .path_resolver import PathResolver, select_mapping
from .reconcile import EngineState, ReconciliationEngine

__all__ = [
    "detect_client_root",
    "fetch_info",
    "parse_info_output",
    "STATUS_MERGE_POLICY",
    "merge_shelved_file",
    "merge_status_file",
    "STATUS_ACTIONS",
    "normalize_changes",
    "normalize_opened",
    "normalize_shelved",
    "normalize_status",
    "PathResolver",
    "select_mapping",
    "EngineState",
    "ReconciliationEngine",
]
