"""Sync engine for pymxbai - mirror local files into a store."""

from .analyzer import ChangeAnalyzer, ChangeSet
from .detectors import (
    ChangeDetector,
    ChangeKind,
    ChangeRecord,
    ForceDetector,
    HashDetector,
    RevisionDetector,
    select_detector,
)
from .engine import SyncEngine, SyncOutcome, SyncPhase
from .executor import PhaseResults, SyncExecutor, SyncResult, SyncResults
from .git import GitFileChange, GitInfo, GitRepository
from .hashing import calculate_file_hash, hash_file, hashes_match
from .operations import SyncOperations
from .report import SyncReporter, format_change_summary
from .scanner import LocalFile, discover_local_files, expand_patterns
from .state import RemoteFileRecord, SyncMarker, SyncState, SyncStateReader

__all__ = [
    "SyncEngine",
    "SyncOutcome",
    "SyncPhase",
    "ChangeAnalyzer",
    "ChangeSet",
    "ChangeDetector",
    "ChangeKind",
    "ChangeRecord",
    "HashDetector",
    "ForceDetector",
    "RevisionDetector",
    "select_detector",
    "SyncExecutor",
    "SyncResult",
    "SyncResults",
    "PhaseResults",
    "SyncOperations",
    "SyncReporter",
    "format_change_summary",
    "GitRepository",
    "GitInfo",
    "GitFileChange",
    "LocalFile",
    "discover_local_files",
    "expand_patterns",
    "calculate_file_hash",
    "hash_file",
    "hashes_match",
    "RemoteFileRecord",
    "SyncMarker",
    "SyncState",
    "SyncStateReader",
]
