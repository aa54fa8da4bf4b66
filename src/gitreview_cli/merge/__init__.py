"""Resumable branch-to-branch merges (``sync-branch``)."""

from __future__ import annotations

from .executor import PENDING_MERGE_HELP, SyncPhase, SyncResult, build_commit_message, continue_sync, sync_branch
from .state import (
    STATUS_FILENAME,
    BranchSnapshot,
    MergeStatus,
    clear_status,
    create_status,
    get_status_path,
    has_active_sync,
    load_status,
    save_status,
)

__all__ = [
    "PENDING_MERGE_HELP",
    "STATUS_FILENAME",
    "BranchSnapshot",
    "MergeStatus",
    "SyncPhase",
    "SyncResult",
    "build_commit_message",
    "clear_status",
    "continue_sync",
    "create_status",
    "get_status_path",
    "has_active_sync",
    "load_status",
    "save_status",
    "sync_branch",
]
