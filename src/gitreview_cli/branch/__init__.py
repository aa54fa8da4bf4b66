"""Branch state: pending commits and branchpoints computed from git history."""

from __future__ import annotations

from .models import CHANGE_ID_PREFIX, Commit, Memo, MemoState, PendingSet, extract_change_id
from .state import Branch, current_branch, local_branches

__all__ = [
    "CHANGE_ID_PREFIX",
    "Branch",
    "Commit",
    "Memo",
    "MemoState",
    "PendingSet",
    "current_branch",
    "extract_change_id",
    "local_branches",
]
