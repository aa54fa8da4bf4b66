"""Sync-branch status persistence.

A sync-branch that stops on conflicts must be resumable from a later
invocation, so the snapshot taken when it started is written to
``<git-dir>/gitreview-sync-branch-status`` before any merge begins and
removed once the merge commit exists.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from filelock import FileLock, Timeout

from gitreview_cli.errors import MergeStateError

__all__ = [
    "STATUS_FILENAME",
    "BranchSnapshot",
    "MergeStatus",
    "clear_status",
    "create_status",
    "get_status_path",
    "has_active_sync",
    "load_status",
    "save_status",
]

logger = logging.getLogger(__name__)

STATUS_FILENAME = "gitreview-sync-branch-status"

LOCK_TIMEOUT = 10


@dataclass
class BranchSnapshot:
    """A remote branch name and the hash it pointed at when the sync started."""

    name: str
    hash: str

    @property
    def short_hash(self) -> str:
        return self.hash[:7]


@dataclass
class MergeStatus:
    """State of one sync-branch run.

    In normal mode ``parent`` is merged into ``branch``; with ``reverse``
    set, ``branch`` is merged back into ``parent``.
    """

    local: str
    parent: BranchSnapshot
    branch: BranchSnapshot
    reverse: bool = False
    conflicts: list[str] = field(default_factory=list)
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def source(self) -> BranchSnapshot:
        return self.branch if self.reverse else self.parent

    @property
    def destination(self) -> BranchSnapshot:
        return self.parent if self.reverse else self.branch

    def set_conflicts(self, paths: list[str]) -> None:
        self.conflicts = sorted(set(paths))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MergeStatus":
        return cls(
            local=data["local"],
            parent=BranchSnapshot(**data["parent"]),
            branch=BranchSnapshot(**data["branch"]),
            reverse=bool(data.get("reverse", False)),
            conflicts=list(data.get("conflicts") or []),
            started_at=data.get("started_at", ""),
        )


def get_status_path(git_dir: Path) -> Path:
    return Path(git_dir) / STATUS_FILENAME


def _lock(git_dir: Path) -> FileLock:
    return FileLock(str(get_status_path(git_dir)) + ".lock", timeout=LOCK_TIMEOUT)


def create_status(status: MergeStatus, git_dir: Path) -> Path:
    """Write ``status``, failing if a sync-branch is already recorded.

    Raises:
        MergeStateError: a status file exists or the lock is held.
    """
    path = get_status_path(git_dir)
    try:
        with _lock(git_dir):
            with open(path, "x", encoding="utf-8") as handle:
                json.dump(status.to_dict(), handle, indent=2)
    except FileExistsError as exc:
        raise MergeStateError("a sync-branch is already in progress") from exc
    except Timeout as exc:
        raise MergeStateError(f"cannot lock {path}: another sync-branch is running") from exc
    logger.debug("created sync-branch status %s", path)
    return path


def save_status(status: MergeStatus, git_dir: Path) -> Path:
    """Overwrite the recorded status (used to record conflicts)."""
    path = get_status_path(git_dir)
    try:
        with _lock(git_dir):
            path.write_text(json.dumps(status.to_dict(), indent=2), encoding="utf-8")
    except Timeout as exc:
        raise MergeStateError(f"cannot lock {path}: another sync-branch is running") from exc
    return path


def load_status(git_dir: Path) -> MergeStatus | None:
    """Load the recorded status; ``None`` when missing or unreadable."""
    path = get_status_path(git_dir)
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return MergeStatus.from_dict(data)
    except (OSError, ValueError, KeyError, TypeError) as exc:
        logger.warning("ignoring unreadable sync-branch status %s: %s", path, exc)
        return None


def clear_status(git_dir: Path) -> bool:
    """Remove the status file; returns whether one existed."""
    path = get_status_path(git_dir)
    if not path.exists():
        return False
    path.unlink()
    return True


def has_active_sync(git_dir: Path) -> bool:
    return get_status_path(git_dir).exists()
