"""Sync-branch: merge a branch's parent into it, resumably.

The run is a small state machine::

    IDLE -> MERGE_STARTED -> COMMITTED -> FINALIZING -> IDLE
                          \\-> CONFLICT_PENDING -(continue)-> FINALIZING -> IDLE

The :class:`~gitreview_cli.merge.state.MergeStatus` snapshot is written
before the merge starts, so a run stopped on conflicts can be finished
by :func:`continue_sync` from a later invocation. ``git merge --abort``
plus removing the status file abandons a run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from gitreview_cli.branch.state import Branch
from gitreview_cli.core.config import CONFIG_FILENAME, RepoConfig
from gitreview_cli.core.git import Git
from gitreview_cli.errors import (
    ConsistencyError,
    GitCommandError,
    GitReviewError,
    MergeStateError,
    PreconditionError,
)
from gitreview_cli.merge.state import (
    BranchSnapshot,
    MergeStatus,
    clear_status,
    create_status,
    get_status_path,
    has_active_sync,
    load_status,
    save_status,
)
from gitreview_cli.session import Session

__all__ = [
    "PENDING_MERGE_HELP",
    "SyncPhase",
    "SyncResult",
    "build_commit_message",
    "continue_sync",
    "sync_branch",
]

logger = logging.getLogger(__name__)

# Release and development branches get their name in the subject line.
TAGGED_PREFIXES = ("dev.", "release-branch.")

PENDING_MERGE_HELP = (
    "Run 'gitreview sync-branch --continue' if you fixed\n"
    "merge conflicts after a previous sync-branch operation.\n"
    "Or run 'git merge --abort' to give up on the sync-branch."
)


class SyncPhase(str, Enum):
    IDLE = "idle"
    MERGE_STARTED = "merge_started"
    COMMITTED = "committed"
    CONFLICT_PENDING = "conflict_pending"
    FINALIZING = "finalizing"


@dataclass
class SyncResult:
    """Where a sync-branch run stopped.

    ``commit`` is set when a merge commit was created. With ``phase`` at
    ``CONFLICT_PENDING``, ``conflicts`` lists the paths left to resolve.
    """

    phase: SyncPhase
    status: MergeStatus
    commit: str | None = None
    message: str = ""
    conflicts: list[str] = field(default_factory=list)

    @property
    def up_to_date(self) -> bool:
        return self.phase is SyncPhase.IDLE and self.commit is None


def _transition(status: MergeStatus, phase: SyncPhase) -> SyncPhase:
    logger.debug("sync-branch %s: %s", status.local, phase.value)
    return phase


# -- preconditions ------------------------------------------------------


def _check_clean(git: Git, action: str) -> None:
    changes = git.local_changes()
    if changes.staged:
        raise PreconditionError(f"cannot {action}: staged changes exist\n\t" + "\n\t".join(changes.staged))
    if changes.unstaged:
        raise PreconditionError(f"cannot {action}: unstaged changes exist\n\t" + "\n\t".join(changes.unstaged))


def _stale_status_hint(git: Git) -> str:
    return f"If no merge is in progress, remove {get_status_path(git.git_dir())} to start over."


def _check_no_pending_merge(git: Git, action: str) -> None:
    if git.try_rev_parse("MERGE_HEAD"):
        raise MergeStateError(f"cannot {action}: found pending merge\n{PENDING_MERGE_HELP}")
    if has_active_sync(git.git_dir()):
        raise MergeStateError(
            f"cannot {action}: found pending merge\n{PENDING_MERGE_HELP}\n{_stale_status_hint(git)}"
        )


def _sync_names(config: RepoConfig, action: str) -> tuple[str, str]:
    if not config.parent_branch:
        raise PreconditionError(f"cannot {action}: {CONFIG_FILENAME} does not list parent-branch")
    if not config.branch:
        raise PreconditionError(f"cannot {action}: {CONFIG_FILENAME} does not list branch")
    return config.parent_branch, config.branch


# -- commit message ----------------------------------------------------


def build_commit_message(git: Git, status: MergeStatus) -> str:
    """Merge commit message for ``status``; MERGE_HEAD must exist."""
    src, dst = status.source, status.destination
    prefix = f"[{dst.name}] " if dst.name.startswith(TAGGED_PREFIXES) else ""
    lines: list[str] = []
    if status.reverse:
        lines.append(f"{prefix}all: REVERSE MERGE {src.name} ({src.short_hash}) into {dst.name}")
        lines += [
            "",
            "This commit is a REVERSE MERGE.",
            f"It merges {src.name} back into its parent branch, {dst.name}.",
            f"This marks the end of development on {src.name}.",
        ]
    else:
        lines.append(f"{prefix}all: merge {src.name} ({src.short_hash}) into {dst.name}")

    if status.conflicts:
        lines += ["", "Conflicts:", ""]
        lines += [f"- {path}" for path in status.conflicts]

    merged = git.run(
        ["log", "--format=format:+ %cd %h %s", "--date=short", "HEAD..MERGE_HEAD"]
    ).stdout.strip()
    if merged:
        lines += ["", "Merge List:", "", merged]
    return "\n".join(lines) + "\n"


# -- steps --------------------------------------------------------------


def _keep_destination_config(git: Git, status: MergeStatus) -> None:
    dst_hash = status.destination.hash
    if git.show_file(dst_hash, CONFIG_FILENAME) is None:
        git.run(["rm", "-q", "-f", "--ignore-unmatch", CONFIG_FILENAME])
        return
    git.run(["checkout", dst_hash, "--", CONFIG_FILENAME])
    git.run(["add", CONFIG_FILENAME])


def _merge(git: Git, status: MergeStatus) -> list[str]:
    """Start the merge; returns unresolved conflict paths."""
    args = ["merge", "--no-ff", "--no-commit", status.source.hash]
    result = git.run(args, check=False, env={"GIT_EDITOR": ":"})
    if not result.ok and not git.unmerged_paths():
        raise GitCommandError(args, result.returncode, result.stderr, result.stdout)
    if not git.try_rev_parse("MERGE_HEAD"):
        return []
    _keep_destination_config(git, status)
    return [path for path in git.unmerged_paths() if path != CONFIG_FILENAME]


def _finalize(git: Git, status: MergeStatus) -> SyncResult:
    _transition(status, SyncPhase.FINALIZING)
    message = build_commit_message(git, status)
    git.run(["commit", "-q", "-F", "-"], input=message)
    commit = git.rev_parse("HEAD")
    clear_status(git.git_dir())
    logger.info("sync-branch created merge commit %s", commit[:7])
    return SyncResult(phase=_transition(status, SyncPhase.IDLE), status=status, commit=commit, message=message)


def _run_merge(git: Git, status: MergeStatus) -> SyncResult:
    git_dir = git.git_dir()
    _transition(status, SyncPhase.MERGE_STARTED)
    try:
        conflicts = _merge(git, status)
    except GitReviewError:
        if not git.try_rev_parse("MERGE_HEAD"):
            clear_status(git_dir)
        raise

    if not git.try_rev_parse("MERGE_HEAD"):
        clear_status(git_dir)
        logger.info("%s is already up to date with %s", status.destination.name, status.source.name)
        return SyncResult(phase=_transition(status, SyncPhase.IDLE), status=status)

    if conflicts:
        status.set_conflicts(conflicts)
        save_status(status, git_dir)
        return SyncResult(
            phase=_transition(status, SyncPhase.CONFLICT_PENDING),
            status=status,
            conflicts=list(status.conflicts),
        )

    _transition(status, SyncPhase.COMMITTED)
    return _finalize(git, status)


# -- entry points -------------------------------------------------------


def sync_branch(session: Session, *, reverse: bool = False) -> SyncResult:
    """Merge the configured parent branch into the current branch.

    With ``reverse`` the branch is instead merged back into its parent:
    the local branch is reset to the parent and the branch merged in.

    Raises:
        PreconditionError: the working tree or configuration does not allow a sync.
        MergeStateError: a sync-branch or merge is already in progress.
    """
    action = "sync-branch"
    git = session.git
    _check_no_pending_merge(git, action)
    _check_clean(git, action)
    parent_name, branch_name = _sync_names(session.config, action)

    local = git.current_branch_name()
    if local == "HEAD":
        raise PreconditionError(f"cannot {action}: not on a branch (detached HEAD)")

    git.fetch()
    status = MergeStatus(
        local=local,
        parent=BranchSnapshot(parent_name, git.rev_parse(f"origin/{parent_name}")),
        branch=BranchSnapshot(branch_name, git.rev_parse(f"origin/{branch_name}")),
        reverse=reverse,
    )

    if reverse:
        # Pending local work is reported before parent drift. An explicit
        # upstream leaves the branch's tracking config alone.
        work = Branch(git, local, current=True, upstream=f"origin/{branch_name}")
        if work.has_pending_commit():
            raise PreconditionError(
                "cannot sync-branch --merge-back-to-parent: pending changes exist.\n"
                "Submit or drop them before merging back."
            )
        if git.count_commits(f"{status.branch.hash}..{status.parent.hash}"):
            raise PreconditionError(
                f"cannot sync-branch --merge-back-to-parent: parent has new commits.\n"
                f"Run 'gitreview sync-branch' to bring them into {branch_name} first."
            )

    create_status(status, git.git_dir())
    if reverse:
        try:
            git.run(["reset", "-q", "--hard", status.parent.hash])
        except GitReviewError:
            clear_status(git.git_dir())
            raise
    return _run_merge(git, status)


def continue_sync(session: Session) -> SyncResult:
    """Finish a sync-branch that stopped on conflicts.

    Raises:
        MergeStateError: no sync-branch is in progress or its status is unreadable.
        ConsistencyError: the remote branches, local branch or MERGE_HEAD moved.
        PreconditionError: conflicts remain unresolved.
    """
    action = "sync-branch --continue"
    git = session.git
    git_dir = git.git_dir()
    status = load_status(git_dir)
    if status is None:
        if has_active_sync(git_dir):
            raise MergeStateError(f"cannot {action}: sync-branch status is unreadable")
        raise MergeStateError(f"cannot {action}: no sync-branch in progress")

    git.fetch()
    for snap in (status.parent, status.branch):
        now = git.try_rev_parse(f"origin/{snap.name}")
        if now != snap.hash:
            raise ConsistencyError(
                f"cannot {action}: origin/{snap.name} changed underfoot "
                f"(was {snap.short_hash}, now {(now or 'missing')[:7]})"
            )

    local = git.current_branch_name()
    if local != status.local:
        raise ConsistencyError(f"cannot {action}: started on branch {status.local}, now on {local}")

    merge_head = git.try_rev_parse("MERGE_HEAD")
    if merge_head != status.source.hash:
        message = (
            f"cannot {action}: MERGE_HEAD is {(merge_head or 'missing')[:7]}, "
            f"expected {status.source.short_hash}"
        )
        if merge_head is None:
            message += "\n" + _stale_status_hint(git)
        raise ConsistencyError(message)

    remaining = git.unmerged_paths()
    if remaining:
        raise PreconditionError(
            f"cannot {action}: unresolved conflicts remain in:\n\t- " + "\n\t- ".join(remaining)
        )
    return _finalize(git, status)
