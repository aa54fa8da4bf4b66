"""Collect pending state for every local branch.

Inspecting a branch costs several git calls plus a review server round
trip, so branches are loaded on a bounded worker pool. Each
:class:`PendingBranch` is handled by exactly one task, which keeps the
Branch memo cells single-owner. ``git fetch`` runs alongside the pool and
is joined before any "behind" count is computed.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field

from gitreview_cli.branch.models import PendingSet
from gitreview_cli.branch.state import Branch, local_branches
from gitreview_cli.errors import GitReviewError, ReviewServerError
from gitreview_cli.review.models import ReviewLookup
from gitreview_cli.session import Session

__all__ = [
    "MAX_WORKERS",
    "REVIEW_OPTIONS",
    "PendingBranch",
    "collect_pending",
    "order_branches",
]

logger = logging.getLogger(__name__)

MAX_WORKERS = 10

REVIEW_OPTIONS = ("DETAILED_LABELS", "CURRENT_REVISION", "MESSAGES", "DETAILED_ACCOUNTS")


@dataclass
class PendingBranch:
    """Everything the pending report shows about one branch."""

    branch: Branch
    pending: PendingSet | None = None
    reviews: list[ReviewLookup] = field(default_factory=list)
    committed: list[str] = field(default_factory=list)
    staged: list[str] = field(default_factory=list)
    unstaged: list[str] = field(default_factory=list)
    untracked: list[str] = field(default_factory=list)
    commits_behind: int | None = None
    error: GitReviewError | None = None

    @property
    def name(self) -> str:
        return self.branch.name

    @property
    def current(self) -> bool:
        return self.branch.current

    @property
    def commits(self):
        return self.pending.commits if self.pending is not None else ()

    @property
    def visible(self) -> bool:
        """Branches other than the current one are hidden when they have no work."""
        return self.current or self.error is not None or bool(self.commits)


def order_branches(branches: list[Branch]) -> list[Branch]:
    """Current branch first, the rest in listing order."""
    return [b for b in branches if b.current] + [b for b in branches if not b.current]


def _lookup_reviews(session: Session, branch: Branch, pending: PendingSet) -> list[ReviewLookup]:
    try:
        client = session.review
        ids = [
            client.full_change_id(branch.upstream, commit.change_id) if commit.change_id else None
            for commit in pending.commits
        ]
        return client.query_changes(ids, REVIEW_OPTIONS)
    except ReviewServerError as exc:
        logger.warning("cannot load review state for %s: %s", branch.name, exc)
        return [ReviewLookup(change_id=commit.change_id, error=exc) for commit in pending.commits]


def _load(item: PendingBranch, session: Session, local_only: bool) -> None:
    branch = item.branch
    try:
        item.pending = branch.load_pending()
        if not item.current and not item.pending.commits:
            return
        if item.current:
            changes = session.git.local_changes()
            item.staged, item.unstaged, item.untracked = changes.staged, changes.unstaged, changes.untracked
        head = item.pending.head
        if head is not None:
            item.committed = session.git.changed_files(item.pending.branchpoint, head.hash)
    except GitReviewError as exc:
        logger.debug("loading %s failed: %s", branch.name, exc)
        item.error = exc
        return

    if not local_only and item.pending.commits:
        item.reviews = _lookup_reviews(session, branch, item.pending)


def _load_behind(item: PendingBranch) -> None:
    if item.error is not None:
        return
    try:
        item.commits_behind = item.branch.commits_behind()
    except GitReviewError as exc:
        item.error = exc


def collect_pending(
    session: Session,
    *,
    local_only: bool = False,
    branches: list[Branch] | None = None,
) -> list[PendingBranch]:
    """Load pending state for ``branches`` (default: all local branches).

    With ``local_only`` neither ``git fetch`` nor the review server is
    contacted.

    Raises:
        GitCommandError: the remote refresh failed.
    """
    if branches is None:
        branches = local_branches(session.git)
    items = [PendingBranch(branch=b) for b in order_branches(branches)]
    if not items:
        return []

    fetch_executor: ThreadPoolExecutor | None = None
    fetch_future: Future | None = None
    if not local_only:
        fetch_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="gitreview-fetch")
        fetch_future = fetch_executor.submit(session.git.fetch)

    workers = min(MAX_WORKERS, session.settings.max_workers, len(items))
    try:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="gitreview-pending") as executor:
            list(executor.map(lambda item: _load(item, session, local_only), items))

        if fetch_future is not None:
            fetch_future.result()

        visible = [item for item in items if item.visible]
        if visible:
            with ThreadPoolExecutor(max_workers=min(workers, len(visible))) as executor:
                list(executor.map(_load_behind, visible))
    finally:
        if fetch_executor is not None:
            fetch_executor.shutdown(wait=True)

    logger.debug("collected %d branches (%d workers)", len(items), workers)
    return items
