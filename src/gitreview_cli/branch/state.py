"""Branch pending-state computation.

A :class:`Branch` answers "what is on this branch that its upstream does
not have yet?" with one ``git log`` query, then remembers the answer.
"""

from __future__ import annotations

import logging

from gitreview_cli.branch.models import CHANGE_ID_PREFIX, Commit, Memo, PendingSet
from gitreview_cli.core.config import CONFIG_FILENAME, RepoConfig
from gitreview_cli.core.git import Git
from gitreview_cli.errors import ConfigError, GitCommandError, PreconditionError

__all__ = ["Branch", "current_branch", "local_branches"]

logger = logging.getLogger(__name__)

DETACHED = "HEAD"


class Branch:
    """A local git branch and its lazily computed pending state.

    ``pending``, ``branchpoint`` and ``commits_behind`` are computed on
    first use and then fixed for the lifetime of the object. Build a new
    Branch to observe later repository state.
    """

    def __init__(
        self,
        git: Git,
        name: str,
        *,
        current: bool = False,
        upstream: str | None = None,
        config: RepoConfig | None = None,
    ):
        self.git = git
        self.name = name
        self.current = current
        self._declared_upstream = upstream
        self._config = config
        self._upstream: Memo[str] = Memo()
        self._pending: Memo[PendingSet] = Memo()
        self._behind: Memo[int] = Memo()

    def __repr__(self) -> str:
        return f"Branch({self.name!r}, current={self.current})"

    @property
    def detached(self) -> bool:
        return self.name == DETACHED

    @property
    def full_name(self) -> str:
        return self.name if self.detached else f"refs/heads/{self.name}"

    @property
    def config(self) -> RepoConfig:
        """The branch's ``codereview.cfg``; the working tree copy for the current branch."""
        if self._config is None:
            try:
                if self.current:
                    self._config = RepoConfig.load(self.git.repo_root)
                else:
                    self._config = RepoConfig.from_text(self.git.show_file(self.name, CONFIG_FILENAME))
            except ConfigError as exc:
                logger.warning("failed to load config for branch %s: %s", self.name, exc)
                self._config = RepoConfig({})
        return self._config

    # -- upstream ------------------------------------------------------

    @property
    def upstream(self) -> str:
        """Remote-tracking ref this branch is compared against, like ``origin/main``.

        Empty for a detached HEAD without a configured ``branch``.
        """
        return self._upstream.get(self._resolve_upstream)

    def _resolve_upstream(self) -> str:
        if self._declared_upstream is not None:
            return self._declared_upstream

        upstream = f"origin/{self.config.branch}" if self.config.branch else ""
        if self.detached:
            return upstream

        git_upstream = self.git.upstream_of(self.name) or ""
        if not upstream:
            upstream = git_upstream
        if not upstream:
            # Branch predates upstream tracking; prefer origin/main when it exists.
            upstream = "origin/main" if self.git.try_rev_parse("origin/main") else "origin/master"
        if git_upstream != upstream and self.current:
            try:
                self.git.run(["branch", "-u", upstream])
            except GitCommandError as exc:
                logger.warning("cannot set upstream of %s to %s: %s", self.name, upstream, exc)
        return upstream

    def need_upstream(self, action: str) -> str:
        upstream = self.upstream
        if not upstream:
            why = " (in detached HEAD mode)" if self.detached else ""
            raise PreconditionError(f"cannot {action}: no upstream branch{why}")
        return upstream

    # -- pending state -------------------------------------------------

    def load_pending(self) -> PendingSet:
        """Compute (once) the pending commits and branchpoint."""
        return self._pending.get(self._compute_pending)

    def _compute_pending(self) -> PendingSet:
        if self.detached:
            return PendingSet(commits=(), branchpoint=self.git.rev_parse(DETACHED))

        upstream = self.need_upstream("compute pending commits")
        commits: list[Commit] = []
        branchpoint = ""
        for record in self.git.read_log(f"{upstream}..{self.full_name}"):
            commit = Commit.from_record(record)
            commits.append(commit)
            if commit.is_merge:
                # Topological order may continue into side history that
                # reaches upstream lower down. A parent already on upstream
                # is the real branchpoint; nothing below it is pending.
                reachable = next((p for p in commit.parents if self.git.is_ancestor(p, upstream)), None)
                if reachable is not None:
                    branchpoint = reachable
                    break
            branchpoint = commit.parent

        if not branchpoint:
            branchpoint = self.git.rev_parse(self.full_name)
        logger.debug("%s: %d pending, branchpoint %s", self.name, len(commits), branchpoint[:7])
        return PendingSet(commits=tuple(commits), branchpoint=branchpoint)

    @property
    def pending(self) -> tuple[Commit, ...]:
        """Pending commits, newest first (children before parents)."""
        return self.load_pending().commits

    @property
    def branchpoint(self) -> str:
        """Latest commit shared with the upstream branch."""
        if not self.detached:
            self.need_upstream("compute branchpoint")
        return self.load_pending().branchpoint

    @property
    def commits_ahead(self) -> int:
        return len(self.load_pending())

    def has_pending_commit(self) -> bool:
        return self.commits_ahead > 0

    def commits_behind(self) -> int:
        """Commits on upstream that this branch lacks.

        Only as fresh as the local remote-tracking refs when first called.
        """
        return self._behind.get(
            lambda: 0 if not self.upstream else self.git.count_commits(f"{self.full_name}..{self.upstream}")
        )

    # -- commit lookups ------------------------------------------------

    def files_in(self, commit: Commit) -> list[str]:
        if not commit.parent:
            return []
        return self.git.changed_files(commit.parent, commit.hash)

    def commit_by_rev(self, action: str, rev: str) -> Commit:
        """Resolve ``rev`` to one of this branch's pending commits."""
        commit_hash = self.git.try_rev_parse(rev)
        if commit_hash is None:
            raise PreconditionError(f"cannot {action}: unknown revision {rev!r}")
        for commit in self.pending:
            if commit.hash == commit_hash:
                return commit
        raise PreconditionError(f"cannot {action}: commit hash {commit_hash!r} not found in the current branch")

    def default_commit(self, action: str, extra: str = "") -> Commit:
        """The only pending commit; more than one is an error."""
        work = self.pending
        if not work:
            raise PreconditionError(f"cannot {action}: no changes pending")
        if len(work) >= 2:
            listing = "".join(f"\n\t{c.short_hash} {c.subject}" for c in work)
            extra = f"; {extra}" if extra else ""
            raise PreconditionError(f"cannot {action}: multiple changes pending{extra}:{listing}")
        return work[0]

    def submitted(self, change_id: str | None) -> bool:
        """Report whether a commit with ``change_id`` already landed upstream."""
        if not change_id or not self.upstream:
            return False
        line = CHANGE_ID_PREFIX + change_id
        out = self.git.run(
            ["log", "-n", "1", "-F", "--grep", line, f"{self.full_name}..{self.upstream}", "--"]
        ).stdout
        return line in out


def current_branch(git: Git) -> Branch:
    return Branch(git, git.current_branch_name(), current=True)


def local_branches(git: Git) -> list[Branch]:
    """Every local branch in listing order; a detached HEAD is reported as ``HEAD``."""
    current = git.current_branch_name()
    names = git.local_branches()
    if current not in names:
        names.append(current)
    return [Branch(git, name, current=(name == current)) for name in names]
