"""Text rendering of the pending report."""

from __future__ import annotations

from typing import Callable

from gitreview_cli.branch.models import Commit
from gitreview_cli.pending.aggregator import PendingBranch
from gitreview_cli.review.models import ReviewLookup, ReviewStatus

__all__ = ["render_branch", "render_pending"]


def _indent(text: str, prefix: str) -> list[str]:
    return [prefix + line if line else "" for line in text.rstrip("\n").splitlines()]


def _branch_tags(item: PendingBranch) -> list[str]:
    tags = []
    if item.current:
        tags.append("current branch")
    if item.commits_behind:
        tags.append(f"{item.commits_behind} behind")
    return tags


def _commit_tags(commit: Commit, lookup: ReviewLookup | None) -> list[str]:
    if lookup is None:
        return []
    if not lookup.ok:
        return ["status unknown"]
    record = lookup.record
    if record is None:
        return []
    tags = []
    if record.current_revision == commit.hash:
        tags.append("mailed")
    if record.status is ReviewStatus.MERGED:
        tags.append("submitted")
    elif record.status is ReviewStatus.ABANDONED:
        tags.append("abandoned")
    if record.unresolved_comment_count:
        tags.append(f"{record.unresolved_comment_count} unresolved comments")
    return tags


def _render_commit(
    commit: Commit,
    lookup: ReviewLookup | None,
    change_url: Callable[[int], str] | None,
) -> list[str]:
    header = commit.short_hash
    record = lookup.record if lookup is not None else None
    if record is not None and record.number and change_url is not None:
        header += " " + change_url(record.number)
    tags = _commit_tags(commit, lookup)
    if tags:
        header += f" ({', '.join(tags)})"
    lines = ["\t+ " + header]
    if lookup is not None and lookup.error is not None:
        lines.append(f"\t\tERROR: {lookup.error}")
    lines += _indent(commit.message, "\t\t")

    if record is not None and record.labels:
        lines.append("")
        for name in record.label_names():
            scores = record.labels[name].scores(record.owner)
            if not scores:
                continue
            lines.append(f"\t\t{name}:")
            for score, who in scores.items():
                lines.append(f"\t\t\t{score:+d} {', '.join(who)}")
    lines.append("")
    return lines


def _file_list(title: str, files: list[str]) -> list[str]:
    if not files:
        return []
    return [f"\t{title}:"] + [f"\t\t{name}" for name in files] + [""]


def render_branch(item: PendingBranch, change_url: Callable[[int], str] | None = None) -> str:
    head = item.commits[0].short_hash if item.commits else ""
    header = item.name + (f" {head}" if head else "")
    tags = _branch_tags(item)
    if tags:
        header += f" ({', '.join(tags)})"
    lines = [header]
    if item.error is not None:
        lines.append(f"\tERROR: {item.error}")
        lines.append("")

    lookups = item.reviews if len(item.reviews) == len(item.commits) else [None] * len(item.commits)
    for commit, lookup in zip(item.commits, lookups):
        lines += _render_commit(commit, lookup, change_url)

    lines += _file_list("Files in this branch", item.committed)
    lines += _file_list("Files staged", item.staged)
    lines += _file_list("Files unstaged", item.unstaged)
    lines += _file_list("Files untracked", item.untracked)
    if lines[-1] != "":
        lines.append("")
    return "\n".join(lines) + "\n"


def render_pending(items: list[PendingBranch], change_url: Callable[[int], str] | None = None) -> str:
    """Render visible branches in report order."""
    return "".join(render_branch(item, change_url) for item in items if item.visible)
