"""Branchpoint command."""

from __future__ import annotations

from gitreview_cli.branch import current_branch
from gitreview_cli.cli.helpers import echo, fail
from gitreview_cli.errors import GitReviewError
from gitreview_cli.session import Session


def branchpoint() -> None:
    """Print the commit where the current branch left its upstream."""
    try:
        with Session.open() as session:
            commit = current_branch(session.git).branchpoint
    except GitReviewError as exc:
        fail(exc)
    echo(commit)
