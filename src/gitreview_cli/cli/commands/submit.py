"""Submit command."""

from __future__ import annotations

from typing import Optional

import typer

from gitreview_cli.branch import current_branch
from gitreview_cli.cli.helpers import echo, fail
from gitreview_cli.errors import GitReviewError
from gitreview_cli.session import Session
from gitreview_cli.submit import submit_commit


def submit(
    rev: Optional[str] = typer.Argument(None, help="Pending commit to submit (default: the only pending commit)"),
) -> None:
    """Submit a pending change on the review server and wait for it to merge."""
    try:
        with Session.open() as session:
            branch = current_branch(session.git)
            if rev:
                commit = branch.commit_by_rev("submit", rev)
            else:
                commit = branch.default_commit("submit", "name the commit to submit")
            record = submit_commit(session, branch, commit)
            url = session.review.change_url(record.number) if record.number else commit.short_hash
    except GitReviewError as exc:
        fail(exc)
    echo(f"submitted {url}", err=True)
