"""Pending command: show local branches with work not yet on their upstream."""

from __future__ import annotations

import typer

from gitreview_cli.cli.helpers import echo, fail
from gitreview_cli.errors import GitReviewError, ReviewServerError
from gitreview_cli.pending import collect_pending, render_pending
from gitreview_cli.session import Session


def pending(
    local: bool = typer.Option(
        False,
        "--local",
        "-l",
        help="Use only local information; do not fetch or contact the review server",
    ),
) -> None:
    """Show the status of all pending changes and staged, unstaged and untracked files."""
    try:
        with Session.open() as session:
            items = collect_pending(session, local_only=local)
            change_url = None
            if not local:
                try:
                    change_url = session.review.change_url
                except ReviewServerError:
                    change_url = None
            output = render_pending(items, change_url)
    except GitReviewError as exc:
        fail(exc)
    if output:
        echo(output)
