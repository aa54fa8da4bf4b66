"""Sync-branch command: merge the parent branch into the current branch."""

from __future__ import annotations

import typer

from gitreview_cli.cli.helpers import echo, fail
from gitreview_cli.errors import GitReviewError
from gitreview_cli.merge import SyncPhase, SyncResult, continue_sync, sync_branch
from gitreview_cli.session import Session


def _conflict_help(result: SyncResult) -> str:
    files = "\n".join(f"\t- {path}" for path in result.conflicts)
    return (
        f"sync-branch: merge conflicts in:\n{files}\n\n"
        "Please fix them (use 'git status' to see the list again),\n"
        "then 'git add' or 'git rm' to resolve them,\n"
        "and then 'gitreview sync-branch --continue' to continue.\n"
        "Or run 'git merge --abort' to give up on this sync-branch."
    )


def sync_branch_command(
    cont: bool = typer.Option(False, "--continue", help="Finish a sync-branch stopped on merge conflicts"),
    merge_back: bool = typer.Option(
        False,
        "--merge-back-to-parent",
        help="Merge the branch back into its parent branch, ending development on it",
    ),
) -> None:
    """Merge the parent branch named in codereview.cfg into the current branch."""
    if cont and merge_back:
        fail("cannot use --continue with --merge-back-to-parent")
    try:
        with Session.open() as session:
            result = continue_sync(session) if cont else sync_branch(session, reverse=merge_back)
    except GitReviewError as exc:
        fail(exc)

    if result.phase is SyncPhase.CONFLICT_PENDING:
        fail(_conflict_help(result))
    if result.up_to_date:
        echo(f"{result.status.destination.name} is already up to date with {result.status.source.name}.", err=True)
        return
    echo(result.message)
    echo("* Merge commit created.\nPush it for review when ready.", err=True)
