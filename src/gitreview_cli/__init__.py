"""
gitreview - pending-change status and branch syncing for Gerrit-style code review.

Usage:
    gitreview pending [-l]
    gitreview branchpoint
    gitreview sync-branch [--continue | --merge-back-to-parent]
    gitreview submit [REV]
"""

from __future__ import annotations

import logging

import typer

from gitreview_cli.cli.commands import register_commands

__version__ = "0.1.0"

app = typer.Typer(
    name="gitreview",
    help="Inspect pending changes and sync branches for Gerrit-style code review",
    add_completion=False,
    no_args_is_help=True,
)


@app.callback()
def callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every git command and server request"),
) -> None:
    """Configure logging before any command runs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )


register_commands(app)


def main():
    app()


if __name__ == "__main__":
    main()
