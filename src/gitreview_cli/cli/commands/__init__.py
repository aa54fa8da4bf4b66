"""Command registration for the gitreview CLI."""

from __future__ import annotations

import typer

from .branchpoint import branchpoint
from .pending import pending
from .submit import submit
from .sync_branch import sync_branch_command


def register_commands(app: typer.Typer) -> None:
    app.command()(pending)
    app.command()(branchpoint)
    app.command(name="sync-branch")(sync_branch_command)
    app.command()(submit)


__all__ = ["register_commands"]
