"""Shared console objects and error reporting for CLI commands."""

from __future__ import annotations

from typing import NoReturn

import typer
from rich.console import Console

__all__ = ["console", "err_console", "echo", "fail"]

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)

PROGRAM = "gitreview"


def echo(text: str, *, err: bool = False) -> None:
    """Print plain text exactly as given; git output may contain brackets."""
    target = err_console if err else console
    target.print(text, markup=False, soft_wrap=True, end="" if text.endswith("\n") else "\n")


def fail(error: Exception | str, *, detail: str = "") -> NoReturn:
    """Report one fatal diagnostic on stderr and exit with status 1."""
    err_console.print(f"[red]{PROGRAM}:[/red] ", end="")
    echo(str(error) + (f"\n{detail}" if detail else ""), err=True)
    raise typer.Exit(1)
