"""CLI helpers exposed for the command modules."""

from .helpers import console, echo, err_console, fail

__all__ = ["console", "echo", "err_console", "fail"]
