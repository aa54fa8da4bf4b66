"""Pending report: per-branch local state joined with review server status."""

from __future__ import annotations

from .aggregator import MAX_WORKERS, REVIEW_OPTIONS, PendingBranch, collect_pending, order_branches
from .render import render_branch, render_pending

__all__ = [
    "MAX_WORKERS",
    "REVIEW_OPTIONS",
    "PendingBranch",
    "collect_pending",
    "order_branches",
    "render_branch",
    "render_pending",
]
