"""Submitting a single pending change through the review server."""

from __future__ import annotations

import logging
import time
from typing import Callable

from gitreview_cli.branch.models import Commit
from gitreview_cli.branch.state import Branch
from gitreview_cli.errors import PreconditionError, ReviewServerError
from gitreview_cli.review.models import ReviewRecord, ReviewStatus
from gitreview_cli.session import Session

__all__ = ["POLL_INTERVAL", "POLL_TIMEOUT", "check_submittable", "submit_commit"]

logger = logging.getLogger(__name__)

POLL_INTERVAL = 1.0
POLL_TIMEOUT = 60.0

SUBMIT_OPTIONS = ("DETAILED_LABELS", "CURRENT_REVISION")


def check_submittable(record: ReviewRecord, commit: Commit) -> None:
    """Refuse changes the server would reject or that are not up to date.

    Raises:
        PreconditionError: the change cannot be submitted as it stands.
    """
    if record.status is ReviewStatus.MERGED:
        raise PreconditionError("cannot submit: change already submitted, run 'git pull'")
    if record.status is ReviewStatus.ABANDONED:
        raise PreconditionError("cannot submit: change abandoned")
    if record.status is not ReviewStatus.NEW:
        raise PreconditionError(f"cannot submit: unexpected change status {record.status.value!r}")
    for name in record.label_names():
        label = record.labels[name]
        if label.optional:
            continue
        if label.rejected is not None:
            raise PreconditionError(f"cannot submit: change has {name} rejection")
        if label.approved is None:
            raise PreconditionError(f"cannot submit: change missing {name} approval")
    if record.current_revision and record.current_revision != commit.hash:
        raise PreconditionError(
            "cannot submit: local commit differs from the latest revision on the review server; mail it first"
        )


def submit_commit(
    session: Session,
    branch: Branch,
    commit: Commit,
    *,
    poll_interval: float = POLL_INTERVAL,
    poll_timeout: float = POLL_TIMEOUT,
    sleep: Callable[[float], None] = time.sleep,
) -> ReviewRecord:
    """Submit ``commit`` and wait until the server reports it merged.

    Every failure is fatal here, unlike the pending report.

    Raises:
        PreconditionError: the working tree or the change is not ready.
        ReviewServerError: the server failed or never finished the submit.
    """
    if "DO NOT SUBMIT" in commit.message:
        raise PreconditionError("cannot submit: commit message says DO NOT SUBMIT")
    changes = session.git.local_changes()
    if changes.staged:
        raise PreconditionError("cannot submit: staged changes exist")
    if changes.unstaged:
        raise PreconditionError("cannot submit: unstaged changes exist")
    if not commit.change_id:
        raise PreconditionError(f"cannot submit: commit {commit.short_hash} has no Change-Id")
    if branch.submitted(commit.change_id):
        raise PreconditionError("cannot submit: change already submitted, run 'git pull'")

    client = session.review
    full_id = client.full_change_id(branch.need_upstream("submit"), commit.change_id)
    record = client.fetch_change(full_id, SUBMIT_OPTIONS)
    check_submittable(record, commit)

    logger.info("submitting %s", client.change_url(record.number) if record.number else full_id)
    record = client.submit(full_id)

    waited = 0.0
    while record.status is ReviewStatus.SUBMITTED:
        if waited >= poll_timeout:
            raise ReviewServerError("cannot submit: timed out waiting for change to be submitted")
        sleep(poll_interval)
        waited += poll_interval
        record = client.fetch_change(full_id, SUBMIT_OPTIONS)

    if record.status is not ReviewStatus.MERGED:
        raise ReviewServerError(f"submit error: unexpected post-submit change status {record.status.value!r}")
    return record
