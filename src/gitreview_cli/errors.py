"""Exception hierarchy shared by the gitreview modules.

Collaborators raise these with enough detail to attribute the failure;
callers decide whether a failure is scoped to one item or fatal.
"""

from __future__ import annotations

__all__ = [
    "GitReviewError",
    "GitCommandError",
    "ConfigError",
    "PreconditionError",
    "ConsistencyError",
    "MergeStateError",
    "ReviewServerError",
    "ReviewAuthError",
    "ReviewHTTPError",
    "ReviewProtocolError",
]


class GitReviewError(Exception):
    """Base class for every error reported by gitreview."""


class GitCommandError(GitReviewError):
    """A git subprocess exited nonzero or could not be started."""

    def __init__(self, args: list[str], returncode: int, stderr: str = "", stdout: str = ""):
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        detail = _first_line(stderr) or _first_line(stdout) or f"exit status {returncode}"
        super().__init__(f"git {' '.join(args)}: {detail}")


class ConfigError(GitReviewError):
    """Repository or user configuration is malformed."""


class PreconditionError(GitReviewError):
    """An operation was refused before any mutating action."""


class ConsistencyError(GitReviewError):
    """Persisted state no longer matches the repository."""


class MergeStateError(GitReviewError):
    """The persisted sync-branch status could not be created or read."""


class ReviewServerError(GitReviewError):
    """Base class for review server failures."""


class ReviewAuthError(ReviewServerError):
    """No usable credentials or origin for the review server."""


class ReviewHTTPError(ReviewServerError):
    """The review server answered with a non-200 status."""

    def __init__(self, url: str, status_code: int, body: str = ""):
        self.url = url
        self.status_code = status_code
        self.body = body
        if status_code == 404:
            message = "change not found on review server"
        else:
            extra = body.strip()
            message = f"HTTP {status_code}" + (f": {extra}" if extra else "")
        super().__init__(message)


class ReviewProtocolError(ReviewServerError):
    """The review server response could not be decoded or correlated."""


def _first_line(text: str) -> str:
    for line in text.splitlines():
        stripped = line.strip()
        if stripped:
            return stripped
    return ""
