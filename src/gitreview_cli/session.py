"""Per-invocation session state.

A :class:`Session` is built once per command, handed to the components
that need repository or server access, and closed when the command ends.
Lazily discovered pieces (review origin, credentials, HTTP client) are
guarded by a lock because pending lookups run on worker threads.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

import httpx

from gitreview_cli.core.config import RepoConfig, Settings
from gitreview_cli.core.git import Git
from gitreview_cli.errors import GitCommandError, PreconditionError
from gitreview_cli.review.client import ReviewClient
from gitreview_cli.review.origin import Credentials, ReviewOrigin, discover_credentials, parse_review_origin

__all__ = ["Session", "find_repo_root"]

logger = logging.getLogger(__name__)


def find_repo_root(start: Path | None = None) -> Path:
    """Top-level directory of the git work tree containing ``start``."""
    try:
        top = Git(start or Path.cwd()).output(["rev-parse", "--show-toplevel"])
    except GitCommandError as exc:
        raise PreconditionError(f"not in a git repository: {exc}") from exc
    return Path(top)


class Session:
    def __init__(
        self,
        repo_root: Path,
        *,
        settings: Settings | None = None,
        http: httpx.Client | None = None,
        home: Path | None = None,
    ):
        self.repo_root = Path(repo_root)
        self.settings = settings or Settings()
        self.git = Git(self.repo_root)
        self._http = http
        self._home = home
        self._lock = threading.Lock()
        self._config: RepoConfig | None = None
        self._origin: ReviewOrigin | None = None
        self._credentials: Credentials | None = None
        self._review: ReviewClient | None = None
        self._closed = False

    @classmethod
    def open(cls, start: Path | None = None, *, settings: Settings | None = None) -> "Session":
        return cls(find_repo_root(start), settings=settings or Settings.load())

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._review is not None:
                self._review.close()
                self._review = None

    @property
    def config(self) -> RepoConfig:
        """``codereview.cfg`` from the working tree, read once."""
        if self._config is None:
            self._config = RepoConfig.load(self.repo_root)
        return self._config

    def review_origin(self) -> ReviewOrigin:
        with self._lock:
            if self._origin is None:
                remote = self.git.run(["config", "remote.origin.url"], check=False).stdout.strip()
                self._origin = parse_review_origin(self.config.gerrit, remote)
                logger.debug("review server %s (project %s)", self._origin.url, self._origin.project)
            return self._origin

    def credentials(self) -> Credentials:
        origin = self.review_origin()
        with self._lock:
            if self._credentials is None:
                self._credentials = discover_credentials(self.git, origin, home=self._home)
            return self._credentials

    @property
    def review(self) -> ReviewClient:
        """The review client; creating it performs no network I/O."""
        origin = self.review_origin()
        with self._lock:
            if self._closed:
                raise RuntimeError("session is closed")
            if self._review is None:
                self._review = ReviewClient(
                    origin,
                    self.credentials,
                    http=self._http,
                    timeout=self.settings.timeout,
                )
            return self._review
