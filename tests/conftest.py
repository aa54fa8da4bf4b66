from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

import pytest

from gitreview_cli.core.config import Settings
from gitreview_cli.session import Session
from tests.utils import (
    DEV_BRANCH_CFG,
    REVIEW_HOST,
    REVIEW_PROJECT,
    REVIEW_URL,
    FakeReviewServer,
    commit_files,
    git,
    make_change_id,
)


@dataclass
class GitTest:
    """A "server" repository and a "client" clone of it.

    The client's ``origin`` is spelled as the review server URL and
    rewritten to the server path with ``url.<path>.insteadOf``, so both
    git and review-origin discovery work offline.
    """

    server: Path
    client: Path
    home: Path
    counter: int = 0
    change_ids: list[str] = field(default_factory=list)

    def server_work(self, message: str = "server work", filename: str = "file") -> str:
        self.counter += 1
        path = self.server / filename
        previous = path.read_text(encoding="utf-8") if path.exists() else ""
        return commit_files(self.server, message, {filename: previous + f"server {self.counter}\n"})

    def server_work_unrelated(self, message: str = "unrelated work") -> str:
        self.counter += 1
        return commit_files(self.server, message, {f"other-{self.counter}": f"other {self.counter}\n"})

    def work(self, message: str = "msg", filename: str = "file", *, change_id: bool = True) -> str:
        """Commit on the client's current branch; returns the commit hash."""
        self.counter += 1
        path = self.client / filename
        previous = path.read_text(encoding="utf-8") if path.exists() else ""
        body = message
        if change_id:
            cid = make_change_id(f"{message}-{self.counter}")
            self.change_ids.append(cid)
            body += f"\n\nChange-Id: {cid}\n"
        return commit_files(self.client, body, {filename: previous + f"client {self.counter}\n"})

    def client_git(self, *args: str) -> str:
        return git(self.client, *args)

    def server_git(self, *args: str) -> str:
        return git(self.server, *args)

    def full_id(self, change_id: str, branch: str = "main") -> str:
        return f"{REVIEW_PROJECT}~{branch}~{change_id}"


@pytest.fixture()
def git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate git and gitreview from the user's configuration; returns HOME."""
    home = tmp_path / "home"
    home.mkdir()
    global_config = home / ".gitconfig"
    global_config.write_text(
        "[user]\n\tname = gitreview test\n\temail = test@example.com\n"
        "[init]\n\tdefaultBranch = main\n"
        "[advice]\n\tdetachedHead = false\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(global_config))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GITREVIEW_HOME", str(home / ".gitreview"))
    for name in ("GIT_DIR", "GIT_WORK_TREE", "GIT_INDEX_FILE"):
        monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture()
def temp_repo(tmp_path: Path, git_env: Path) -> Iterator[Path]:
    repo_dir = tmp_path / "repo"
    repo_dir.mkdir()
    git(repo_dir, "init", "-q", "-b", "main")
    yield repo_dir


@pytest.fixture()
def gt(tmp_path: Path, git_env: Path, monkeypatch: pytest.MonkeyPatch) -> GitTest:
    server = tmp_path / "server"
    server.mkdir()
    git(server, "init", "-q", "-b", "main")
    commit_files(server, "initial commit", {"file": "hello\n"})
    git(server, "checkout", "-q", "-b", "dev.branch")
    commit_files(server, "config for dev.branch", {"codereview.cfg": DEV_BRANCH_CFG})
    git(server, "checkout", "-q", "main")

    client = tmp_path / "client"
    git(tmp_path, "clone", "-q", str(server), str(client))
    git(client, "config", f"url.{server}.insteadOf", f"{REVIEW_URL}/{REVIEW_PROJECT}")
    git(client, "remote", "set-url", "origin", f"{REVIEW_URL}/{REVIEW_PROJECT}")

    netrc = git_env / ".netrc"
    netrc.write_text(f"machine {REVIEW_HOST} login alice password secret\n", encoding="utf-8")
    if os.name != "nt":
        netrc.chmod(0o600)

    monkeypatch.chdir(client)
    return GitTest(server=server, client=client, home=git_env)


@pytest.fixture()
def review_server() -> FakeReviewServer:
    return FakeReviewServer()


@pytest.fixture()
def session(gt: GitTest, review_server: FakeReviewServer) -> Iterator[Session]:
    http = review_server.client()
    with Session(gt.client, settings=Settings(), http=http, home=gt.home) as s:
        yield s
    http.close()
