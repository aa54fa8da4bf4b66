"""Helpers shared by the gitreview test suite."""

from __future__ import annotations

import hashlib
import json
import subprocess
from pathlib import Path
from typing import Any

import httpx

REVIEW_HOST = "review.example.com"
REVIEW_URL = f"https://{REVIEW_HOST}"
REVIEW_PROJECT = "proj"

XSSI_PREFIX = ")]}'\n"
DEV_BRANCH_CFG = "branch: dev.branch\nparent-branch: main\n"


def run(cmd: list[str], cwd: Path) -> str:
    result = subprocess.run(cmd, cwd=str(cwd), capture_output=True, text=True, check=False)
    if result.returncode != 0:
        raise AssertionError(f"{' '.join(cmd)} failed in {cwd}:\n{result.stdout}\n{result.stderr}")
    return result.stdout


def git(cwd: Path, *args: str) -> str:
    return run(["git", *args], cwd=cwd).strip()


def make_change_id(seed: str) -> str:
    return "I" + hashlib.sha1(seed.encode("utf-8")).hexdigest()


def commit_files(repo: Path, message: str, files: dict[str, str]) -> str:
    """Write ``files``, commit them with ``message`` and return the new hash."""
    for name, content in files.items():
        path = repo / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        git(repo, "add", name)
    git(repo, "commit", "-q", "-m", message)
    return git(repo, "rev-parse", "HEAD")


def change_json(
    change_id: str,
    number: int,
    *,
    status: str = "NEW",
    revision: str = "",
    branch: str = "main",
    labels: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "id": f"{REVIEW_PROJECT}~{branch}~{change_id}",
        "_number": number,
        "change_id": change_id,
        "project": REVIEW_PROJECT,
        "branch": branch,
        "status": status,
        "current_revision": revision,
        "labels": labels or {},
    }


class FakeReviewServer:
    """In-memory stand-in for the review REST API behind an httpx.MockTransport.

    ``changes`` maps full change identifiers to change JSON. Every request
    is recorded in ``requests``.
    """

    def __init__(self) -> None:
        self.changes: dict[str, dict[str, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.submitted: list[str] = []
        self.after_submit: list[dict[str, Any]] = []
        self.fail_queries_with: int | None = None

    def add(self, full_id: str, data: dict[str, Any]) -> None:
        self.changes[full_id] = data

    def _reply(self, data: Any, status_code: int = 200) -> httpx.Response:
        return httpx.Response(status_code, text=XSSI_PREFIX + json.dumps(data))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "GET" and path == "/a/changes/":
            if self.fail_queries_with is not None:
                return httpx.Response(self.fail_queries_with, text="boom")
            queries = request.url.params.get_list("q")
            results = []
            for query in queries:
                full_id = query.removeprefix("change:")
                results.append([self.changes[full_id]] if full_id in self.changes else [])
            return self._reply(results[0] if len(results) == 1 else results)
        if path.startswith("/a/changes/"):
            rest = path[len("/a/changes/"):]
            if request.method == "POST" and rest.endswith("/submit"):
                full_id = rest[: -len("/submit")]
                self.submitted.append(full_id)
                if self.after_submit:
                    self.changes[full_id] = self.after_submit.pop(0)
                return self._reply(self.changes[full_id])
            if request.method == "GET" and rest in self.changes:
                data = self.changes[rest]
                if self.after_submit and self.submitted:
                    self.changes[rest] = self.after_submit.pop(0)
                return self._reply(data)
        return httpx.Response(404, text="Not found")

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    @property
    def query_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/a/changes/"]
