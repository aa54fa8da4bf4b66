"""Thin, deterministic wrapper around the git binary.

Every version-control query made by gitreview goes through :class:`Git`.
Calls are blocking; callers that want parallelism run them on worker
threads. ``LC_ALL=C`` is forced so that porcelain and error output can be
matched reliably.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from gitreview_cli.errors import GitCommandError, GitReviewError

__all__ = [
    "Git",
    "GitResult",
    "LocalChanges",
    "LOG_FIELDS",
    "parse_log_records",
]

logger = logging.getLogger(__name__)

# Field name -> git pretty-format placeholder, in query order.
LOG_FIELDS: tuple[tuple[str, str], ...] = (
    ("hash", "%H"),
    ("short_hash", "%h"),
    ("parents", "%P"),
    ("tree", "%T"),
    ("message", "%B"),
    ("subject", "%s"),
    ("author_name", "%an"),
    ("author_email", "%ae"),
    ("author_date", "%at"),
)


@dataclass
class GitResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass
class LocalChanges:
    """Working tree changes as reported by ``git status --porcelain``.

    Paths are relative to the repository root. Renames and copies keep the
    ``from -> to`` form git prints; they are only shown to users.
    """

    staged: list[str] = field(default_factory=list)
    unstaged: list[str] = field(default_factory=list)
    untracked: list[str] = field(default_factory=list)


def parse_log_records(output: str, names: list[str]) -> list[dict[str, str]]:
    """Split NUL-terminated ``git log`` output into one dict per commit.

    Each record is ``f1\\0f2\\0...fn\\0`` and records are separated by the
    newline git writes between entries, so that newline ends up at the
    start of the next record's first field and is trimmed here. Empty
    output yields no records.
    """
    num_fields = len(names)
    fields = output.split("\x00")
    if len(fields) < num_fields:
        return []
    fields = [f.lstrip("\r\n") for f in fields]
    records = []
    for i in range(0, len(fields) - num_fields + 1, num_fields):
        records.append(dict(zip(names, fields[i : i + num_fields])))
    return records


class Git:
    """Runs git commands inside one repository."""

    def __init__(self, repo_root: Path, timeout: float | None = None):
        self.repo_root = Path(repo_root)
        self.timeout = timeout

    def run(
        self,
        args: list[str],
        *,
        check: bool = True,
        input: str | None = None,
        env: dict[str, str] | None = None,
    ) -> GitResult:
        """Run ``git <args>`` and return its output.

        Raises:
            GitCommandError: git is missing, timed out, or (with ``check``)
                exited nonzero.
        """
        logger.debug("git %s", " ".join(shlex.quote(a) for a in args))
        full_env = dict(os.environ)
        full_env["LC_ALL"] = "C"
        if env:
            full_env.update(env)
        try:
            completed = subprocess.run(
                ["git", *args],
                cwd=str(self.repo_root),
                input=input,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
                timeout=self.timeout,
                env=full_env,
            )
        except FileNotFoundError as exc:
            raise GitCommandError(args, 127, "git executable not found on PATH") from exc
        except subprocess.TimeoutExpired as exc:
            raise GitCommandError(args, 124, f"git command timed out after {self.timeout}s") from exc

        result = GitResult(
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
        if check and not result.ok:
            raise GitCommandError(args, result.returncode, result.stderr, result.stdout)
        return result

    def output(self, args: list[str]) -> str:
        """Return stdout of a successful command, stripped of outer whitespace."""
        return self.run(args).stdout.strip()

    def lines(self, args: list[str]) -> list[str]:
        return [line for line in self.run(args).stdout.splitlines() if line.strip()]

    # -- history -------------------------------------------------------

    def read_log(self, rev_range: str, *, topo_order: bool = True) -> list[dict[str, str]]:
        """Read every commit in ``rev_range`` with one ``git log`` call.

        Records come back child-before-parent when ``topo_order`` is set.
        """
        names = [name for name, _ in LOG_FIELDS]
        fmt = "format:" + "".join(f"{placeholder}%x00" for _, placeholder in LOG_FIELDS)
        args = ["log"]
        if topo_order:
            args.append("--topo-order")
        args += [f"--format={fmt}", rev_range, "--"]
        return parse_log_records(self.run(args).stdout, names)

    def count_commits(self, rev_range: str) -> int:
        return int(self.output(["rev-list", "--count", rev_range]) or "0")

    # -- references ----------------------------------------------------

    def rev_parse(self, expr: str) -> str:
        """Resolve ``expr`` to a full commit hash."""
        if expr.startswith("-"):
            # git echoes unknown options back instead of failing.
            raise GitReviewError(f"cannot resolve {expr}: invalid reference")
        commit = self.try_rev_parse(expr)
        if commit is None:
            raise GitReviewError(f"cannot resolve {expr}: unknown revision")
        return commit

    def try_rev_parse(self, expr: str) -> str | None:
        if expr.startswith("-"):
            return None
        result = self.run(["rev-parse", "--verify", "--quiet", f"{expr}^{{commit}}"], check=False)
        return result.stdout.strip() if result.ok and result.stdout.strip() else None

    def is_ancestor(self, commit: str, ref: str) -> bool:
        """Report whether ``commit`` is reachable from ``ref``."""
        result = self.run(["merge-base", "--is-ancestor", commit, ref], check=False)
        if result.returncode in (0, 1):
            return result.returncode == 0
        raise GitCommandError(["merge-base", "--is-ancestor", commit, ref], result.returncode, result.stderr)

    def current_branch_name(self) -> str:
        """Name of the checked-out branch, or ``HEAD`` when detached."""
        name = self.output(["rev-parse", "--abbrev-ref", "HEAD"])
        return name.removeprefix("heads/")

    def local_branches(self) -> list[str]:
        return self.lines(["for-each-ref", "--format=%(refname:short)", "refs/heads/"])

    def upstream_of(self, branch: str) -> str | None:
        """Git's configured upstream for ``branch`` (``None`` if unset)."""
        result = self.run(["rev-parse", "--abbrev-ref", f"{branch}@{{u}}"], check=False)
        if result.ok and result.stdout.strip():
            return result.stdout.strip()
        # Both capitalizations have been seen in the wild.
        if "upstream configured" in result.stderr.lower() or "no such branch" in result.stderr.lower():
            return None
        raise GitCommandError(["rev-parse", "--abbrev-ref", f"{branch}@{{u}}"], result.returncode, result.stderr)

    def git_dir(self) -> Path:
        path = Path(self.output(["rev-parse", "--git-dir"]))
        if not path.is_absolute():
            path = self.repo_root / path
        return path

    def show_file(self, rev: str, path: str) -> str | None:
        result = self.run(["show", f"{rev}:{path}"], check=False)
        return result.stdout if result.ok else None

    def fetch(self) -> None:
        self.run(["fetch", "-q"])

    # -- working tree --------------------------------------------------

    def status_lines(self) -> list[str]:
        return [line for line in self.run(["status", "-b", "--porcelain"]).stdout.splitlines() if line]

    def local_changes(self) -> LocalChanges:
        changes = LocalChanges()
        for line in self.status_lines():
            if len(line) < 4 or line[2] != " ":
                continue
            path = line[3:]
            if line[0] in "ACDMR":
                changes.staged.append(path)
            elif line[0] == "?":
                changes.untracked.append(path)
            if line[1] in "ACDMR":
                changes.unstaged.append(path)
        return changes

    def unmerged_paths(self) -> list[str]:
        """Paths git marks as unmerged: a ``U`` in either column, ``AA`` or ``DD``."""
        paths = []
        for line in self.status_lines():
            if len(line) < 4 or line[2] != " ":
                continue
            code = line[:2]
            if "U" in code or code in ("AA", "DD"):
                paths.append(line[3:])
        return paths

    def changed_files(self, old: str, new: str) -> list[str]:
        return self.lines(["diff", "--name-only", old, new, "--"])
