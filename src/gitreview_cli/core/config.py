"""Repository and user configuration.

Two sources are read:

* ``codereview.cfg`` at the repository root, lines of ``key: value`` with
  ``#`` comments. It names the review server (``gerrit``), the upstream
  branch (``branch``) and, for development branches, the branch they are
  synced from (``parent-branch``).
* ``~/.gitreview/config.toml`` for per-user settings such as the HTTP
  timeout and the pending worker cap.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import toml  # type: ignore[import-untyped]

from gitreview_cli.errors import ConfigError

__all__ = [
    "CONFIG_FILENAME",
    "RepoConfig",
    "Settings",
    "parse_repo_config",
    "settings_dir",
]

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "codereview.cfg"

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_WORKERS = 10


def parse_repo_config(raw: str) -> dict[str, str]:
    cfg: dict[str, str] = {}
    for line in raw.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition(":")
        if not sep:
            raise ConfigError(f"bad config line, expected 'key: value': {line!r}")
        cfg[key.strip()] = value.strip()
    return cfg


@dataclass(frozen=True)
class RepoConfig:
    """Parsed ``codereview.cfg``; missing file means an empty config."""

    values: dict[str, str]

    @classmethod
    def load(cls, repo_root: Path) -> "RepoConfig":
        path = Path(repo_root) / CONFIG_FILENAME
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("no %s in %s", CONFIG_FILENAME, repo_root)
            return cls({})
        except OSError as exc:
            logger.debug("failed to read %s: %s", path, exc)
            return cls({})
        return cls(parse_repo_config(raw))

    @classmethod
    def from_text(cls, raw: str | None) -> "RepoConfig":
        return cls(parse_repo_config(raw or ""))

    def get(self, key: str, default: str = "") -> str:
        return self.values.get(key, default)

    @property
    def gerrit(self) -> str:
        return self.get("gerrit")

    @property
    def branch(self) -> str:
        return self.get("branch")

    @property
    def parent_branch(self) -> str:
        return self.get("parent-branch")


def settings_dir() -> Path:
    override = os.environ.get("GITREVIEW_HOME")
    if override:
        return Path(override)
    return Path.home() / ".gitreview"


@dataclass(frozen=True)
class Settings:
    """User settings from ``config.toml``; every key is optional."""

    timeout: float = DEFAULT_TIMEOUT
    max_workers: int = DEFAULT_MAX_WORKERS

    @classmethod
    def load(cls, path: Path | None = None) -> "Settings":
        config_file = path or settings_dir() / "config.toml"
        if not config_file.exists():
            return cls()
        try:
            data: dict[str, Any] = toml.load(config_file)
        except (toml.TomlDecodeError, OSError) as exc:
            raise ConfigError(f"cannot read {config_file}: {exc}") from exc

        timeout = DEFAULT_TIMEOUT
        review_section = data.get("review")
        if isinstance(review_section, dict) and isinstance(review_section.get("timeout"), (int, float)):
            timeout = float(review_section["timeout"])

        max_workers = DEFAULT_MAX_WORKERS
        pending_section = data.get("pending")
        if isinstance(pending_section, dict) and isinstance(pending_section.get("max_workers"), int):
            max_workers = max(1, pending_section["max_workers"])

        return cls(timeout=timeout, max_workers=max_workers)
