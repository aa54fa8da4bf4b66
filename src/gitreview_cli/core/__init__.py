"""Core utilities: the git runner and configuration readers."""

from .config import CONFIG_FILENAME, RepoConfig, Settings, parse_repo_config
from .git import Git, GitResult, LocalChanges, parse_log_records

__all__ = [
    "CONFIG_FILENAME",
    "Git",
    "GitResult",
    "LocalChanges",
    "RepoConfig",
    "Settings",
    "parse_log_records",
    "parse_repo_config",
]
