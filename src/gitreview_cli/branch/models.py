"""Value types for branch state: commits, pending sets and memo cells."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, TypeVar

__all__ = [
    "CHANGE_ID_PREFIX",
    "Commit",
    "Memo",
    "MemoState",
    "PendingSet",
    "extract_change_id",
]

CHANGE_ID_PREFIX = "Change-Id: "

T = TypeVar("T")


def extract_change_id(message: str) -> str | None:
    """Return the value of the last ``Change-Id:`` line in ``message``.

    The last line wins so that a commit message quoting another commit
    message still resolves to its own trailer.
    """
    change_id = None
    for line in message.splitlines():
        if line.startswith(CHANGE_ID_PREFIX):
            change_id = line[len(CHANGE_ID_PREFIX):].strip() or None
    return change_id


@dataclass(frozen=True)
class Commit:
    """A single commit as read from ``git log``."""

    hash: str
    short_hash: str
    parents: tuple[str, ...]
    tree: str
    message: str
    subject: str
    change_id: str | None
    author_name: str
    author_email: str
    author_date: str  # Unix timestamp, as printed by %at

    @classmethod
    def from_record(cls, record: dict[str, str]) -> "Commit":
        message = record.get("message", "")
        return cls(
            hash=record["hash"],
            short_hash=record.get("short_hash", ""),
            parents=tuple(record.get("parents", "").split()),
            tree=record.get("tree", ""),
            message=message,
            subject=record.get("subject", ""),
            change_id=extract_change_id(message),
            author_name=record.get("author_name", ""),
            author_email=record.get("author_email", ""),
            author_date=record.get("author_date", ""),
        )

    @property
    def parent(self) -> str:
        return self.parents[0] if self.parents else ""

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1


@dataclass(frozen=True)
class PendingSet:
    """Commits on a branch that are not on its upstream, newest first."""

    commits: tuple[Commit, ...]
    branchpoint: str

    def __len__(self) -> int:
        return len(self.commits)

    def __iter__(self):
        return iter(self.commits)

    @property
    def head(self) -> Commit | None:
        return self.commits[0] if self.commits else None


class MemoState(Enum):
    NOT_COMPUTED = "not_computed"
    COMPUTED = "computed"
    FAILED = "failed"


class Memo(Generic[T]):
    """Compute-once cell holding a value or the error that computing raised.

    A failed computation is not retried; later reads re-raise the stored
    error. Not thread-safe: a memo belongs to one owner at a time.
    """

    __slots__ = ("_state", "_value", "_error")

    def __init__(self) -> None:
        self._state = MemoState.NOT_COMPUTED
        self._value: T | None = None
        self._error: Exception | None = None

    @property
    def state(self) -> MemoState:
        return self._state

    @property
    def error(self) -> Exception | None:
        return self._error

    def get(self, compute: Callable[[], T]) -> T:
        if self._state is MemoState.COMPUTED:
            return self._value  # type: ignore[return-value]
        if self._state is MemoState.FAILED:
            assert self._error is not None
            raise self._error
        try:
            value = compute()
        except Exception as exc:
            self._state = MemoState.FAILED
            self._error = exc
            raise
        self._value = value
        self._state = MemoState.COMPUTED
        return value
