"""Review server records (Gerrit ChangeInfo subset) and lookup results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from gitreview_cli.errors import ReviewProtocolError, ReviewServerError

__all__ = [
    "ReviewAccount",
    "ReviewApproval",
    "ReviewLabel",
    "ReviewLookup",
    "ReviewRecord",
    "ReviewStatus",
]


class ReviewStatus(str, Enum):
    NEW = "NEW"
    SUBMITTED = "SUBMITTED"
    MERGED = "MERGED"
    ABANDONED = "ABANDONED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Any) -> "ReviewStatus":
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class ReviewAccount:
    account_id: int = 0
    name: str = ""
    email: str = ""
    username: str = ""

    @classmethod
    def from_json(cls, data: dict[str, Any] | None) -> "ReviewAccount | None":
        if not data:
            return None
        return cls(
            account_id=int(data.get("_account_id", 0) or 0),
            name=data.get("name", "") or "",
            email=data.get("email", "") or "",
            username=data.get("username", "") or "",
        )

    @property
    def display_name(self) -> str:
        return self.name or self.username or self.email or str(self.account_id)


@dataclass(frozen=True)
class ReviewApproval:
    account: ReviewAccount
    value: int = 0
    date: str = ""


@dataclass(frozen=True)
class ReviewLabel:
    optional: bool = False
    blocking: bool = False
    approved: ReviewAccount | None = None
    rejected: ReviewAccount | None = None
    approvals: tuple[ReviewApproval, ...] = ()

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "ReviewLabel":
        approvals = []
        for entry in data.get("all") or []:
            approvals.append(
                ReviewApproval(
                    account=ReviewAccount.from_json(entry) or ReviewAccount(),
                    value=int(entry.get("value", 0) or 0),
                    date=entry.get("date", "") or "",
                )
            )
        return cls(
            optional=bool(data.get("optional", False)),
            blocking=bool(data.get("blocking", False)),
            approved=ReviewAccount.from_json(data.get("approved")),
            rejected=ReviewAccount.from_json(data.get("rejected")),
            approvals=tuple(approvals),
        )

    def scores(self, owner: ReviewAccount | None = None) -> dict[int, list[str]]:
        """Reviewer names grouped by score, highest score first.

        The owner is left out unless they voted something other than zero.
        """
        by_score: dict[int, list[str]] = {}
        for approval in self.approvals:
            if owner is not None and approval.account.account_id == owner.account_id and approval.value == 0:
                continue
            by_score.setdefault(approval.value, []).append(approval.account.display_name)
        return {score: sorted(by_score[score]) for score in sorted(by_score, reverse=True)}


@dataclass(frozen=True)
class ReviewRecord:
    """Server-side state of one change."""

    id: str
    number: int
    change_id: str
    project: str = ""
    branch: str = ""
    subject: str = ""
    status: ReviewStatus = ReviewStatus.UNKNOWN
    current_revision: str = ""
    labels: dict[str, ReviewLabel] = field(default_factory=dict)
    owner: ReviewAccount | None = None
    mergeable: bool | None = None
    total_comment_count: int = 0
    unresolved_comment_count: int = 0

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "ReviewRecord":
        if not isinstance(data, dict):
            raise ReviewProtocolError(f"unexpected change record: {data!r}")
        try:
            return cls._decode(data)
        except (TypeError, ValueError, AttributeError) as exc:
            raise ReviewProtocolError(f"malformed change record {data.get('id', '')!r}: {exc}") from exc

    @classmethod
    def _decode(cls, data: dict[str, Any]) -> "ReviewRecord":
        labels = {name: ReviewLabel.from_json(info or {}) for name, info in (data.get("labels") or {}).items()}
        mergeable = data.get("mergeable")
        return cls(
            id=data.get("id", "") or "",
            number=int(data.get("_number", 0) or 0),
            change_id=data.get("change_id", "") or "",
            project=data.get("project", "") or "",
            branch=data.get("branch", "") or "",
            subject=data.get("subject", "") or "",
            status=ReviewStatus.parse(data.get("status", "")),
            current_revision=data.get("current_revision", "") or "",
            labels=labels,
            owner=ReviewAccount.from_json(data.get("owner")),
            mergeable=None if mergeable is None else bool(mergeable),
            total_comment_count=int(data.get("total_comment_count", 0) or 0),
            unresolved_comment_count=int(data.get("unresolved_comment_count", 0) or 0),
        )

    def label_names(self) -> list[str]:
        return sorted(self.labels)


@dataclass
class ReviewLookup:
    """Outcome of looking up one identifier in a batched query.

    ``change_id`` is ``None`` for the placeholder sent for commits without
    a change identifier. ``error`` is set when the identifier's batch
    failed; ``records`` is then empty.
    """

    change_id: str | None
    records: list[ReviewRecord] = field(default_factory=list)
    error: ReviewServerError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def record(self) -> ReviewRecord | None:
        """The single matching record, if the query was unambiguous."""
        return self.records[0] if len(self.records) == 1 else None

    @property
    def status(self) -> ReviewStatus:
        record = self.record
        return record.status if record is not None else ReviewStatus.UNKNOWN
