"""Tests for review record parsing and label summaries."""

from __future__ import annotations

import pytest

from gitreview_cli.errors import ReviewProtocolError
from gitreview_cli.review import ReviewAccount, ReviewLabel, ReviewLookup, ReviewRecord, ReviewStatus


def test_status_parse():
    assert ReviewStatus.parse("merged") is ReviewStatus.MERGED
    assert ReviewStatus.parse("SUBMITTED") is ReviewStatus.SUBMITTED
    assert ReviewStatus.parse("UNEXPECTED") is ReviewStatus.UNKNOWN


def test_record_from_json():
    record = ReviewRecord.from_json(
        {
            "id": "proj~main~Iabc",
            "_number": 12,
            "change_id": "Iabc",
            "status": "NEW",
            "current_revision": "cafe",
            "owner": {"_account_id": 5, "name": "Owner"},
            "labels": {"Verified": {}, "Code-Review": {"approved": {"_account_id": 7}}},
            "unresolved_comment_count": 2,
            "mergeable": True,
        }
    )
    assert record.number == 12
    assert record.owner.display_name == "Owner"
    assert record.label_names() == ["Code-Review", "Verified"]
    assert record.labels["Code-Review"].approved.account_id == 7
    assert record.unresolved_comment_count == 2
    assert record.mergeable is True


def test_record_rejects_non_object():
    with pytest.raises(ReviewProtocolError):
        ReviewRecord.from_json(["not", "a", "change"])


@pytest.mark.parametrize(
    "data",
    [
        {"id": "x", "_number": "12a"},
        {"id": "x", "labels": ["Code-Review"]},
        {"id": "x", "labels": {"Code-Review": {"all": [3]}}},
        {"id": "x", "owner": "someone"},
    ],
)
def test_record_rejects_malformed_fields(data):
    with pytest.raises(ReviewProtocolError, match="malformed change record"):
        ReviewRecord.from_json(data)


def test_label_scores_sorted_and_owner_zero_hidden():
    owner = ReviewAccount(account_id=1, name="Owner")
    label = ReviewLabel.from_json(
        {
            "all": [
                {"_account_id": 1, "name": "Owner", "value": 0},
                {"_account_id": 2, "name": "Zed", "value": 1},
                {"_account_id": 3, "name": "Amy", "value": 1},
                {"_account_id": 4, "name": "Bob", "value": -1},
                {"_account_id": 5, "name": "Cat", "value": 2},
            ]
        }
    )
    scores = label.scores(owner)
    assert list(scores) == [2, 1, -1]
    assert scores[1] == ["Amy", "Zed"]
    assert all("Owner" not in names for names in scores.values())


def test_owner_nonzero_vote_shown():
    owner = ReviewAccount(account_id=1, name="Owner")
    label = ReviewLabel.from_json({"all": [{"_account_id": 1, "name": "Owner", "value": 1}]})
    assert label.scores(owner) == {1: ["Owner"]}


def test_lookup_record_requires_unique_match():
    a = ReviewRecord(id="a", number=1, change_id="I1")
    b = ReviewRecord(id="b", number=2, change_id="I1")
    assert ReviewLookup(change_id="I1", records=[a]).record is a
    assert ReviewLookup(change_id="I1", records=[a, b]).record is None
    assert ReviewLookup(change_id="I1").status is ReviewStatus.UNKNOWN
