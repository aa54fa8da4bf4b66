"""Tests for pending commits and branchpoints computed from real repositories."""

from __future__ import annotations

import pytest

from gitreview_cli.branch import Branch, Memo, MemoState, current_branch, extract_change_id, local_branches
from gitreview_cli.core.git import Git
from gitreview_cli.errors import GitCommandError, PreconditionError
from tests.utils import commit_files


class TestChangeId:
    def test_last_change_id_wins(self):
        message = (
            "subject\n\n"
            "Quoting another commit:\n"
            "Change-Id: I1111111111111111111111111111111111111111\n\n"
            "Change-Id: I2222222222222222222222222222222222222222\n"
        )
        assert extract_change_id(message) == "I2222222222222222222222222222222222222222"

    def test_no_change_id(self):
        assert extract_change_id("subject\n\nbody\n") is None

    def test_indented_line_is_not_a_trailer(self):
        assert extract_change_id("subject\n\n  Change-Id: Iabc\n") is None


class TestMemo:
    def test_computes_once(self):
        calls = []
        memo: Memo[int] = Memo()

        def compute():
            calls.append(1)
            return 42

        assert memo.state is MemoState.NOT_COMPUTED
        assert memo.get(compute) == 42
        assert memo.get(compute) == 42
        assert memo.state is MemoState.COMPUTED
        assert len(calls) == 1

    def test_failure_is_remembered(self):
        calls = []
        memo: Memo[int] = Memo()

        def compute():
            calls.append(1)
            raise ValueError("broken")

        with pytest.raises(ValueError) as first:
            memo.get(compute)
        with pytest.raises(ValueError) as second:
            memo.get(compute)

        assert memo.state is MemoState.FAILED
        assert first.value is second.value
        assert len(calls) == 1


class TestPending:
    def test_zero_pending(self, gt):
        branch = current_branch(Git(gt.client))
        assert branch.pending == ()
        assert branch.branchpoint == gt.client_git("rev-parse", "main")
        assert branch.has_pending_commit() is False

    def test_linear_chain(self, gt):
        base = gt.client_git("rev-parse", "HEAD")
        hashes = [gt.work(f"msg #{i}") for i in range(3)]

        branch = current_branch(Git(gt.client))

        assert [c.hash for c in branch.pending] == list(reversed(hashes))
        assert branch.branchpoint == base
        assert branch.commits_ahead == 3
        assert [c.change_id for c in branch.pending] == list(reversed(gt.change_ids))
        assert branch.pending[0].subject == "msg #2"

    def test_merge_commit_ends_pending_list(self, gt):
        gt.work("local work")
        server_head = gt.server_work("server work", filename="server-file")
        gt.client_git("fetch", "-q")
        gt.client_git("merge", "-q", "--no-edit", "origin/main")
        merge = gt.client_git("rev-parse", "HEAD")

        branch = current_branch(Git(gt.client))

        assert [c.hash for c in branch.pending] == [merge]
        assert branch.pending[0].is_merge
        assert branch.branchpoint == server_head

    def test_detached_head(self, gt):
        gt.work("local work")
        head = gt.client_git("rev-parse", "HEAD")
        gt.client_git("checkout", "-q", "HEAD^0")

        branch = current_branch(Git(gt.client))

        assert branch.detached
        assert branch.pending == ()
        assert branch.branchpoint == head

    def test_load_is_memoized(self, gt):
        gt.work("one")
        branch = current_branch(Git(gt.client))
        first = branch.load_pending()
        gt.work("two")
        assert branch.load_pending() is first

    def test_failed_load_reraises(self, gt):
        branch = Branch(Git(gt.client), "main", upstream="origin/does-not-exist")
        with pytest.raises(GitCommandError) as first:
            branch.load_pending()
        with pytest.raises(GitCommandError) as second:
            branch.load_pending()
        assert first.value is second.value

    def test_commits_behind(self, gt):
        gt.server_work("one")
        gt.server_work("two")
        branch = current_branch(Git(gt.client))
        gt.client_git("fetch", "-q")
        assert branch.commits_behind() == 2


class TestUpstream:
    def test_config_branch_wins(self, gt):
        gt.client_git("checkout", "-q", "-b", "feature", "origin/dev.branch")
        branch = current_branch(Git(gt.client))
        assert branch.upstream == "origin/dev.branch"

    def test_git_upstream_used_without_config(self, gt):
        branch = current_branch(Git(gt.client))
        assert branch.upstream == "origin/main"

    def test_current_branch_upstream_is_corrected(self, gt):
        gt.client_git("checkout", "-q", "-b", "work", "origin/dev.branch")
        gt.client_git("branch", "--unset-upstream")
        current_branch(Git(gt.client)).upstream
        assert gt.client_git("rev-parse", "--abbrev-ref", "work@{u}") == "origin/dev.branch"

    def test_non_current_branch_reads_committed_config(self, gt):
        gt.client_git("branch", "-q", "dev.branch", "origin/dev.branch")
        branches = {b.name: b for b in local_branches(Git(gt.client))}
        assert branches["dev.branch"].config.parent_branch == "main"
        assert branches["main"].config.branch == ""


class TestCommitLookup:
    def test_default_commit_single(self, gt):
        head = gt.work("only")
        assert current_branch(Git(gt.client)).default_commit("submit").hash == head

    def test_default_commit_none_pending(self, gt):
        with pytest.raises(PreconditionError, match="no changes pending"):
            current_branch(Git(gt.client)).default_commit("submit")

    def test_default_commit_multiple(self, gt):
        gt.work("one")
        gt.work("two")
        with pytest.raises(PreconditionError, match="multiple changes pending"):
            current_branch(Git(gt.client)).default_commit("submit")

    def test_commit_by_rev(self, gt):
        first = gt.work("one")
        gt.work("two")
        branch = current_branch(Git(gt.client))
        assert branch.commit_by_rev("submit", "HEAD^").hash == first
        with pytest.raises(PreconditionError, match="not found in the current branch"):
            branch.commit_by_rev("submit", "origin/main")

    def test_files_in(self, gt):
        gt.work("touch two files", filename="dir/new.txt")
        branch = current_branch(Git(gt.client))
        assert branch.files_in(branch.pending[0]) == ["dir/new.txt"]

    def test_submitted_finds_change_on_upstream(self, gt):
        gt.work("local copy")
        cid = gt.change_ids[-1]
        branch = current_branch(Git(gt.client))
        assert not branch.submitted(cid)

        commit_files(gt.server, f"landed copy\n\nChange-Id: {cid}\n", {"landed": "x\n"})
        gt.client_git("fetch", "-q")

        branch = current_branch(Git(gt.client))
        assert branch.submitted(cid)
        assert not branch.submitted(None)


class TestLocalBranches:
    def test_listing_order_and_current_flag(self, gt):
        gt.client_git("branch", "-q", "aaa")
        gt.client_git("branch", "-q", "zzz")
        branches = local_branches(Git(gt.client))
        assert [b.name for b in branches] == ["aaa", "main", "zzz"]
        assert [b.name for b in branches if b.current] == ["main"]

    def test_detached_head_is_listed(self, gt):
        gt.client_git("checkout", "-q", "HEAD^0")
        branches = local_branches(Git(gt.client))
        assert branches[-1].name == "HEAD"
        assert branches[-1].current
