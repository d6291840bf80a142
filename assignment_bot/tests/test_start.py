from datetime import timedelta

import pytest

from .. import start as start_module
from ..config import build_config
from ..errors import ConfigError, UpstreamReadError
from ..models import Label
from ..start import Stage, start
from .conftest import BOT_ID, NOW, make_issue, unassigned


def give_issues(api, login, count):
    api.assigned_issues[login] = [make_issue(number=100 + i, assignees=[login]) for i in range(count)]


def test_commits_single_requester(api, config):
    issue = make_issue(labels=[Label("Price: 3 Days")])
    api.issues[1] = issue
    outcome = start(api, config, 1, "alice", now=NOW)

    assert outcome.state is Stage.COMMITTED
    assert outcome.assignees == ["alice"]
    assert outcome.deadline == issue.created_at + timedelta(days=3)
    assert outcome.is_stale is False
    assert api.assignments == [(1, ["alice"])]
    assert len(api.comments) == 1
    assert "Deadline" in api.comments[0]["body"]
    assert "taskAssignees" in api.comments[0]["body"]


def test_parent_issue_rejected_before_other_reads(api, config):
    api.issues[1] = make_issue(body="- [ ] #2\n- [ ] #3")
    outcome = start(api, config, 1, "alice", now=NOW)

    assert outcome.state is Stage.REJECTED
    assert "parent issues" in outcome.reason
    assert api.reads == [("issue", 1)]
    assert api.assignments == []


def test_closed_issue_rejected(api, config):
    api.issues[1] = make_issue(state="closed")
    outcome = start(api, config, 1, "alice", now=NOW)
    assert outcome.state is Stage.REJECTED
    assert outcome.reason == start_module.CLOSED_MESSAGE


@pytest.mark.parametrize(
    ["assignees", "message"],
    [
        (["alice"], start_module.SELF_ASSIGNED_MESSAGE),
        (["bob"], start_module.OTHER_ASSIGNED_MESSAGE),
        (["bob", "Alice"], start_module.SELF_ASSIGNED_MESSAGE),
    ],
)
def test_already_assigned_rejected(api, config, assignees, message):
    api.issues[1] = make_issue(assignees=assignees)
    outcome = start(api, config, 1, "alice", now=NOW)
    assert outcome.state is Stage.REJECTED
    assert outcome.reason == message
    assert api.assignments == []


def test_requester_over_limit_rejected(api, config):
    api.issues[1] = make_issue()
    give_issues(api, "alice", 2)
    outcome = start(api, config, 1, "alice", now=NOW)
    assert outcome.state is Stage.REJECTED
    assert outcome.reason == start_module.SELF_LIMIT_MESSAGE


def test_all_teammates_over_limit_rejected(api, config):
    api.issues[1] = make_issue()
    give_issues(api, "alice", 2)
    give_issues(api, "bob", 3)
    outcome = start(api, config, 1, "alice", ["bob"], now=NOW)
    assert outcome.state is Stage.REJECTED
    assert outcome.reason == start_module.TEAM_LIMIT_MESSAGE


def test_teammate_at_limit_is_dropped(api, config):
    api.issues[1] = make_issue()
    give_issues(api, "carol", 2)
    outcome = start(api, config, 1, "alice", ["bob", "carol"], now=NOW)
    assert outcome.state is Stage.COMMITTED
    assert outcome.assignees == ["alice", "bob"]
    assert outcome.dropped == ["carol"]


def test_requester_over_limit_dropped_when_teammates_proceed(api, config):
    api.issues[1] = make_issue()
    give_issues(api, "alice", 2)
    outcome = start(api, config, 1, "alice", ["bob"], now=NOW)
    assert outcome.state is Stage.COMMITTED
    assert outcome.assignees == ["bob"]
    assert api.assignments == [(1, ["bob"])]


def test_teammates_are_deduplicated(api, config):
    api.issues[1] = make_issue()
    outcome = start(api, config, 1, "alice", ["@bob", "Alice", "bob"], now=NOW)
    assert outcome.assignees == ["alice", "bob"]


def test_missing_price_label_rejected_before_any_write(api, config):
    api.issues[1] = make_issue(labels=[Label("bug")])
    outcome = start(api, config, 1, "alice", now=NOW)
    assert outcome.state is Stage.REJECTED
    assert "No price label" in outcome.reason
    assert api.assignments == []
    assert api.comments == []


def test_restricted_label_requires_collaborators(api, config):
    labels = [Label("Price: 1 Day"), Label("core", "Collaborator only")]
    api.issues[1] = make_issue(labels=labels)
    api.collaborators = {"alice"}
    outcome = start(api, config, 1, "alice", ["bob"], now=NOW)
    assert outcome.state is Stage.REJECTED
    assert outcome.reason == start_module.COLLABORATOR_ONLY_MESSAGE
    assert api.assignments == []


def test_restricted_label_allows_collaborators(api, config):
    labels = [Label("Price: 1 Day"), Label("core", "collaborator only")]
    api.issues[1] = make_issue(labels=labels)
    api.collaborators = {"alice", "bob"}
    outcome = start(api, config, 1, "alice", ["bob"], now=NOW)
    assert outcome.state is Stage.COMMITTED


def test_history_bar_rejects_whole_batch(api, config):
    api.issues[1] = make_issue()
    api.assignment_timelines[1] = [unassigned("bob", "assignment-bot[bot]", BOT_ID)]
    outcome = start(api, config, 1, "alice", ["bob"], now=NOW)
    assert outcome.state is Stage.REJECTED
    assert "bob you were previously unassigned" in outcome.reason
    assert outcome.last_passed_stage is Stage.LIMIT_CHECKED
    assert api.assignments == []


def test_self_unassigned_contributor_may_restart(api, config):
    api.issues[1] = make_issue()
    api.assignment_timelines[1] = [unassigned("alice", "alice", 11)]
    outcome = start(api, config, 1, "alice", now=NOW)
    assert outcome.state is Stage.COMMITTED


def test_missing_user_id_rejects(api, config):
    api.issues[1] = make_issue()
    api.user_ids["alice"] = None
    outcome = start(api, config, 1, "alice", now=NOW)
    assert outcome.state is Stage.REJECTED
    assert outcome.reason == "Error while fetching user ids"
    assert api.assignments == []


def test_write_failure_is_reported_and_not_retried(api, config):
    api.issues[1] = make_issue()
    api.fail_add_assignees = True
    outcome = start(api, config, 1, "alice", now=NOW)
    assert outcome.state is Stage.REJECTED
    assert outcome.reason == "Adding the assignee failed"
    assert api.comments == []


def test_stale_issue_is_flagged(api, config):
    api.issues[1] = make_issue(created_at=NOW - timedelta(days=45))
    outcome = start(api, config, 1, "alice", now=NOW)
    assert outcome.is_stale is True
    assert "Warning!" in api.comments[0]["body"]


def test_required_labels_gate(api):
    config = build_config({"requiredLabelsToStart": ["Priority: 3 (High)"]}, BOT_ID, "acme", "widgets")
    api.issues[1] = make_issue()
    outcome = start(api, config, 1, "alice", now=NOW)
    assert outcome.state is Stage.REJECTED
    assert "Priority: 3 (High)" in outcome.reason


def test_wallet_required(api):
    config = build_config(
        {"startRequiresWallet": True, "emptyWalletText": "Register a wallet first."},
        BOT_ID, "acme", "widgets",
    )
    api.issues[1] = make_issue()
    outcome = start(api, config, 1, "alice", now=NOW)
    assert outcome.state is Stage.REJECTED
    assert outcome.reason == "Register a wallet first."

    api.wallets["alice"] = "0xabc"
    outcome = start(api, config, 1, "alice", now=NOW)
    assert outcome.state is Stage.COMMITTED
    assert "0xabc" in api.comments[-1]["body"]


def test_private_repo_multi_assignment_notice(api, config, monkeypatch):
    api.issues[1] = make_issue(private=True)

    def add_only_first(number, logins):
        api.assignments.append((number, list(logins)))
        api.issues[number] = make_issue(private=True, assignees=logins[:1])

    monkeypatch.setattr(api, "add_assignees", add_only_first)
    outcome = start(api, config, 1, "alice", ["bob"], now=NOW)
    assert outcome.state is Stage.COMMITTED
    assert any("private repo" in c["body"] for c in api.comments)


def test_multi_assignment_not_applied_is_reported(api, config, monkeypatch):
    api.issues[1] = make_issue()
    monkeypatch.setattr(api, "add_assignees", lambda number, logins: None)
    outcome = start(api, config, 1, "alice", ["bob"], now=NOW)
    assert outcome.state is Stage.REJECTED
    assert "not assigned to anyone" in outcome.reason


def test_outcome_carries_resolved_user_ids(api, config):
    api.issues[1] = make_issue()
    api.user_ids = {"alice": 11, "bob": 22}
    outcome = start(api, config, 1, "alice", ["bob"], now=NOW)
    assert outcome.assignees == ["alice", "bob"]
    assert outcome.assignee_ids == [11, 22]
    assert "- 11\n- 22" in api.comments[0]["body"]


def test_rejection_keeps_last_passed_stage(api, config):
    api.issues[1] = make_issue(labels=[])
    outcome = start(api, config, 1, "alice", now=NOW)
    assert outcome.state is Stage.REJECTED
    assert outcome.last_passed_stage is Stage.LIMIT_CHECKED
    assert outcome.committed is False


@pytest.mark.parametrize("error", [
    UpstreamReadError("GitHub API error: 500 on GET repos/acme/widgets/issues/9"),
    ConfigError("Invalid YAML in config"),
])
def test_optional_wallet_lookup_failure_still_commits(api, config, monkeypatch, error):
    def broken_registry(login):
        raise error

    api.issues[1] = make_issue()
    monkeypatch.setattr(api, "get_registered_wallet", broken_registry)
    outcome = start(api, config, 1, "alice", now=NOW)
    assert outcome.state is Stage.COMMITTED
    assert "Beneficiary" not in api.comments[0]["body"]


def test_required_wallet_lookup_failure_rejects(api, monkeypatch):
    config = build_config({"startRequiresWallet": True}, BOT_ID, "acme", "widgets")

    def broken_registry(login):
        raise UpstreamReadError("wallet registry unavailable")

    api.issues[1] = make_issue()
    monkeypatch.setattr(api, "get_registered_wallet", broken_registry)
    outcome = start(api, config, 1, "alice", now=NOW)
    assert outcome.state is Stage.REJECTED
    assert outcome.reason == "wallet registry unavailable"
    assert api.assignments == []


def test_assignment_metadata_records_revision(api, config):
    api.issues[1] = make_issue()
    outcome = start(api, config, 1, "alice", now=NOW)
    assert outcome.committed
    assert "revision: abcdef1\n" in api.comments[0]["body"]


def test_revision_failure_does_not_block_assignment(api, config):
    api.issues[1] = make_issue()
    api.fail_revision = True
    outcome = start(api, config, 1, "alice", now=NOW)
    assert outcome.state is Stage.COMMITTED
    assert "revision: null\n" in api.comments[0]["body"]
