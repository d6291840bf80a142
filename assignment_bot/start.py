# SPDX-License-Identifier: MIT OR Apache-2.0
# SPDX-FileCopyrightText: The Assignment Bot Contributors

"""
The `/start` decision.

A request moves through

    REQUESTED -> VALIDATED -> LIMIT_CHECKED -> HISTORY_CHECKED -> COMMITTED

and any gate can send it to REJECTED. Gates run in order and each one
decides on complete information: per-contributor checks are aggregated
before the gate that uses them fires. Nothing is written to the issue
before the commit step, and the assignee set is all-or-nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from . import comments, task_limit
from .config import BotConfig
from .deadline import compute_deadline, days_elapsed, get_price_label, is_task_stale, NO_PRICE_LABEL_MESSAGE
from .errors import (
    AssignmentError,
    CapacityError,
    HistoryBarError,
    UpstreamReadError,
    UpstreamWriteError,
    ValidationError,
)
from .history import ReassignmentHistoryChecker
from .issue_utils import is_parent_issue
from .models import AssignmentApi, Contributor, WorkItem
from .time_utils import duration_to_timedelta, utc_now

logger = logging.getLogger(__name__)

PARENT_ISSUE_MESSAGE = (
    "Please select a child issue from the specification checklist to work on. "
    "The '/start' command is disabled on parent issues."
)
CLOSED_MESSAGE = "This issue is closed, please choose another."
SELF_ASSIGNED_MESSAGE = "You are already assigned to this task."
OTHER_ASSIGNED_MESSAGE = "This issue is already assigned. Please choose another unassigned task."
TEAM_LIMIT_MESSAGE = (
    "All teammates have reached their max task limit. "
    "Please close out some tasks before assigning new ones."
)
SELF_LIMIT_MESSAGE = (
    "You have reached your max task limit. "
    "Please close out some tasks before assigning new ones."
)
COLLABORATOR_ONLY_MESSAGE = "Only collaborators can be assigned to this issue."


class Stage(Enum):
    REQUESTED = "requested"
    VALIDATED = "validated"
    LIMIT_CHECKED = "limit-checked"
    HISTORY_CHECKED = "history-checked"
    COMMITTED = "committed"
    REJECTED = "rejected"


@dataclass
class AssignmentOutcome:
    state: Stage
    reason: str
    # furthest gate passed; unchanged when state becomes REJECTED
    last_passed_stage: Stage = Stage.REQUESTED
    assignees: list[str] = field(default_factory=list)
    assignee_ids: list[int] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)
    deadline: datetime | None = None
    is_stale: bool = False

    @property
    def committed(self) -> bool:
        return self.state is Stage.COMMITTED


def unique_logins(sender: str, teammates: list[str]) -> list[str]:
    """Requester first, then teammates, without duplicates (case-insensitive)."""
    seen = set()
    logins = []
    for login in [sender, *teammates]:
        login = login.lstrip("@")
        if login and login.lower() not in seen:
            seen.add(login.lower())
            logins.append(login)
    return logins


def validate_issue(issue: WorkItem, sender: str) -> None:
    if is_parent_issue(issue.body):
        raise ValidationError(PARENT_ISSUE_MESSAGE)

    if not issue.is_open:
        raise ValidationError(CLOSED_MESSAGE)

    if issue.assignees:
        is_current_user_assigned = sender.lower() in (a.lower() for a in issue.assignees)
        raise ValidationError(
            SELF_ASSIGNED_MESSAGE if is_current_user_assigned else OTHER_ASSIGNED_MESSAGE
        )


def check_required_labels(issue: WorkItem, config: BotConfig) -> None:
    if not config.required_labels_to_start:
        return
    required = {name.lower() for name in config.required_labels_to_start}
    if not any(label.name.lower() in required for label in issue.labels):
        names = ", ".join(f"`{name}`" for name in config.required_labels_to_start)
        raise ValidationError(
            f"This task does not reflect a business priority at the moment. "
            f"You may start tasks with one of the following labels: {names}"
        )


def check_wallet(api: AssignmentApi, config: BotConfig, sender: str) -> str | None:
    """
    Look up the requester's wallet.

    When a wallet is required a failed lookup rejects the request. Otherwise
    the wallet only fills the Beneficiary row, so a failed lookup drops it.
    """
    try:
        wallet = api.get_registered_wallet(sender)
    except AssignmentError as e:
        if config.start_requires_wallet:
            raise
        logger.warning("Could not read the wallet of %s, continuing without it: %s", sender, e.message)
        return None
    if config.start_requires_wallet and not wallet:
        raise ValidationError(config.empty_wallet_text)
    return wallet


def filter_by_task_limit(
    api: AssignmentApi, config: BotConfig, logins: list[str], now: datetime
) -> tuple[list[str], list[str]]:
    results = [task_limit.evaluate(login, api, config, now) for login in logins]
    eligible = [r.login for r in results if r.eligible]
    dropped = [r.login for r in results if not r.eligible]
    return eligible, dropped


def check_restricted_labels(api: AssignmentApi, issue: WorkItem, logins: list[str]) -> None:
    if not any(label.is_restricted for label in issue.labels):
        return
    for login in logins:
        if not api.is_collaborator(login):
            raise ValidationError(COLLABORATOR_ONLY_MESSAGE, username=login)


def check_history(checker: ReassignmentHistoryChecker, issue: WorkItem, logins: list[str]) -> None:
    barred = [login for login in logins if checker.was_barred(login, issue.number)]
    if barred:
        raise HistoryBarError(
            "\n".join(
                f"{login} you were previously unassigned from this task. You cannot be reassigned."
                for login in barred
            ),
            usernames=barred,
        )


def resolve_contributors(api: AssignmentApi, logins: list[str]) -> list[Contributor]:
    contributors = [Contributor(login, api.resolve_user_id(login)) for login in logins]
    if any(not c.id for c in contributors):
        raise UpstreamReadError("Error while fetching user ids", usernames=logins)
    return contributors


def fetch_revision(api: AssignmentApi) -> str | None:
    """Short hash of the default branch head, recorded in the assignment metadata."""
    try:
        return api.get_revision()[:7]
    except AssignmentError as e:
        logger.error("Error while getting commit hash: %s", e.message)
        return None


def confirm_multi_assignment(api: AssignmentApi, issue_number: int, logins: list[str]) -> None:
    if len(logins) < 2:
        return

    issue = api.get_issue(issue_number)
    if not issue.assignees:
        raise UpstreamWriteError(
            "We detected that this task was not assigned to anyone. "
            "Please report this to the maintainers.",
            usernames=logins,
        )
    if issue.private and len(issue.assignees) <= 1:
        api.post_comment(issue_number, comments.private_repo_notice())


def commit(
    api: AssignmentApi,
    config: BotConfig,
    issue: WorkItem,
    contributors: list[Contributor],
    wallet: str | None,
    now: datetime,
) -> tuple[datetime, bool]:
    deadline = compute_deadline(issue.labels, issue.created_at)
    is_stale = is_task_stale(
        duration_to_timedelta(config.task_stale_timeout_duration), issue.created_at, now
    )
    logins = [c.login for c in contributors]

    api.add_assignees(issue.number, logins)
    confirm_multi_assignment(api, issue.number, logins)

    body = comments.assignment_comment(
        deadline=deadline,
        is_stale=is_stale,
        days_since_creation=days_elapsed(issue.created_at, now),
        assignees=logins,
        assignee_ids=[c.id for c in contributors],
        wallet=wallet,
        revision=fetch_revision(api),
    )
    if not api.post_comment(issue.number, body):
        logger.error("Failed to post the assignment comment on #%d", issue.number)
    return deadline, is_stale


def start(
    api: AssignmentApi,
    config: BotConfig,
    issue_number: int,
    sender: str,
    teammates: list[str] | None = None,
    now: datetime | None = None,
) -> AssignmentOutcome:
    """
    Decide and execute a `/start` request.

    Returns a COMMITTED outcome with the assignees, their ids, the deadline
    and the staleness flag, or a REJECTED outcome whose reason is meant for
    the requester.
    """
    now = now or utc_now()
    teammates = teammates or []
    outcome = AssignmentOutcome(state=Stage.REQUESTED, reason="")

    try:
        issue = api.get_issue(issue_number)
        validate_issue(issue, sender)
        check_required_labels(issue, config)
        wallet = check_wallet(api, config, sender)
        outcome.last_passed_stage = Stage.VALIDATED

        logins = unique_logins(sender, teammates)
        eligible, outcome.dropped = filter_by_task_limit(api, config, logins, now)
        if not eligible:
            raise CapacityError(TEAM_LIMIT_MESSAGE if len(logins) > 1 else SELF_LIMIT_MESSAGE)
        outcome.last_passed_stage = Stage.LIMIT_CHECKED

        if get_price_label(issue.labels) is None:
            raise ValidationError(NO_PRICE_LABEL_MESSAGE)
        check_restricted_labels(api, issue, eligible)

        checker = ReassignmentHistoryChecker(api, config.app_id)
        check_history(checker, issue, eligible)
        outcome.last_passed_stage = Stage.HISTORY_CHECKED

        contributors = resolve_contributors(api, eligible)
        deadline, is_stale = commit(api, config, issue, contributors, wallet, now)
    except AssignmentError as e:
        logger.error("Rejected /start on #%d by %s: %s", issue_number, sender, e.message)
        outcome.state = Stage.REJECTED
        outcome.reason = e.message
        return outcome

    logger.info(
        "Task assigned successfully: #%d to %s, deadline %s",
        issue_number, ", ".join(eligible), deadline.isoformat(),
    )
    outcome.state = Stage.COMMITTED
    outcome.last_passed_stage = Stage.COMMITTED
    outcome.reason = "Task assigned successfully"
    outcome.assignees = eligible
    outcome.assignee_ids = [c.id for c in contributors]
    outcome.deadline = deadline
    outcome.is_stale = is_stale
    return outcome
