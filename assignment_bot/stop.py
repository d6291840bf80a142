# SPDX-License-Identifier: MIT OR Apache-2.0
# SPDX-FileCopyrightText: The Assignment Bot Contributors

"""The `/stop` command: unassign yourself and close your linked pull requests."""

from __future__ import annotations

import logging

from .config import BotConfig
from .errors import AssignmentError, ValidationError
from .issue_utils import issue_linked_via_pr_body
from .models import AssignmentApi, PullRequestSummary

logger = logging.getLogger(__name__)

NOT_ASSIGNED_MESSAGE = "You are not assigned to this task."


def linked_pull_requests(
    api: AssignmentApi, config: BotConfig, issue_number: int, author: str
) -> list[PullRequestSummary]:
    """Open pull requests by `author` in the issue's organization that reference the issue."""
    linked = []
    for pr in api.get_open_pull_requests(author):
        if pr.author.lower() != author.lower() or pr.organization.lower() != config.owner.lower():
            continue
        if not issue_linked_via_pr_body(pr.body, issue_number):
            logger.info("Issue #%d is not linked to PR %s", issue_number, pr.html_url)
            continue
        linked.append(pr)
    return linked


def stop(api: AssignmentApi, config: BotConfig, issue_number: int, sender: str) -> tuple[str, bool]:
    """
    Handle `/stop`.

    Returns (response_message, success).
    """
    try:
        issue = api.get_issue(issue_number)
        if sender.lower() not in (a.lower() for a in issue.assignees):
            raise ValidationError(NOT_ASSIGNED_MESSAGE)

        closed = []
        for pr in linked_pull_requests(api, config, issue_number, sender):
            api.close_pull_request(pr)
            closed.append(pr.html_url)

        api.remove_assignees(issue_number, [sender])
    except AssignmentError as e:
        logger.error("Rejected /stop on #%d by %s: %s", issue_number, sender, e.message)
        return f"❌ {e.message}", False

    response = f"✅ @{sender} has been unassigned from this task."
    if closed:
        response += "\n\nThese linked pull requests are closed:\n" + "\n".join(f"- {url}" for url in closed)
    return response, True
