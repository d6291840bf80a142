# SPDX-License-Identifier: MIT OR Apache-2.0
# SPDX-FileCopyrightText: The Assignment Bot Contributors

"""Open task accounting against the role-derived task limit."""

from __future__ import annotations

import logging
from datetime import datetime

from .config import BotConfig
from .models import AssignmentApi, TaskLimitResult
from .reviews import split_pull_requests

logger = logging.getLogger(__name__)


def evaluate(
    login: str, api: AssignmentApi, config: BotConfig, now: datetime | None = None
) -> TaskLimitResult:
    """
    Compute the contributor's adjusted open task count.

    adjusted = assigned issues - approved PRs + changes-requested PRs

    The contributor is eligible while abs(adjusted) is below the limit for
    their role.
    """
    limit = config.limit_for_role(api.get_role(login))
    assigned = api.get_assigned_issues(login)
    split = split_pull_requests(
        api,
        login,
        config.review_delay_tolerance,
        config.roles_with_review_authority,
        now,
    )

    adjusted = len(assigned) - len(split.approved) + len(split.changes_requested)
    result = TaskLimitResult(
        login=login,
        eligible=abs(adjusted) < limit,
        adjusted_count=adjusted,
        limit=limit,
        assigned_count=len(assigned),
        approved_count=len(split.approved),
        changes_requested_count=len(split.changes_requested),
    )

    if not result.eligible:
        logger.error(
            "%s has reached their max task limit (assigned=%d, approved=%d, changes=%d, limit=%d)",
            login, result.assigned_count, result.approved_count,
            result.changes_requested_count, limit,
        )
    return result
