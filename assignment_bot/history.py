# SPDX-License-Identifier: MIT OR Apache-2.0
# SPDX-FileCopyrightText: The Assignment Bot Contributors

"""Re-assignment bar for contributors removed from an issue by the bot or an admin."""

from __future__ import annotations

import logging

from .models import AssignmentApi, AssignmentEvent

logger = logging.getLogger(__name__)


class ReassignmentHistoryChecker:
    def __init__(self, api: AssignmentApi, app_id: int):
        self.api = api
        self.app_id = app_id

    def is_barring_event(self, event: AssignmentEvent, login: str) -> bool:
        if event.event != "unassigned":
            return False
        if event.actor_id == self.app_id:
            return True
        # Removed by somebody other than themselves
        return (event.actor or "").lower() != login

    def was_barred(self, login: str, issue_number: int) -> bool:
        """
        Whether `login` was ever unassigned from the issue by the bot or by
        another person. Unassigning yourself never bars you, and a bar does
        not expire.
        """
        login = login.lower()
        events = self.api.get_assignment_timeline(issue_number)
        own_events = [e for e in events if (e.assignee or "").lower() == login]
        if not own_events:
            return False

        barred = any(self.is_barring_event(e, login) for e in own_events)
        if barred:
            logger.info("%s was previously unassigned from #%d", login, issue_number)
        return barred
