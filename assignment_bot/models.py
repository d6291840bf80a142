# SPDX-License-Identifier: MIT OR Apache-2.0
# SPDX-FileCopyrightText: The Assignment Bot Contributors

"""
Records exchanged between the assignment engine and the GitHub collaborator.

The collaborator converts raw API payloads into these types; nothing in the
engine looks at JSON dictionaries directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol

PRICE_LABEL_PREFIX = "Price: "
RESTRICTED_LABEL_MARKER = "collaborator only"


@dataclass(frozen=True)
class Label:
    name: str
    description: str | None = None

    @property
    def is_price(self) -> bool:
        return self.name.startswith(PRICE_LABEL_PREFIX)

    @property
    def price_duration(self) -> str | None:
        if not self.is_price:
            return None
        return self.name[len(PRICE_LABEL_PREFIX):].strip()

    @property
    def is_restricted(self) -> bool:
        return bool(self.description) and RESTRICTED_LABEL_MARKER in self.description.lower()


@dataclass(frozen=True)
class WorkItem:
    number: int
    state: str
    created_at: datetime
    assignees: tuple[str, ...] = ()
    labels: tuple[Label, ...] = ()
    body: str = ""
    html_url: str = ""
    private: bool = False

    @property
    def is_open(self) -> bool:
        return self.state == "open"


@dataclass(frozen=True)
class Contributor:
    login: str
    id: int | None = None
    role: str | None = None


@dataclass(frozen=True)
class PullRequestSummary:
    number: int
    author: str
    organization: str
    repository: str
    html_url: str
    body: str
    state: str
    created_at: datetime


@dataclass(frozen=True)
class Review:
    state: str
    submitted_at: datetime | None
    author_association: str = ""


@dataclass(frozen=True)
class TimelineEvent:
    event: str
    created_at: datetime


@dataclass(frozen=True)
class AssignmentEvent:
    event: str
    actor_id: int | None
    actor: str | None
    assignee: str | None
    created_at: datetime


class ReviewState(Enum):
    APPROVED = "approved"
    CHANGES_REQUESTED = "changes-requested"
    UNREVIEWED = "unreviewed"


@dataclass(frozen=True)
class ReviewClassification:
    state: ReviewState
    latest_review_at: datetime | None = None
    review_requested_after_changes: bool = False


@dataclass(frozen=True)
class TaskLimitResult:
    login: str
    eligible: bool
    adjusted_count: int
    limit: int
    assigned_count: int = 0
    approved_count: int = 0
    changes_requested_count: int = 0


@dataclass(frozen=True)
class PullRequestSplit:
    """Open pull requests of one contributor, folded by review outcome."""

    approved: tuple[PullRequestSummary, ...] = field(default_factory=tuple)
    changes_requested: tuple[PullRequestSummary, ...] = field(default_factory=tuple)


class AssignmentApi(Protocol):
    """Query and write operations the engine needs from the hosting platform."""

    def get_issue(self, number: int) -> WorkItem: ...

    def add_assignees(self, number: int, logins: list[str]) -> None: ...

    def remove_assignees(self, number: int, logins: list[str]) -> None: ...

    def get_assigned_issues(self, login: str) -> list[WorkItem]: ...

    def get_open_pull_requests(self, login: str) -> list[PullRequestSummary]: ...

    def get_reviews(self, pull_request: PullRequestSummary) -> list[Review]: ...

    def get_review_request_timeline(self, pull_request: PullRequestSummary) -> list[TimelineEvent]: ...

    def get_assignment_timeline(self, number: int) -> list[AssignmentEvent]: ...

    def is_collaborator(self, login: str) -> bool: ...

    def get_role(self, login: str) -> str: ...

    def resolve_user_id(self, login: str) -> int | None: ...

    def get_registered_wallet(self, login: str) -> str | None: ...

    def get_revision(self) -> str: ...

    def close_pull_request(self, pull_request: PullRequestSummary) -> None: ...

    def post_comment(self, number: int, body: str) -> bool: ...
