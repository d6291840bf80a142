from datetime import datetime, timedelta, timezone

import pytest

from ..config import build_config
from ..errors import UpstreamReadError, UpstreamWriteError
from ..models import (
    AssignmentEvent,
    Label,
    PullRequestSummary,
    Review,
    TimelineEvent,
    WorkItem,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
BOT_ID = 4242


def make_issue(number=1, state="open", assignees=(), labels=None, body="",
               created_at=None, private=False):
    if labels is None:
        labels = [Label("Price: 3 Days")]
    return WorkItem(
        number=number,
        state=state,
        created_at=created_at or NOW - timedelta(days=2),
        assignees=tuple(assignees),
        labels=tuple(labels),
        body=body,
        html_url=f"https://github.com/acme/widgets/issues/{number}",
        private=private,
    )


def make_pr(number, author="alice", created_at=None, body="", org="acme"):
    return PullRequestSummary(
        number=number,
        author=author,
        organization=org,
        repository="widgets",
        html_url=f"https://github.com/{org}/widgets/pull/{number}",
        body=body,
        state="open",
        created_at=created_at or NOW - timedelta(hours=1),
    )


def review(state, at, association="MEMBER"):
    return Review(state=state, submitted_at=at, author_association=association)


def requested(at):
    return TimelineEvent(event="review_requested", created_at=at)


def unassigned(assignee, actor, actor_id, at=None):
    return AssignmentEvent("unassigned", actor_id, actor, assignee, at or NOW - timedelta(days=1))


def assigned(assignee, actor, actor_id, at=None):
    return AssignmentEvent("assigned", actor_id, actor, assignee, at or NOW - timedelta(days=3))


class FakeApi:
    """In-memory collaborator recording every write."""

    def __init__(self):
        self.issues = {}
        self.assigned_issues = {}
        self.pull_requests = {}
        self.reviews = {}
        self.review_timelines = {}
        self.assignment_timelines = {}
        self.collaborators = set()
        self.roles = {}
        self.user_ids = {}
        self.wallets = {}
        self.comments = []
        self.assignments = []
        self.removals = []
        self.closed = []
        self.reads = []
        self.fail_add_assignees = False
        self.fail_review_timeline = False
        self.fail_revision = False
        self.revision = "abcdef1234567890"

    def get_issue(self, number):
        self.reads.append(("issue", number))
        return self.issues[number]

    def add_assignees(self, number, logins):
        if self.fail_add_assignees:
            raise UpstreamWriteError("Adding the assignee failed")
        self.assignments.append((number, list(logins)))
        issue = self.issues[number]
        self.issues[number] = WorkItem(
            **{**issue.__dict__, "assignees": issue.assignees + tuple(logins)}
        )

    def remove_assignees(self, number, logins):
        self.removals.append((number, list(logins)))

    def get_assigned_issues(self, login):
        self.reads.append(("assigned", login))
        return self.assigned_issues.get(login, [])

    def get_open_pull_requests(self, login):
        self.reads.append(("pulls", login))
        return self.pull_requests.get(login, [])

    def get_reviews(self, pull_request):
        return self.reviews.get(pull_request.number, [])

    def get_review_request_timeline(self, pull_request):
        if self.fail_review_timeline:
            raise UpstreamReadError("timeline unavailable")
        return self.review_timelines.get(pull_request.number, [])

    def get_assignment_timeline(self, number):
        self.reads.append(("timeline", number))
        return self.assignment_timelines.get(number, [])

    def is_collaborator(self, login):
        return login in self.collaborators

    def get_role(self, login):
        return self.roles.get(login, "contributor")

    def resolve_user_id(self, login):
        return self.user_ids.get(login, 1000 + sum(map(ord, login)))

    def get_registered_wallet(self, login):
        return self.wallets.get(login)

    def get_revision(self):
        if self.fail_revision:
            raise UpstreamReadError("GitHub API error: 404 on GET commits")
        return self.revision

    def close_pull_request(self, pull_request):
        self.closed.append(pull_request.number)

    def post_comment(self, number, body):
        self.comments.append({"issue_number": number, "body": body})
        return True


@pytest.fixture
def api():
    return FakeApi()


@pytest.fixture
def config():
    return build_config({}, BOT_ID, "acme", "widgets")
