# SPDX-License-Identifier: MIT OR Apache-2.0
# SPDX-FileCopyrightText: The Assignment Bot Contributors

"""
GitHub REST implementation of the assignment collaborator interface.

Raw payloads are converted to `models` records here. Failed reads raise
UpstreamReadError, failed writes raise UpstreamWriteError. The search-based
reads (assigned issues, open pull requests) fall back once to listing the
repositories in scope.
"""

from __future__ import annotations

import logging
import os

import requests

from .config import BotConfig, parse_config_text
from .errors import ConfigError, UpstreamReadError, UpstreamWriteError
from .issue_utils import get_owner_repo_from_html_url
from .models import (
    AssignmentEvent,
    Label,
    PullRequestSummary,
    Review,
    TimelineEvent,
    WorkItem,
)
from .retry import FallbackRead
from .time_utils import parse_timestamp

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"
PER_PAGE = 100
TIMEOUT = 30


def get_github_token() -> str:
    """Get the GitHub token from environment."""
    token = os.environ.get("GITHUB_TOKEN")
    if not token:
        raise ConfigError("GITHUB_TOKEN not set")
    return token


# ==============================================================================
# Payload conversion
# ==============================================================================


def work_item_from_json(data: dict, private: bool = False) -> WorkItem:
    return WorkItem(
        number=data["number"],
        state=data.get("state", "open"),
        created_at=parse_timestamp(data["created_at"]),
        assignees=tuple(a["login"] for a in data.get("assignees") or [] if a),
        labels=tuple(
            Label(name=label["name"], description=label.get("description"))
            for label in data.get("labels") or []
            if isinstance(label, dict)
        ),
        body=data.get("body") or "",
        html_url=data.get("html_url", ""),
        private=private,
    )


def pull_request_from_json(data: dict) -> PullRequestSummary:
    owner, repo = get_owner_repo_from_html_url(data["html_url"])
    return PullRequestSummary(
        number=data["number"],
        author=(data.get("user") or {}).get("login", ""),
        organization=owner,
        repository=repo,
        html_url=data["html_url"],
        body=data.get("body") or "",
        state=data.get("state", "open"),
        created_at=parse_timestamp(data["created_at"]),
    )


def review_from_json(data: dict) -> Review:
    submitted_at = data.get("submitted_at")
    return Review(
        state=data.get("state", ""),
        submitted_at=parse_timestamp(submitted_at) if submitted_at else None,
        author_association=data.get("author_association", ""),
    )


def assignment_event_from_json(data: dict) -> AssignmentEvent:
    actor = data.get("actor") or {}
    assignee = data.get("assignee") or {}
    return AssignmentEvent(
        event=data["event"],
        actor_id=actor.get("id"),
        actor=actor.get("login"),
        assignee=assignee.get("login"),
        created_at=parse_timestamp(data["created_at"]),
    )


# ==============================================================================
# Client
# ==============================================================================


class GitHubApi:
    def __init__(self, config: BotConfig, token: str | None = None,
                 wallet_issue_number: int | None = None):
        self.config = config
        self.owner = config.owner
        self.repo = config.repo
        self.token = token or get_github_token()
        self.wallet_issue_number = wallet_issue_number
        self._repository: dict | None = None

        self.get_assigned_issues = FallbackRead(
            "assigned issues", self.search_assigned_issues, self.list_assigned_issues
        )
        self.get_open_pull_requests = FallbackRead(
            "all pull requests", self.search_open_pull_requests, self.list_open_pull_requests
        )

    # --- transport -------------------------------------------------------------

    def send(self, method: str, path: str, data: dict | None = None,
             params: dict | None = None) -> requests.Response:
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        url = f"{API_URL}/{path}"
        error_type = UpstreamReadError if method == "GET" else UpstreamWriteError
        try:
            return requests.request(method, url, headers=headers, json=data,
                                    params=params, timeout=TIMEOUT)
        except requests.RequestException as e:
            raise error_type(f"GitHub API request failed: {method} {path}", error=str(e)) from e

    def github_api(self, method: str, path: str, data: dict | None = None,
                   params: dict | None = None):
        """Make a GitHub API request and return the decoded body."""
        response = self.send(method, path, data, params)
        if response.status_code >= 400:
            logger.error("GitHub API error: %s - %s", response.status_code, response.text)
            error_type = UpstreamReadError if method == "GET" else UpstreamWriteError
            raise error_type(
                f"GitHub API error: {response.status_code} on {method} {path}",
                status=response.status_code,
            )
        if response.content:
            return response.json()
        return {}

    def paginate(self, path: str, params: dict | None = None) -> list:
        results = []
        page = 1
        while True:
            data = self.github_api("GET", path, params={**(params or {}), "per_page": PER_PAGE, "page": page})
            items = data.get("items", []) if isinstance(data, dict) else data
            results.extend(items)
            if len(items) < PER_PAGE:
                return results
            page += 1

    def repo_path(self, endpoint: str) -> str:
        return f"repos/{self.owner}/{self.repo}/{endpoint}"

    # --- scope -----------------------------------------------------------------

    def scope_organizations(self) -> list[str]:
        if self.config.assigned_issue_scope == "network":
            return list(self.config.network_organizations) or [self.owner]
        return [self.owner]

    def scope_qualifier(self) -> str:
        if self.config.assigned_issue_scope == "repo":
            return f"repo:{self.owner}/{self.repo}"
        return " ".join(f"org:{org}" for org in self.scope_organizations())

    def scope_repositories(self) -> list[str]:
        if self.config.assigned_issue_scope == "repo":
            return [f"{self.owner}/{self.repo}"]
        repos = []
        for org in self.scope_organizations():
            repos.extend(r["full_name"] for r in self.paginate(f"orgs/{org}/repos"))
        return repos

    # --- issues ----------------------------------------------------------------

    def repository(self) -> dict:
        if self._repository is None:
            self._repository = self.github_api("GET", f"repos/{self.owner}/{self.repo}") or {}
        return self._repository

    def is_private(self) -> bool:
        return bool(self.repository().get("private"))

    def get_revision(self) -> str:
        """SHA of the head commit on the default branch."""
        branch = self.repository().get("default_branch") or "main"
        data = self.github_api("GET", self.repo_path(f"commits/{branch}")) or {}
        if not data.get("sha"):
            raise UpstreamReadError("Error while getting commit hash")
        return data["sha"]

    def get_issue(self, number: int) -> WorkItem:
        data = self.github_api("GET", self.repo_path(f"issues/{number}"))
        return work_item_from_json(data, private=self.is_private())

    def search_assigned_issues(self, login: str) -> list[WorkItem]:
        query = f"{self.scope_qualifier()} assignee:{login} is:open is:issue"
        items = self.paginate("search/issues", {"q": query, "order": "desc", "sort": "created"})
        issues = [work_item_from_json(item) for item in items]
        return [
            issue for issue in issues
            if issue.is_open and login.lower() in (a.lower() for a in issue.assignees)
        ]

    def list_assigned_issues(self, login: str) -> list[WorkItem]:
        issues = []
        for full_name in self.scope_repositories():
            items = self.paginate(f"repos/{full_name}/issues", {"assignee": login, "state": "open"})
            issues.extend(work_item_from_json(item) for item in items if "pull_request" not in item)
        return issues

    def add_assignees(self, number: int, logins: list[str]) -> None:
        try:
            self.github_api("POST", self.repo_path(f"issues/{number}/assignees"), {"assignees": logins})
        except UpstreamWriteError as e:
            raise UpstreamWriteError("Adding the assignee failed", assignees=logins, issue=number) from e

    def remove_assignees(self, number: int, logins: list[str]) -> None:
        try:
            self.github_api("DELETE", self.repo_path(f"issues/{number}/assignees"), {"assignees": logins})
        except UpstreamWriteError as e:
            raise UpstreamWriteError("Removing the assignee failed", assignees=logins, issue=number) from e

    def get_assignment_timeline(self, number: int) -> list[AssignmentEvent]:
        try:
            items = self.paginate(self.repo_path(f"issues/{number}/timeline"))
        except UpstreamReadError as e:
            raise UpstreamReadError("Error while getting assignment events", issue=number) from e
        events = [
            assignment_event_from_json(item) for item in items
            if item.get("event") in ("assigned", "unassigned") and item.get("created_at")
        ]
        return sorted(events, key=lambda e: e.created_at)

    def post_comment(self, number: int, body: str) -> bool:
        """Post a comment on an issue or PR."""
        try:
            self.github_api("POST", self.repo_path(f"issues/{number}/comments"), {"body": body})
        except UpstreamWriteError as e:
            logger.error("Adding a comment failed! %s", e)
            return False
        return True

    # --- pull requests ---------------------------------------------------------

    def search_open_pull_requests(self, login: str) -> list[PullRequestSummary]:
        query = f"{self.scope_qualifier()} author:{login} state:open is:pr"
        items = self.paginate("search/issues", {"q": query, "order": "desc", "sort": "created"})
        return [pull_request_from_json(item) for item in items]

    def list_open_pull_requests(self, login: str) -> list[PullRequestSummary]:
        pulls = []
        for full_name in self.scope_repositories():
            items = self.paginate(f"repos/{full_name}/pulls", {"state": "open"})
            pulls.extend(
                pull_request_from_json(item) for item in items
                if (item.get("user") or {}).get("login", "").lower() == login.lower()
            )
        return pulls

    def get_reviews(self, pull_request: PullRequestSummary) -> list[Review]:
        path = (f"repos/{pull_request.organization}/{pull_request.repository}"
                f"/pulls/{pull_request.number}/reviews")
        try:
            items = self.paginate(path)
        except UpstreamReadError as e:
            raise UpstreamReadError("Fetching all pull request reviews failed!",
                                    pull_request=pull_request.html_url) from e
        return [review_from_json(item) for item in items]

    def get_review_request_timeline(self, pull_request: PullRequestSummary) -> list[TimelineEvent]:
        path = (f"repos/{pull_request.organization}/{pull_request.repository}"
                f"/issues/{pull_request.number}/timeline")
        return [
            TimelineEvent(event=item["event"], created_at=parse_timestamp(item["created_at"]))
            for item in self.paginate(path)
            if item.get("event") in ("review_requested", "review_request_removed")
            and item.get("created_at")
        ]

    def close_pull_request(self, pull_request: PullRequestSummary) -> None:
        path = (f"repos/{pull_request.organization}/{pull_request.repository}"
                f"/pulls/{pull_request.number}")
        try:
            self.github_api("PATCH", path, {"state": "closed"})
        except UpstreamWriteError as e:
            raise UpstreamWriteError("Closing pull requests failed!",
                                     pull_request=pull_request.html_url) from e

    # --- users -----------------------------------------------------------------

    def is_collaborator(self, login: str) -> bool:
        response = self.send("GET", self.repo_path(f"collaborators/{login}"))
        if response.status_code == 204:
            return True
        if response.status_code == 404:
            return False
        raise UpstreamReadError(f"Could not check collaborator status of {login}",
                                status=response.status_code)

    def get_role(self, login: str) -> str:
        """Organization role (admin or member), otherwise contributor."""
        response = self.send("GET", f"orgs/{self.owner}/memberships/{login}")
        if response.status_code in (403, 404):
            return "contributor"
        if response.status_code >= 400:
            raise UpstreamReadError(f"Could not fetch the role of {login}",
                                    status=response.status_code)
        data = response.json()
        if data.get("state") != "active":
            return "contributor"
        return str(data.get("role", "contributor")).lower()

    def resolve_user_id(self, login: str) -> int | None:
        response = self.send("GET", f"users/{login}")
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise UpstreamReadError(f"Could not fetch the user id of {login}",
                                    status=response.status_code)
        return response.json().get("id")

    def get_registered_wallet(self, login: str) -> str | None:
        """Look up a wallet in the YAML registry kept in the wallet issue body."""
        if not self.wallet_issue_number:
            return None
        issue = self.github_api("GET", self.repo_path(f"issues/{self.wallet_issue_number}"))
        wallets = parse_config_text(issue.get("body") or "")
        for name, address in wallets.items():
            if str(name).lower() == login.lower() and address:
                return str(address)
        return None
