# SPDX-License-Identifier: MIT OR Apache-2.0
# SPDX-FileCopyrightText: The Assignment Bot Contributors

"""Text checks on issue and pull request bodies."""

import re

PARENT_ISSUE_PATTERN = re.compile(r"-\s+\[( |x)\]\s+#\d+")

LINKED_ISSUE_PATTERN = re.compile(
    r"(?:Resolves|Fixes|Closes|Depends on|Related to) #(\d+)"
    r"|https://(?:www\.)?github\.com/([^/\s]+)/([^/\s]+)/(?:issue|issues)/(\d+)"
    r"|#(\d+)",
    re.IGNORECASE,
)
HTML_COMMENT_PATTERN = re.compile(r"<!-*[\s\S]*?-*>")


def is_parent_issue(body: str | None) -> bool:
    """A parent issue lists its child issues as a task checklist: `- [ ] #12`."""
    if not body:
        return False
    return PARENT_ISSUE_PATTERN.search(body) is not None


def issue_linked_via_pr_body(pr_body: str | None, issue_number: int) -> bool:
    """
    Check whether a pull request body references the issue.

    Recognized forms:
      Resolves #123, Fixes #123, Closes #123, Depends on #123, Related to #123,
      https://github.com/owner/repo/issues/123, or a bare #123.

    HTML comments (such as the unfilled pull request template) are ignored.
    The last reference in the body decides.
    """
    if not pr_body:
        return False

    body = HTML_COMMENT_PATTERN.sub("", pr_body)
    matches = list(LINKED_ISSUE_PATTERN.finditer(body))
    if not matches:
        return False

    last = matches[-1]
    issue_id = last.group(1) or last.group(4) or last.group(5)
    return issue_id == str(issue_number)


def get_owner_repo_from_html_url(url: str) -> tuple[str, str]:
    """Split https://github.com/<owner>/<repo>/... into (owner, repo)."""
    parts = url.split("/")
    if len(parts) < 5:
        raise ValueError(f"Invalid URL: {url}")
    return parts[3], parts[4]
