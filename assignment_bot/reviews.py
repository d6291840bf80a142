# SPDX-License-Identifier: MIT OR Apache-2.0
# SPDX-FileCopyrightText: The Assignment Bot Contributors

"""
Pull request review classification.

A pull request is classified from its most recent state-bearing review
(APPROVED or CHANGES_REQUESTED). Changes requested are treated as resolved
when the author requested a new review afterwards: the re-request is taken
as a sign the feedback was addressed, without waiting for the reviewer to
approve. This is a tolerance policy and not a review outcome.

Open pull requests of a contributor are split in two passes: classify each
one, then fold the tolerance rules into new approved / changes-requested
tuples.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable

from .errors import UpstreamReadError
from .models import (
    AssignmentApi,
    PullRequestSplit,
    PullRequestSummary,
    Review,
    ReviewClassification,
    ReviewState,
    TimelineEvent,
)
from .time_utils import duration_to_timedelta, utc_now

logger = logging.getLogger(__name__)

STATE_BEARING_REVIEWS = ("APPROVED", "CHANGES_REQUESTED")
REVIEW_REQUESTED_EVENT = "review_requested"


def latest_review(reviews: Iterable[Review]) -> Review | None:
    candidates = [
        r for r in reviews
        if r.state in STATE_BEARING_REVIEWS and r.submitted_at is not None
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda r: r.submitted_at)


def classify(
    reviews: Iterable[Review], review_request_events: Iterable[TimelineEvent]
) -> ReviewClassification:
    """Classify one pull request from its reviews and review-request timeline."""
    latest = latest_review(reviews)
    if latest is None:
        return ReviewClassification(ReviewState.UNREVIEWED)

    if latest.state == "APPROVED":
        return ReviewClassification(ReviewState.APPROVED, latest.submitted_at)

    re_requested = any(
        event.event == REVIEW_REQUESTED_EVENT and event.created_at > latest.submitted_at
        for event in review_request_events
    )
    if re_requested:
        return ReviewClassification(ReviewState.APPROVED, latest.submitted_at, True)
    return ReviewClassification(ReviewState.CHANGES_REQUESTED, latest.submitted_at)


def fetch_review_request_timeline(
    api: AssignmentApi, pull_request: PullRequestSummary
) -> list[TimelineEvent]:
    """Timeline read failures degrade to an empty timeline (no override)."""
    try:
        return api.get_review_request_timeline(pull_request)
    except UpstreamReadError as e:
        logger.warning(
            "Error fetching review request timeline for %s: %s",
            pull_request.html_url, e,
        )
        return []


def classify_pull_request(
    api: AssignmentApi,
    pull_request: PullRequestSummary,
    roles_with_review_authority: Iterable[str],
) -> ReviewClassification:
    roles = {r.upper() for r in roles_with_review_authority}
    reviews = [
        r for r in api.get_reviews(pull_request)
        if r.author_association.upper() in roles
    ]

    timeline: list[TimelineEvent] = []
    latest = latest_review(reviews)
    if latest is not None and latest.state == "CHANGES_REQUESTED":
        timeline = fetch_review_request_timeline(api, pull_request)

    return classify(reviews, timeline)


def fold_classifications(
    classified: Iterable[tuple[PullRequestSummary, ReviewClassification]],
    review_delay_tolerance: timedelta,
    now: datetime,
) -> PullRequestSplit:
    """
    Fold classifications into approved / changes-requested sets.

    An unreviewed pull request older than the tolerance counts as approved.
    """
    approved = []
    changes = []
    for pull_request, classification in classified:
        if classification.state is ReviewState.APPROVED:
            approved.append(pull_request)
        elif classification.state is ReviewState.CHANGES_REQUESTED:
            changes.append(pull_request)
        elif now - pull_request.created_at >= review_delay_tolerance:
            approved.append(pull_request)
    return PullRequestSplit(tuple(approved), tuple(changes))


def split_pull_requests(
    api: AssignmentApi,
    login: str,
    review_delay_tolerance: str | None,
    roles_with_review_authority: Iterable[str],
    now: datetime | None = None,
) -> PullRequestSplit:
    """Classify the contributor's open pull requests for task limit accounting."""
    if not review_delay_tolerance:
        return PullRequestSplit()

    now = now or utc_now()
    tolerance = duration_to_timedelta(review_delay_tolerance)
    roles = tuple(roles_with_review_authority)

    classified = [
        (pr, classify_pull_request(api, pr, roles))
        for pr in api.get_open_pull_requests(login)
    ]
    return fold_classifications(classified, tolerance, now)
