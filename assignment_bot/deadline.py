# SPDX-License-Identifier: MIT OR Apache-2.0
# SPDX-FileCopyrightText: The Assignment Bot Contributors

"""Deadlines from price labels, and task staleness."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from .errors import InvalidDurationError, ValidationError
from .models import Label
from .time_utils import duration_to_timedelta, utc_now

NO_PRICE_LABEL_MESSAGE = "No price label is set to calculate the duration"


def get_price_label(labels: Iterable[Label]) -> Label | None:
    return next((label for label in labels if label.is_price), None)


def compute_deadline(labels: Iterable[Label], created_at: datetime) -> datetime:
    """Deadline = creation time + duration encoded in the `Price: <duration>` label."""
    price_label = get_price_label(labels)
    if price_label is None:
        raise ValidationError(NO_PRICE_LABEL_MESSAGE)

    try:
        duration = duration_to_timedelta(price_label.price_duration)
    except InvalidDurationError as e:
        raise ValidationError(
            f"Could not read a duration from the label '{price_label.name}'",
            label=price_label.name,
        ) from e
    return created_at + duration


def is_task_stale(stale_timeout: timedelta, created_at: datetime, now: datetime | None = None) -> bool:
    now = now or utc_now()
    return now - created_at >= stale_timeout


def days_elapsed(created_at: datetime, now: datetime | None = None) -> int:
    now = now or utc_now()
    return (now - created_at).days
