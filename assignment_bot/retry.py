# SPDX-License-Identifier: MIT OR Apache-2.0
# SPDX-FileCopyrightText: The Assignment Bot Contributors

"""Read retry policy: one alternate strategy, no backoff. Writes never use it."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

import requests

from .errors import UpstreamReadError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RECOVERABLE = (UpstreamReadError, requests.RequestException)


@dataclass(frozen=True)
class FallbackRead(Generic[T]):
    """
    Run `primary`; if it fails, run `fallback` exactly once.

    A failure of the fallback is raised as UpstreamReadError.
    """

    description: str
    primary: Callable[..., T]
    fallback: Callable[..., T]

    def __call__(self, *args, **kwargs) -> T:
        try:
            return self.primary(*args, **kwargs)
        except RECOVERABLE as e:
            logger.info("Will try re-fetching %s... (%s)", self.description, e)

        try:
            return self.fallback(*args, **kwargs)
        except RECOVERABLE as e:
            raise UpstreamReadError(f"Fetching {self.description} failed!", error=str(e)) from e
