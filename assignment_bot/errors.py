# SPDX-License-Identifier: MIT OR Apache-2.0
# SPDX-FileCopyrightText: The Assignment Bot Contributors

"""
Error taxonomy for assignment decisions.

Every error raised while deciding a `/start` request derives from
AssignmentError and carries the message that is shown to the requester.
"""


class AssignmentError(Exception):
    """Base class for anything that aborts an assignment decision."""

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(AssignmentError):
    """The issue cannot be worked on (parent, closed, assigned, unpriced, restricted)."""


class CapacityError(AssignmentError):
    """One or all contributors reached their task limit."""


class HistoryBarError(AssignmentError):
    """The contributor was previously unassigned by the bot or an administrator."""


class UpstreamReadError(AssignmentError):
    """A remote query failed (after its fallback, where one exists)."""


class UpstreamWriteError(AssignmentError):
    """A remote write failed. Writes are never retried."""


class ConfigError(AssignmentError):
    """The bot configuration is missing or invalid."""


class InvalidDurationError(ValueError):
    pass
