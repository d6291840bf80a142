#!/usr/bin/env python3
# SPDX-License-Identifier: MIT OR Apache-2.0
# SPDX-FileCopyrightText: The Assignment Bot Contributors

"""
Assignment Bot

Lets contributors pick up priced issues by commenting on them. Runs as a
GitHub Actions job on `issue_comment` events.

  /start [@teammate ...]
    - Assign yourself (and optionally teammates) to the issue
    - Checks task limits, review state of your open pull requests,
      prior unassignments and label restrictions first

  /stop
    - Unassign yourself and close your pull requests linked to the issue

  /help
    - Show all available commands
"""

import logging
import os
import re
import sys

from . import comments
from .config import load_config
from .errors import ConfigError
from .github_api import GitHubApi
from .start import start
from .stop import stop

logger = logging.getLogger(__name__)

COMMAND_PATTERN = re.compile(r"^\s*/(start|stop|help)\b(.*)$", re.IGNORECASE | re.MULTILINE)
TEAMMATE_PATTERN = re.compile(r"@([A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?)")


def strip_code_blocks(body: str) -> str:
    """Remove fenced blocks, indented blocks and inline code so quoted commands are ignored."""
    body = re.sub(r"```.*?```", "", body, flags=re.DOTALL)
    body = re.sub(r"^(?: {4}|\t).*$", "", body, flags=re.MULTILINE)
    return re.sub(r"`[^`\n]*`", "", body)


def parse_command(comment_body: str) -> tuple[str, list[str]] | None:
    """
    Parse a bot command from a comment body.

    Returns (command, args) or None if no command found. For `/start` the
    args are the mentioned teammates without the @ prefix.
    """
    match = COMMAND_PATTERN.search(strip_code_blocks(comment_body))
    if not match:
        return None

    command = match.group(1).lower()
    args = []
    if command == "start":
        args = TEAMMATE_PATTERN.findall(match.group(2))
    return command, args


def handle_start_command(api, config, issue_number: int, sender: str,
                         teammates: list[str]) -> tuple[str, bool]:
    """
    Handle /start. The success comment is posted by the commit step.

    Returns (response_message, success).
    """
    outcome = start(api, config, issue_number, sender, teammates)
    if outcome.committed:
        return "", True
    return comments.rejection_comment(outcome.reason), False


def handle_comment_event(api, config) -> bool:
    """
    Handle a comment event.

    Returns True if an issue was assigned, False otherwise.
    """
    comment_body = os.environ.get("COMMENT_BODY", "")
    comment_author = os.environ.get("COMMENT_AUTHOR", "")
    issue_number = int(os.environ.get("ISSUE_NUMBER", 0))

    if not comment_body or not issue_number or not comment_author:
        return False

    parsed = parse_command(comment_body)
    if not parsed:
        return False

    command, args = parsed
    logger.info("Parsed command: %s, args: %s", command, args)

    assigned = False
    if command == "start":
        response, assigned = handle_start_command(api, config, issue_number, comment_author, args)
    elif command == "stop":
        response, _ = stop(api, config, issue_number, comment_author)
    else:
        response = comments.get_commands_help()

    if response:
        api.post_comment(issue_number, response)
    return assigned


def get_wallet_issue_number() -> int | None:
    """WALLET_ISSUE_NUMBER is optional; Actions passes an empty string when it is unset."""
    value = os.environ.get("WALLET_ISSUE_NUMBER", "").strip()
    if not value:
        return None
    try:
        return int(value) or None
    except ValueError:
        raise ConfigError(f"Invalid WALLET_ISSUE_NUMBER: {value!r}") from None


def main():
    """Main entry point for the assignment bot."""
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )
    event_name = os.environ.get("EVENT_NAME", "")
    event_action = os.environ.get("EVENT_ACTION", "")
    logger.info("Event: %s, Action: %s", event_name, event_action)

    try:
        config = load_config()
        api = GitHubApi(config, wallet_issue_number=get_wallet_issue_number())
    except ConfigError as e:
        logger.error("%s", e.message)
        sys.exit(1)

    assigned = False
    if event_name == "issue_comment" and event_action == "created":
        assigned = handle_comment_event(api, config)

    with open(os.environ.get("GITHUB_OUTPUT", "/dev/null"), "a") as f:
        f.write(f"assigned={'true' if assigned else 'false'}\n")


if __name__ == "__main__":
    main()
