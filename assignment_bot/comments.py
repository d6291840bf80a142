# SPDX-License-Identifier: MIT OR Apache-2.0
# SPDX-FileCopyrightText: The Assignment Bot Contributors

"""Comment text posted by the bot."""

from __future__ import annotations

from datetime import datetime

import yaml

METADATA_MARKER = "assignment-bot"

# Command definitions - single source of truth for the help comment
COMMANDS = {
    "start": "Assign yourself to this issue",
    "start @teammate ...": "Assign yourself together with teammates",
    "stop": "Unassign yourself and close your linked pull requests",
    "help": "Show all available commands",
}


def get_commands_help() -> str:
    """Generate help text from COMMANDS dict."""
    lines = ["ℹ️ **Available Commands**", ""]
    for cmd, desc in COMMANDS.items():
        lines.append(f"- `/{cmd}` - {desc}")
    return "\n".join(lines)


def format_date(value: datetime) -> str:
    return value.strftime("%a, %b %d, %Y, %I:%M:%S %p UTC")


def structured_metadata(kind: str, data: dict) -> str:
    """Machine readable record hidden in an HTML comment."""
    body = yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
    return f"<!-- {METADATA_MARKER} - {kind}\n{body}-->"


def assignment_comment(
    deadline: datetime,
    is_stale: bool,
    days_since_creation: int,
    assignees: list[str],
    assignee_ids: list[int],
    wallet: str | None = None,
    revision: str | None = None,
) -> str:
    rows = []
    if is_stale:
        rows.append(
            f"| Warning! | This task was created over {days_since_creation} days ago. "
            f"Please confirm that this issue specification is accurate before starting. |"
        )
    rows.append(f"| Deadline | {format_date(deadline)} |")
    if wallet:
        rows.append(f"| Beneficiary | {wallet} |")

    table = "\n".join(["| | |", "| --- | --- |", *rows])
    mentions = ", ".join(f"@{login}" for login in assignees)
    metadata = structured_metadata(
        "Assignment",
        {
            "taskDeadline": deadline.isoformat(),
            "isTaskStale": is_stale,
            "taskAssignees": assignee_ids,
            "revision": revision,
        },
    )

    return (f"✅ {mentions} assigned.\n\n"
            f"{table}\n\n"
            f"> [!TIP]\n"
            f"> Use `/stop` if you can no longer work on this task.\n\n"
            f"{metadata}")


def private_repo_notice() -> str:
    return ("ℹ️ This task belongs to a private repo and can only be assigned to one user "
            "without an official paid GitHub subscription.")


def rejection_comment(reason: str) -> str:
    return f"❌ {reason}"
