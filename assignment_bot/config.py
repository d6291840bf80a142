# SPDX-License-Identifier: MIT OR Apache-2.0
# SPDX-FileCopyrightText: The Assignment Bot Contributors

"""
Bot configuration.

Settings live in a YAML file (by default `.github/assignment-bot.yml`),
either as a plain mapping or inside a ```yaml fenced block so the same text
can be kept in an issue body. Deployment values (token, repository, app id)
come from the environment.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .errors import ConfigError, InvalidDurationError
from .time_utils import parse_duration

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = ".github/assignment-bot.yml"
SCOPES = ("org", "repo", "network")

DEFAULTS = {
    "reviewDelayTolerance": "1 Day",
    "taskStaleTimeoutDuration": "30 Days",
    "maxConcurrentTasks": {"admin": 20, "member": 10, "contributor": 2},
    "assignedIssueScope": "org",
    "rolesWithReviewAuthority": ["OWNER", "ADMIN", "MEMBER", "COLLABORATOR"],
    "requiredLabelsToStart": [],
    "startRequiresWallet": False,
    "emptyWalletText": "Please set your wallet address to use this command.",
    "networkOrganizations": [],
}


@dataclass(frozen=True)
class BotConfig:
    app_id: int
    owner: str
    repo: str
    review_delay_tolerance: str | None = DEFAULTS["reviewDelayTolerance"]
    task_stale_timeout_duration: str = DEFAULTS["taskStaleTimeoutDuration"]
    max_concurrent_tasks: dict[str, int] = field(
        default_factory=lambda: dict(DEFAULTS["maxConcurrentTasks"])
    )
    assigned_issue_scope: str = DEFAULTS["assignedIssueScope"]
    roles_with_review_authority: tuple[str, ...] = tuple(DEFAULTS["rolesWithReviewAuthority"])
    required_labels_to_start: tuple[str, ...] = ()
    start_requires_wallet: bool = False
    empty_wallet_text: str = DEFAULTS["emptyWalletText"]
    network_organizations: tuple[str, ...] = ()

    def limit_for_role(self, role: str) -> int:
        """Look up the task limit for a role. Unknown roles fail closed."""
        limit = self.max_concurrent_tasks.get(role.lower())
        if limit is None:
            raise ConfigError(
                f"No task limit is configured for role '{role}'.", role=role
            )
        return limit


def parse_config_text(text: str) -> dict:
    """Parse YAML settings, optionally wrapped in a ```yaml block."""
    yaml_match = re.search(r"```ya?ml\n(.*?)\n```", text, re.DOTALL)
    content = yaml_match.group(1) if yaml_match else text

    try:
        data = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse configuration YAML: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping of settings.")
    return data


def require_app_id(value: str | None) -> int:
    try:
        app_id = int(str(value).strip())
    except (TypeError, ValueError):
        raise ConfigError("Invalid APP_ID") from None
    if app_id <= 0:
        raise ConfigError("Invalid APP_ID")
    return app_id


def _check_duration(key: str, value) -> None:
    try:
        parse_duration(value)
    except InvalidDurationError as e:
        raise ConfigError(f"Invalid config time value for {key}: {value!r}") from e


def _string_list(key: str, value) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{key} must be a list of strings")
    return tuple(value)


def build_config(settings: dict, app_id, owner: str, repo: str) -> BotConfig:
    merged = {**DEFAULTS, **{k: v for k, v in settings.items() if v is not None}}
    # An explicit empty value disables the review tolerance rule
    if "reviewDelayTolerance" in settings and not settings["reviewDelayTolerance"]:
        merged["reviewDelayTolerance"] = None

    if merged["reviewDelayTolerance"] is not None:
        _check_duration("reviewDelayTolerance", merged["reviewDelayTolerance"])
    _check_duration("taskStaleTimeoutDuration", merged["taskStaleTimeoutDuration"])

    scope = str(merged["assignedIssueScope"]).lower()
    if scope not in SCOPES:
        raise ConfigError(
            f"assignedIssueScope must be one of {', '.join(SCOPES)}, got {scope!r}"
        )

    limits = merged["maxConcurrentTasks"]
    if not isinstance(limits, dict) or not limits:
        raise ConfigError("maxConcurrentTasks must map roles to task limits")
    max_tasks = {}
    for role, limit in limits.items():
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise ConfigError(f"Task limit for role '{role}' must be a positive integer")
        max_tasks[str(role).lower()] = limit

    return BotConfig(
        app_id=require_app_id(app_id),
        owner=owner,
        repo=repo,
        review_delay_tolerance=merged["reviewDelayTolerance"],
        task_stale_timeout_duration=merged["taskStaleTimeoutDuration"],
        max_concurrent_tasks=max_tasks,
        assigned_issue_scope=scope,
        roles_with_review_authority=tuple(
            r.upper() for r in _string_list("rolesWithReviewAuthority", merged["rolesWithReviewAuthority"])
        ),
        required_labels_to_start=_string_list("requiredLabelsToStart", merged["requiredLabelsToStart"]),
        start_requires_wallet=bool(merged["startRequiresWallet"]),
        empty_wallet_text=str(merged["emptyWalletText"]),
        network_organizations=_string_list("networkOrganizations", merged["networkOrganizations"]),
    )


def load_config(path: str | Path | None = None, env: dict | None = None) -> BotConfig:
    """Load settings from the YAML file and deployment values from the environment."""
    env = os.environ if env is None else env
    config_path = Path(path or env.get("ASSIGNMENT_BOT_CONFIG") or DEFAULT_CONFIG_PATH)

    settings = {}
    if config_path.is_file():
        settings = parse_config_text(config_path.read_text(encoding="utf-8"))
    else:
        logger.warning("Config file %s not found, using defaults", config_path)

    owner = env.get("REPO_OWNER", "")
    repo = env.get("REPO_NAME", "")
    if not owner or not repo:
        raise ConfigError("REPO_OWNER and REPO_NAME must be set")

    return build_config(settings, env.get("APP_ID"), owner, repo)
