"""Release helper package for the create-release action.

This package resolves the action inputs, reconciles the release tag with the
selected strategy, creates the GitHub release, and uploads its assets with
per-file retries, rolling back the tag when a later step fails.
"""

from __future__ import annotations

from .config import (
    ActionInputs,
    ExistingTagConfig,
    ReleaseConfig,
    Strategy,
    TagCreationConfig,
    require_value,
    resolve_config,
)
from .errors import GitHubApiError, InputError, ReleaseError
from .github import GitHubClient, ReleaseApi, Repository
from .logs import configure_logging, format_cause_chain, report_failure
from .output import render_summary, write_github_output, write_step_summary
from .reconcile import PublishResult, TagPlan, publish_release
from .retry import RetryOutcome, RetryPolicy, retry_with_backoff

__all__ = [
    "ActionInputs",
    "ExistingTagConfig",
    "GitHubApiError",
    "GitHubClient",
    "InputError",
    "PublishResult",
    "ReleaseApi",
    "ReleaseConfig",
    "ReleaseError",
    "Repository",
    "RetryOutcome",
    "RetryPolicy",
    "Strategy",
    "TagCreationConfig",
    "TagPlan",
    "configure_logging",
    "format_cause_chain",
    "publish_release",
    "render_summary",
    "report_failure",
    "require_value",
    "resolve_config",
    "retry_with_backoff",
    "write_github_output",
    "write_step_summary",
]
