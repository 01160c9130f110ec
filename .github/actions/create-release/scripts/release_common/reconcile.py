"""Reconcile the remote tag and release with the run configuration.

The run proceeds strictly in sequence:

1. look up ``refs/tags/<tag>``;
2. decide, from the strategy and the lookup, whether to create, move, or
   keep the tag (or abort);
3. delete releases already pointing at the tag name;
4. mutate the tag and remember how to undo it;
5. create the release;
6. upload every file, retrying each one with backoff.

Failures after step 4 run the undo action explicitly before raising. An
upload that exhausts its retries also deletes the release created in step 5.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
import time
import typing as typ

from .assets import describe_asset, replace_asset
from .config import ExistingTagConfig, Strategy, TagCreationConfig
from .errors import (
    GitHubApiError,
    ReleaseCreationError,
    RemoteQueryError,
    TagExistsError,
    TagMissingError,
    TagMutationError,
    UploadError,
)
from .retry import RetryPolicy, retry_with_backoff
from .undo import DeleteRefUndo, NoopUndo, RestoreRefUndo, run_undo

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

    from .config import ReleaseConfig
    from .github import Asset, GitRef, Release, ReleaseApi
    from .retry import RandomSource
    from .undo import UndoAction

__all__ = [
    "PublishResult",
    "TagPlan",
    "apply_tag_plan",
    "create_release",
    "decide_tag_plan",
    "delete_stale_releases",
    "fetch_tag",
    "publish_release",
    "upload_assets",
]

logger = logging.getLogger(__name__)


class TagPlan(enum.Enum):
    """What the run does to the tag."""

    CREATE = "created"
    UPDATE = "moved"
    KEEP = "kept"


@dataclasses.dataclass(frozen=True, slots=True)
class PublishResult:
    """Outcome of :func:`publish_release`."""

    release: Release
    assets: tuple[Asset, ...]
    tag_plan: TagPlan


def fetch_tag(api: ReleaseApi, tag: str) -> GitRef | None:
    """Return the ref for ``tag``, or ``None`` when it does not exist."""
    logger.info("Looking up tag %s", tag)
    try:
        return api.get_ref(f"tags/{tag}")
    except GitHubApiError as exc:
        if exc.not_found:
            return None
        msg = f"Failed to look up tag '{tag}'"
        raise RemoteQueryError(msg) from exc


def decide_tag_plan(config: ReleaseConfig, existing: GitRef | None) -> TagPlan:
    """Choose the tag mutation for ``config`` given the current tag state.

    Raises
    ------
    TagExistsError
        If the strategy is ``fail-fast`` and the tag exists.
    TagMissingError
        If the strategy is ``use-existing-tag`` and the tag does not exist.
    """
    match config:
        case ExistingTagConfig() if existing is None:
            msg = (
                f"Tag '{config.tag}' does not exist; strategy "
                f"'{Strategy.USE_EXISTING_TAG}' has nothing to reference"
            )
            raise TagMissingError(msg)
        case ExistingTagConfig():
            return TagPlan.KEEP
        case TagCreationConfig() if existing is None:
            return TagPlan.CREATE
        case TagCreationConfig(strategy=Strategy.FAIL_FAST):
            msg = f"Tag '{config.tag}' already exists"
            raise TagExistsError(msg)
        case TagCreationConfig():
            return TagPlan.UPDATE
    msg = f"Unsupported configuration {config!r}"  # pragma: no cover
    raise TypeError(msg)  # pragma: no cover


def delete_stale_releases(api: ReleaseApi, tag: str) -> list[int]:
    """Delete every release whose ``tag_name`` is ``tag``.

    Returns
    -------
    list[int]
        Identifiers of the deleted releases.
    """
    try:
        stale = [release for release in api.list_releases() if release.tag_name == tag]
        for release in stale:
            logger.info("Deleting stale release %d for tag %s", release.id, tag)
            api.delete_release(release.id)
    except GitHubApiError as exc:
        msg = f"Failed to clear existing releases for tag '{tag}'"
        raise RemoteQueryError(msg) from exc
    return [release.id for release in stale]


def _create_tag(api: ReleaseApi, config: TagCreationConfig) -> UndoAction:
    logger.info("Creating tag %s at %s", config.tag, config.target_sha)
    tag_sha = api.create_tag_object(config.tag, config.tag_message, config.target_sha)
    api.create_ref(config.tag_ref, tag_sha)
    return DeleteRefUndo(api=api, ref=config.tag_ref)


def _move_tag(
    api: ReleaseApi, config: TagCreationConfig, existing: GitRef
) -> UndoAction:
    logger.info(
        "Moving tag %s from %s %s to %s",
        config.tag,
        existing.object_type or "object",
        existing.sha,
        config.target_sha,
    )
    api.update_ref(config.tag_ref, config.target_sha, force=True)
    return RestoreRefUndo(api=api, ref=config.tag_ref, sha=existing.sha)


def apply_tag_plan(
    api: ReleaseApi,
    config: ReleaseConfig,
    plan: TagPlan,
    existing: GitRef | None,
) -> UndoAction:
    """Carry out ``plan`` and return the action that reverts it.

    Raises
    ------
    TagMutationError
        If GitHub rejects the mutation. Nothing has changed yet, so no undo
        is attempted.
    """
    try:
        match config, plan:
            case ExistingTagConfig(), TagPlan.KEEP:
                logger.info("Using existing tag %s", config.tag)
                return NoopUndo()
            case TagCreationConfig(), TagPlan.CREATE:
                return _create_tag(api, config)
            case TagCreationConfig(), TagPlan.UPDATE if existing is not None:
                return _move_tag(api, config, existing)
    except GitHubApiError as exc:
        msg = f"Failed to update tag '{config.tag}'"
        raise TagMutationError(msg) from exc
    msg = f"Cannot apply tag plan {plan.name} with strategy '{config.strategy}'"
    raise ValueError(msg)


def create_release(
    api: ReleaseApi, config: ReleaseConfig, undo: UndoAction
) -> Release:
    """Create the release for ``config.tag``, rolling back the tag on failure."""
    logger.info("Creating release %r for tag %s", config.title, config.tag)
    try:
        release = api.create_release(
            tag_name=config.tag,
            name=config.title,
            body=config.body,
            draft=config.draft,
            prerelease=config.prerelease,
            discussion_category_name=config.discussion_category_name,
        )
    except GitHubApiError as exc:
        run_undo(undo)
        msg = f"Failed to create release for tag '{config.tag}'"
        raise ReleaseCreationError(msg) from exc
    logger.info("Created release %d", release.id)
    return release


def _discard_release(api: ReleaseApi, release: Release) -> None:
    logger.info("Deleting release %d", release.id)
    try:
        api.delete_release(release.id)
    except GitHubApiError as exc:
        logger.error("Failed to delete release %d: %s", release.id, exc)  # noqa: TRY400


def upload_assets(  # noqa: PLR0913
    api: ReleaseApi,
    release: Release,
    files: cabc.Sequence[Path],
    undo: UndoAction,
    *,
    policy: RetryPolicy | None = None,
    sleep: cabc.Callable[[float], None] = time.sleep,
    rng: RandomSource | None = None,
) -> tuple[Asset, ...]:
    """Upload ``files`` to ``release`` one at a time.

    Each file is retried according to ``policy``. When a file exhausts its
    attempts, the release is deleted, ``undo`` is run, and later files are
    skipped.

    Raises
    ------
    UploadError
        Chained to the error of the final failed attempt.
    """
    uploaded: list[Asset] = []
    for path in files:
        outcome = retry_with_backoff(
            lambda path=path: replace_asset(api, release, describe_asset(path)),
            policy,
            description=f"upload of {path.name}",
            sleep=sleep,
            rng=rng,
        )
        if not outcome.succeeded:
            _discard_release(api, release)
            run_undo(undo)
            raise UploadError(path.name, outcome.attempts) from outcome.error
        uploaded.append(typ.cast("Asset", outcome.value))
    return tuple(uploaded)


def publish_release(
    api: ReleaseApi,
    config: ReleaseConfig,
    *,
    policy: RetryPolicy | None = None,
    sleep: cabc.Callable[[float], None] = time.sleep,
    rng: RandomSource | None = None,
) -> PublishResult:
    """Run the full tag, release, and asset sequence for ``config``.

    Parameters
    ----------
    api
        GitHub client scoped to the target repository.
    config
        Resolved run configuration.
    policy
        Per-file upload retry policy.
    sleep
        Function used for backoff between upload attempts.
    rng
        Jitter source for the backoff.

    Returns
    -------
    PublishResult
        The created release, the uploaded assets, and what happened to the
        tag.

    Raises
    ------
    ReleaseError
        Any fatal failure. Compensating actions have already run.
    """
    existing = fetch_tag(api, config.tag)
    plan = decide_tag_plan(config, existing)
    delete_stale_releases(api, config.tag)
    undo = apply_tag_plan(api, config, plan, existing)
    release = create_release(api, config, undo)
    assets = upload_assets(
        api, release, config.files, undo, policy=policy, sleep=sleep, rng=rng
    )
    return PublishResult(release=release, assets=assets, tag_plan=plan)
