"""Compensating actions that restore the tag to its pre-run state."""

from __future__ import annotations

import dataclasses
import logging
import typing as typ

from .errors import GitHubApiError

if typ.TYPE_CHECKING:
    from .github import ReleaseApi

__all__ = ["DeleteRefUndo", "NoopUndo", "RestoreRefUndo", "UndoAction", "run_undo"]

logger = logging.getLogger(__name__)


class UndoAction(typ.Protocol):
    """Deferred operation reverting this run's tag mutation."""

    @property
    def description(self) -> str:
        """Human-readable summary used in logs."""
        ...

    def __call__(self) -> None:
        """Perform the compensating action."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class NoopUndo:
    """Undo for runs that left the tag untouched."""

    @property
    def description(self) -> str:
        return "leave the existing tag untouched"

    def __call__(self) -> None:
        return None


@dataclasses.dataclass(frozen=True, slots=True)
class RestoreRefUndo:
    """Move a force-updated ref back to the sha it had before the run."""

    api: ReleaseApi
    ref: str
    sha: str

    @property
    def description(self) -> str:
        return f"restore {self.ref} to {self.sha}"

    def __call__(self) -> None:
        self.api.update_ref(self.ref, self.sha, force=True)


@dataclasses.dataclass(frozen=True, slots=True)
class DeleteRefUndo:
    """Delete a ref created during the run."""

    api: ReleaseApi
    ref: str

    @property
    def description(self) -> str:
        return f"delete {self.ref}"

    def __call__(self) -> None:
        self.api.delete_ref(self.ref)


def run_undo(undo: UndoAction) -> bool:
    """Run ``undo`` on a best-effort basis.

    A failure is logged and swallowed so that the error which triggered the
    rollback is the one reported to the caller.

    Returns
    -------
    bool
        ``True`` when the undo completed.
    """
    logger.info("Rolling back tag: %s", undo.description)
    try:
        undo()
    except GitHubApiError as exc:
        logger.error("Failed to %s: %s", undo.description, exc)  # noqa: TRY400
        return False
    return True
