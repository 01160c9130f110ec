"""Discovery and upload of local files as release assets.

Patterns are expanded once while the configuration is resolved, so a bad
glob or an asset name collision is reported before anything on GitHub is
touched. Uploads replace any asset that already carries the same name.
"""

from __future__ import annotations

import dataclasses as dc
import glob
import logging
import typing as typ
from pathlib import Path

from .errors import InvalidParameterError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .github import Asset, Release, ReleaseApi

__all__ = [
    "LocalAsset",
    "describe_asset",
    "expand_file_patterns",
    "replace_asset",
    "split_patterns",
]

logger = logging.getLogger(__name__)


@dc.dataclass(frozen=True, slots=True)
class LocalAsset:
    """File staged for upload to a release."""

    path: Path
    name: str
    size: int


def split_patterns(raw: str) -> list[str]:
    """Return the non-blank lines of the newline-delimited ``files`` input."""
    return [line.strip() for line in raw.splitlines() if line.strip()]


def _iter_pattern_matches(pattern: str, workspace: Path) -> cabc.Iterator[Path]:
    """Yield files matching ``pattern`` in sorted order."""
    matches = glob.glob(pattern, root_dir=workspace, recursive=True)  # noqa: PTH207
    for match in sorted(matches):
        path = workspace / match
        if path.is_file():
            yield path


def _register_asset(name: str, path: Path, seen: dict[str, Path]) -> None:
    """Check for asset name collisions."""
    if (previous := seen.get(name)) is not None and previous != path:
        msg = f"Asset name collision: {name} would upload both {previous} and {path}"
        raise InvalidParameterError("files", msg)
    seen[name] = path


def expand_file_patterns(
    patterns: cabc.Iterable[str], *, workspace: Path
) -> tuple[Path, ...]:
    """Expand glob ``patterns`` into an ordered tuple of files.

    Parameters
    ----------
    patterns
        Glob patterns, relative to ``workspace`` unless absolute. ``**``
        matches across directories.
    workspace
        Directory relative patterns are resolved against.

    Returns
    -------
    tuple[Path, ...]
        Matching files in pattern order, each pattern's matches sorted. A
        file matched by several patterns, or reached through several
        spellings of its path, appears once, at its first match.

    Raises
    ------
    InvalidParameterError
        If two different files share a base name, since both would upload
        under the same asset name.
    """
    files: list[Path] = []
    resolved: set[Path] = set()
    seen: dict[str, Path] = {}
    for pattern in patterns:
        matched = False
        for path in _iter_pattern_matches(pattern, workspace):
            matched = True
            # Compare real files, not spellings (``..`` segments, symlinks).
            target = path.resolve()
            if target in resolved:
                continue
            _register_asset(path.name, target, seen)
            resolved.add(target)
            files.append(path)
        if not matched:
            logger.warning("Pattern %r did not match any files", pattern)
    return tuple(files)


def describe_asset(path: Path) -> LocalAsset:
    """Return the upload descriptor for ``path``."""
    return LocalAsset(path=path, name=path.name, size=path.stat().st_size)


def replace_asset(api: ReleaseApi, release: Release, asset: LocalAsset) -> Asset:
    """Upload ``asset`` to ``release``, deleting a same-named asset first.

    GitHub rejects uploads whose name is already taken, so an asset left
    behind by an earlier failed attempt is removed before streaming.
    """
    for existing in api.list_release_assets(release.id):
        if existing.name == asset.name:
            logger.info("Deleting existing asset %s (id %d)", existing.name, existing.id)
            api.delete_release_asset(existing.id)
    logger.info("Uploading %s (%d bytes) from %s", asset.name, asset.size, asset.path)
    return api.upload_release_asset(
        release, name=asset.name, path=asset.path, size=asset.size
    )
