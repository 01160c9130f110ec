"""Workflow outputs and step summary for the release helper."""

from __future__ import annotations

import os
import typing as typ
from pathlib import Path

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .github import Asset, Release

__all__ = ["render_summary", "write_github_output", "write_step_summary"]


def _format_scalar_output(key: str, value: str) -> str:
    """Format a value for GitHub Actions output with escaping."""
    escaped = value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
    return f"{key}={escaped}\n"


def write_github_output(values: dict[str, str], *, file: Path | None = None) -> bool:
    """Append ``values`` to the ``GITHUB_OUTPUT`` file.

    Parameters
    ----------
    values
        Mapping of output names to values.
    file
        Output file; defaults to the path named by ``GITHUB_OUTPUT``.

    Returns
    -------
    bool
        ``False`` when no output file is configured, as when running outside
        GitHub Actions.
    """
    if file is None:
        output_path = os.environ.get("GITHUB_OUTPUT")
        if not output_path:
            return False
        file = Path(output_path)
    file.parent.mkdir(parents=True, exist_ok=True)
    with file.open("a", encoding="utf-8") as handle:
        for key, value in values.items():
            handle.write(_format_scalar_output(key, value))
    return True


def render_summary(
    release: Release, assets: cabc.Sequence[Asset], *, tag_action: str
) -> str:
    """Return a Markdown summary of the published release."""
    lines = [
        "## Release summary",
        "",
        f"- Tag: `{release.tag_name}` ({tag_action})",
        f"- Release id: {release.id}",
        f"- Draft: {str(release.draft).lower()}",
        f"- Prerelease: {str(release.prerelease).lower()}",
    ]
    if assets:
        lines.append(f"- Assets ({len(assets)}):")
        lines.extend(f"  - {asset.name} ({asset.size} bytes)" for asset in assets)
    else:
        lines.append("- Assets: none")
    return "\n".join(lines) + "\n"


def write_step_summary(content: str) -> bool:
    """Append ``content`` to ``GITHUB_STEP_SUMMARY`` when it is set."""
    summary_path = os.environ.get("GITHUB_STEP_SUMMARY")
    if not summary_path:
        return False
    path = Path(summary_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    prefix = "\n" if path.exists() and path.stat().st_size > 0 else ""
    with path.open("a", encoding="utf-8") as handle:
        handle.write(prefix + content)
    return True
