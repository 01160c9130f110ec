#!/usr/bin/env -S uv run --script
# fmt: off
# /// script
# requires-python = ">=3.12"
# dependencies = [
#   "cyclopts>=3.24,<4.0",
#   "httpx>=0.28,<0.29",
#   "syspath-hack>=0.4.0,<0.5.0",
#   "tenacity>=8.2",
# ]
# ///
# fmt: on

"""Create or update a tag and GitHub release, then upload release assets.

The script reads its parameters from ``INPUT_*`` environment variables,
reconciles the tag according to the selected strategy, creates the release,
uploads every file matched by the ``files`` patterns, and writes the release
identifier to ``GITHUB_OUTPUT`` as ``release-id``.

Examples
--------
Tag ``main`` as ``v1.2.3`` and publish the built wheels::

    export GITHUB_OUTPUT="$(mktemp)"
    INPUT_TOKEN=ghp_... INPUT_REPOSITORY=owner/repo INPUT_TAG=v1.2.3 \
        INPUT_STRATEGY=fail-fast INPUT_TARGET=refs/heads/main \
        INPUT_TITLE_SOURCE=literal INPUT_TITLE="Release 1.2.3" \
        INPUT_FILES='dist/*.whl' uv run create_release.py

Publish a release for a tag pushed earlier in the workflow::

    INPUT_STRATEGY=use-existing-tag INPUT_BODY_SOURCE=file \
        INPUT_BODY=CHANGELOG.md ... uv run create_release.py
"""

from __future__ import annotations

import collections.abc as cabc
import contextlib
import os
import time
import typing as typ
from pathlib import Path

import cyclopts
from cyclopts import App, Parameter
from syspath_hack import prepend_to_syspath

# Add script directory to path for release_common import
_SCRIPT_DIR = Path(__file__).resolve().parent
prepend_to_syspath(_SCRIPT_DIR)

from release_common import (
    ActionInputs,
    GitHubClient,
    ReleaseApi,
    ReleaseError,
    Repository,
    configure_logging,
    publish_release,
    render_summary,
    report_failure,
    require_value,
    resolve_config,
    write_github_output,
    write_step_summary,
)

ClientFactory: typ.TypeAlias = cabc.Callable[
    [str, Repository], contextlib.AbstractContextManager[ReleaseApi]
]

app: App = App(
    help="Create a tag and GitHub release and upload its assets.",
    config=cyclopts.config.Env("INPUT_", command=False),
)


def main(  # noqa: PLR0913
    inputs: ActionInputs,
    *,
    token: str,
    client_factory: ClientFactory = GitHubClient,
    environ: cabc.Mapping[str, str] | None = None,
    workspace: Path | None = None,
    sleep: cabc.Callable[[float], None] = time.sleep,
) -> int:
    """Entry point shared by the CLI and tests.

    Parameters
    ----------
    inputs
        Raw action inputs.
    token
        GitHub token used for every API call.
    client_factory
        Builds the API client for the repository; replaced in tests.
    environ
        Environment for the ``env`` text source; defaults to ``os.environ``.
    workspace
        Directory ``files`` patterns are resolved against; defaults to the
        current directory.
    sleep
        Backoff sleep used between upload attempts.

    Returns
    -------
    int
        Exit code: ``0`` when the tag, release, and every asset were
        published, ``1`` otherwise.
    """
    try:
        token = require_value("token", token)
        repository = Repository.parse(require_value("repository", inputs.repository))
        with client_factory(token, repository) as api:
            config = resolve_config(
                inputs,
                lookup_ref=lambda ref: api.get_ref(ref).sha,
                environ=os.environ if environ is None else environ,
                workspace=Path.cwd() if workspace is None else workspace,
            )
            result = publish_release(api, config, sleep=sleep)
    except ReleaseError as exc:
        report_failure(exc)
        return 1

    release_id = str(result.release.id)
    write_github_output({"release-id": release_id})
    write_step_summary(
        render_summary(result.release, result.assets, tag_action=result.tag_plan.value)
    )
    print(
        f"Published release {release_id} for tag {config.tag} "
        f"with {len(result.assets)} asset(s)"
    )
    return 0


@app.default
def cli(  # noqa: PLR0913
    *,
    token: typ.Annotated[str, Parameter(required=True)],
    repository: typ.Annotated[str, Parameter(required=True)],
    tag: typ.Annotated[str, Parameter(required=True)],
    strategy: typ.Annotated[str, Parameter(required=True)],
    title_source: typ.Annotated[str, Parameter(required=True)],
    title: typ.Annotated[str, Parameter(required=True)],
    body_source: str = "literal",
    body: str = "",
    tag_message: str = "",
    target: str = "",
    prerelease: str = "false",
    draft: str = "false",
    discussion_category_name: str = "",
    files: str = "",
) -> None:
    """Create a tag and GitHub release and upload its assets.

    Reconciles the tag according to ``strategy`` (``replace``,
    ``fail-fast``, or ``use-existing-tag``), replaces any release already
    attached to the tag, and uploads the files matched by ``files``.
    """
    configure_logging()
    inputs = ActionInputs(
        repository=repository,
        tag=tag,
        strategy=strategy,
        title_source=title_source,
        title=title,
        body_source=body_source,
        body=body,
        tag_message=tag_message,
        target=target,
        prerelease=prerelease,
        draft=draft,
        discussion_category_name=discussion_category_name,
        files=files,
    )
    raise SystemExit(main(inputs, token=token))


if __name__ == "__main__":
    app()
