"""Configuration models and resolver for the release helper.

Raw action inputs arrive as strings in :class:`ActionInputs`.
:func:`resolve_config` validates them and produces one of two immutable
variants:

- :class:`TagCreationConfig` for the ``replace`` and ``fail-fast``
  strategies, which may create or move the tag and therefore carry the
  target commit.
- :class:`ExistingTagConfig` for ``use-existing-tag``, which never touches
  the tag and has no target commit at all.

Local validation always completes before the only remote call made here,
the lookup that turns a ref path ``target`` into a sha.
"""

from __future__ import annotations

import dataclasses
import enum
import typing as typ

from .assets import expand_file_patterns, split_patterns
from .errors import (
    GitHubApiError,
    IncompatibleParameterError,
    InvalidParameterError,
    MissingParameterError,
    RemoteQueryError,
)
from .github import Repository
from .sources import parse_text_source, resolve_text

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

__all__ = [
    "ActionInputs",
    "ExistingTagConfig",
    "ReleaseConfig",
    "Strategy",
    "TagCreationConfig",
    "coerce_bool",
    "require_value",
    "resolve_config",
    "resolve_target",
]

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


class Strategy(enum.StrEnum):
    """Policy applied when the release tag already exists."""

    REPLACE = "replace"
    FAIL_FAST = "fail-fast"
    USE_EXISTING_TAG = "use-existing-tag"


@dataclasses.dataclass(frozen=True, slots=True)
class ActionInputs:
    """Raw string inputs as received from the workflow."""

    repository: str
    tag: str
    strategy: str
    title_source: str
    title: str
    body_source: str = "literal"
    body: str = ""
    tag_message: str = ""
    target: str = ""
    prerelease: str = "false"
    draft: str = "false"
    discussion_category_name: str = ""
    files: str = ""


@dataclasses.dataclass(frozen=True, slots=True, kw_only=True)
class _ReleaseSettings:
    repository: Repository
    tag: str
    title: str
    body: str
    prerelease: bool = False
    draft: bool = False
    discussion_category_name: str | None = None
    files: tuple[Path, ...] = ()

    @property
    def tag_ref(self) -> str:
        """Reference path of the tag relative to ``refs/``."""
        return f"tags/{self.tag}"


@dataclasses.dataclass(frozen=True, slots=True, kw_only=True)
class TagCreationConfig(_ReleaseSettings):
    """Configuration for strategies that may create or move the tag."""

    strategy: typ.Literal[Strategy.REPLACE, Strategy.FAIL_FAST]
    target_sha: str
    tag_message: str


@dataclasses.dataclass(frozen=True, slots=True, kw_only=True)
class ExistingTagConfig(_ReleaseSettings):
    """Configuration for releasing against a tag that must already exist."""

    @property
    def strategy(self) -> typ.Literal[Strategy.USE_EXISTING_TAG]:
        return Strategy.USE_EXISTING_TAG


ReleaseConfig: typ.TypeAlias = TagCreationConfig | ExistingTagConfig


def require_value(parameter: str, value: str | None) -> str:
    """Return ``value`` stripped, raising if it is empty."""
    if value is None or not value.strip():
        raise MissingParameterError(parameter)
    return value.strip()


def coerce_bool(value: str, *, parameter: str) -> bool:
    """Interpret a workflow input as a boolean.

    GitHub forwards inputs as strings, so several spellings are accepted and
    an empty value means ``False``.
    """
    normalised = value.strip().lower()
    if normalised in _TRUTHY:
        return True
    if normalised in _FALSY:
        return False
    msg = f"Invalid value for {parameter}: {value!r}. Expected a boolean-like string."
    raise InvalidParameterError(parameter, msg)


def _parse_strategy(value: str) -> Strategy:
    normalised = require_value("strategy", value).lower()
    try:
        return Strategy(normalised)
    except ValueError as exc:
        allowed = ", ".join(strategy.value for strategy in Strategy)
        msg = f"Invalid value for strategy: {value!r}. Allowed: {allowed}."
        raise InvalidParameterError("strategy", msg) from exc


def _check_target(strategy: Strategy, target: str) -> str | None:
    """Enforce that ``target`` is given exactly when the tag may change."""
    target = target.strip()
    if strategy is Strategy.USE_EXISTING_TAG:
        if target:
            raise IncompatibleParameterError("target", strategy.value)
        return None
    if not target:
        detail = f"required by strategy '{strategy.value}'"
        raise MissingParameterError("target", detail)
    return target


def resolve_target(target: str, lookup_ref: cabc.Callable[[str], str]) -> str:
    """Return the commit sha named by ``target``.

    A value containing ``/`` is a ref path such as ``refs/heads/main``; the
    leading ``refs/`` is dropped and the remainder resolved through
    ``lookup_ref``. Anything else is taken as a sha verbatim.
    """
    if "/" not in target:
        return target
    ref = target.removeprefix("refs/")
    try:
        return lookup_ref(ref)
    except GitHubApiError as exc:
        msg = f"Failed to resolve target ref '{target}'"
        raise RemoteQueryError(msg) from exc


def resolve_config(
    inputs: ActionInputs,
    *,
    lookup_ref: cabc.Callable[[str], str],
    environ: cabc.Mapping[str, str],
    workspace: Path,
) -> ReleaseConfig:
    """Validate ``inputs`` and build the configuration for this run.

    Parameters
    ----------
    inputs
        Raw action inputs.
    lookup_ref
        Callable returning the sha a ref path (without ``refs/``) points at.
        Only called when ``target`` is a ref path.
    environ
        Environment used by the ``env`` text source.
    workspace
        Directory that relative ``files`` patterns are resolved against.

    Returns
    -------
    ReleaseConfig
        :class:`TagCreationConfig` or :class:`ExistingTagConfig`, depending
        on the strategy.

    Raises
    ------
    InputError
        If an input is missing, malformed, or incompatible with the strategy.
    RemoteQueryError
        If a ref path ``target`` cannot be resolved.
    """
    repository = Repository.parse(require_value("repository", inputs.repository))
    tag = require_value("tag", inputs.tag)
    strategy = _parse_strategy(inputs.strategy)
    target = _check_target(strategy, inputs.target)

    title_source = parse_text_source(inputs.title_source, parameter="title")
    if not inputs.title:
        raise MissingParameterError("title")
    body_source = parse_text_source(inputs.body_source or "literal", parameter="body")
    title = resolve_text(title_source, inputs.title, parameter="title", environ=environ)
    body = resolve_text(body_source, inputs.body, parameter="body", environ=environ)

    settings: dict[str, typ.Any] = {
        "repository": repository,
        "tag": tag,
        "title": title,
        "body": body,
        "prerelease": coerce_bool(inputs.prerelease, parameter="prerelease"),
        "draft": coerce_bool(inputs.draft, parameter="draft"),
        "discussion_category_name": inputs.discussion_category_name.strip() or None,
        "files": expand_file_patterns(
            split_patterns(inputs.files), workspace=workspace
        ),
    }

    if target is None:
        return ExistingTagConfig(**settings)
    return TagCreationConfig(
        **settings,
        strategy=strategy,
        target_sha=resolve_target(target, lookup_ref),
        tag_message=inputs.tag_message or tag,
    )
