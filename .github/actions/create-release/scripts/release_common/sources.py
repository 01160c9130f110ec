"""Resolution of release text inputs from literal, file, or env sources."""

from __future__ import annotations

import enum
import typing as typ
from pathlib import Path

from .errors import InvalidParameterError, MissingParameterError, SourceFileError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

__all__ = ["TextSource", "parse_text_source", "resolve_text"]


class TextSource(enum.StrEnum):
    """Where the value of a text input comes from."""

    LITERAL = "literal"
    FILE = "file"
    ENV = "env"


def parse_text_source(value: str, *, parameter: str) -> TextSource:
    """Return the :class:`TextSource` named by ``value``.

    ``parameter`` is the name of the text input; the error names the
    matching ``<parameter>-source`` input.
    """
    source_parameter = f"{parameter}-source"
    normalised = value.strip().lower()
    if not normalised:
        raise MissingParameterError(source_parameter)
    try:
        return TextSource(normalised)
    except ValueError as exc:
        allowed = ", ".join(source.value for source in TextSource)
        msg = (
            f"Invalid value for {source_parameter}: {value!r}. Allowed: {allowed}."
        )
        raise InvalidParameterError(source_parameter, msg) from exc


def _read_file(path: str, *, parameter: str) -> str:
    # Decoded from bytes so line endings survive untouched.
    try:
        return Path(path).read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SourceFileError(parameter, path) from exc


def _read_env(name: str, *, parameter: str, environ: cabc.Mapping[str, str]) -> str:
    try:
        return environ[name]
    except KeyError as exc:
        msg = f"Environment variable '{name}' referenced by {parameter} is not set"
        raise InvalidParameterError(parameter, msg) from exc


def resolve_text(
    source: TextSource,
    value: str,
    *,
    parameter: str,
    environ: cabc.Mapping[str, str],
) -> str:
    """Return the text for ``parameter`` according to ``source``.

    Parameters
    ----------
    source
        How ``value`` should be interpreted.
    value
        The literal text, a file path, or an environment variable name.
    parameter
        Input name used in error messages (``title`` or ``body``).
    environ
        Environment consulted for the ``env`` source.

    Returns
    -------
    str
        The resolved text, verbatim. File contents are not trimmed.

    Raises
    ------
    SourceFileError
        If the ``file`` source cannot be read or is not valid UTF-8.
    InvalidParameterError
        If the ``env`` source names an unset variable.
    """
    match source:
        case TextSource.LITERAL:
            return value
        case TextSource.FILE:
            return _read_file(value, parameter=parameter)
        case TextSource.ENV:
            return _read_env(value, parameter=parameter, environ=environ)
