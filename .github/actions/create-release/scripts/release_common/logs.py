"""Logging setup and failure reporting for the release helper."""

from __future__ import annotations

import logging
import sys
import typing as typ

__all__ = ["configure_logging", "format_cause_chain", "report_failure"]

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def configure_logging(level: int = logging.INFO) -> None:
    """Send log records to stderr, where the Actions runner collects them."""
    logging.basicConfig(level=level, format=_LOG_FORMAT, stream=sys.stderr)


def _next_cause(exc: BaseException) -> BaseException | None:
    if exc.__cause__ is not None:
        return exc.__cause__
    if exc.__suppress_context__:
        return None
    return exc.__context__


def _describe(exc: BaseException) -> str:
    message = str(exc)
    name = type(exc).__name__
    return f"{name}: {message}" if message else name


def format_cause_chain(exc: BaseException, *, depth: int = 0) -> list[str]:
    """Return ``exc`` and its causes as indented lines, outermost first.

    Examples
    --------
    >>> try:
    ...     try:
    ...         raise KeyError("id")
    ...     except KeyError as inner:
    ...         raise ValueError("bad payload") from inner
    ... except ValueError as outer:
    ...     format_cause_chain(outer)
    ['ValueError: bad payload', "  caused by: KeyError: 'id'"]
    """
    prefix = "  " * depth + ("caused by: " if depth else "")
    lines = [f"{prefix}{_describe(exc)}"]
    cause = _next_cause(exc)
    if cause is None:
        return lines
    return lines + format_cause_chain(cause, depth=depth + 1)


def _escape_command_value(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def report_failure(exc: BaseException, *, stream: typ.TextIO | None = None) -> None:
    """Log the cause chain of ``exc`` and emit a workflow error annotation."""
    for line in format_cause_chain(exc):
        logger.error(line)
    target = stream if stream is not None else sys.stderr
    message = _escape_command_value(str(exc))
    print(f"::error title=Release Failure::{message}", file=target)
