"""Bounded retry with truncated exponential backoff and jitter."""

from __future__ import annotations

import dataclasses
import logging
import random
import time
import typing as typ

from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
)
from tenacity.wait import wait_base

if typ.TYPE_CHECKING:
    import collections.abc as cabc

__all__ = [
    "RandomSource",
    "RetryOutcome",
    "RetryPolicy",
    "backoff_delay",
    "retry_with_backoff",
]

T = typ.TypeVar("T")

logger = logging.getLogger(__name__)

_JITTER = random.SystemRandom()


class RandomSource(typ.Protocol):
    """Protocol describing RNG objects that provide ``random``."""

    def random(self) -> float:
        """Return a float in ``[0.0, 1.0)``."""


@dataclasses.dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Attempt budget and backoff ceiling for a retried operation."""

    attempts: int = 4
    max_delay: float = 4.0


@dataclasses.dataclass(frozen=True, slots=True)
class RetryOutcome(typ.Generic[T]):
    """Result of :func:`retry_with_backoff`.

    Exactly one of ``value`` and ``error`` is meaningful: ``error`` is the
    exception raised by the last attempt when every attempt failed.
    """

    attempts: int
    value: T | None = None
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def backoff_delay(attempt: int, max_delay: float, jitter: float) -> float:
    """Return the sleep in seconds after the zero-indexed ``attempt`` failed.

    The delay is ``(2**attempt + jitter)`` seconds rounded to whole
    milliseconds and capped at ``max_delay``.
    """
    milliseconds = round((2**attempt + jitter) * 1000)
    return min(max_delay, milliseconds / 1000)


class _JitteredBackoff(wait_base):
    """Wait strategy computing :func:`backoff_delay` for each failure."""

    def __init__(self, *, max_delay: float, rng: RandomSource) -> None:
        super().__init__()
        self._max_delay = max(max_delay, 0.0)
        self._rng = rng

    def __call__(self, retry_state: RetryCallState) -> float:
        attempt = retry_state.attempt_number - 1
        return backoff_delay(attempt, self._max_delay, self._rng.random())


def _log_retry(description: str) -> cabc.Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "Attempt %d of %s failed: %s; retrying in %.3fs",
            retry_state.attempt_number,
            description,
            error,
            delay,
        )

    return before_sleep


def retry_with_backoff(
    operation: cabc.Callable[[], T],
    policy: RetryPolicy | None = None,
    *,
    description: str = "operation",
    sleep: cabc.Callable[[float], None] = time.sleep,
    rng: RandomSource | None = None,
) -> RetryOutcome[T]:
    """Call ``operation`` until it succeeds or the attempt budget runs out.

    Parameters
    ----------
    operation
        Zero-argument callable to run. Any :class:`Exception` it raises
        counts as a failed attempt.
    policy
        Attempt budget and delay ceiling; defaults to four attempts capped at
        four seconds.
    description
        Label used in retry log messages.
    sleep
        Function used to wait between attempts. No wait follows the final
        attempt.
    rng
        Source of jitter; defaults to :class:`random.SystemRandom`.

    Returns
    -------
    RetryOutcome
        The value of the successful attempt, or the last attempt's error.
        Failures are returned rather than raised so the caller can decide on
        compensating actions.
    """
    policy = policy or RetryPolicy()
    attempts = 0

    def attempt() -> T:
        nonlocal attempts
        attempts += 1
        return operation()

    retrying = Retrying(
        stop=stop_after_attempt(max(policy.attempts, 1)),
        wait=_JitteredBackoff(
            max_delay=policy.max_delay, rng=_JITTER if rng is None else rng
        ),
        retry=retry_if_exception_type(Exception),
        before_sleep=_log_retry(description),
        sleep=sleep,
        reraise=False,
    )
    try:
        value = retrying(attempt)
    except RetryError as exc:
        error = exc.last_attempt.exception()
        if not isinstance(error, Exception):  # pragma: no cover - tenacity contract
            raise
        return RetryOutcome(attempts=attempts, error=error)
    return RetryOutcome(attempts=attempts, value=value)
