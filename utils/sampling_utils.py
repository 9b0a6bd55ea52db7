# utils/sampling_utils.py
# Bounded rejection sampling.  One combinator, reused wherever a draw has to
# be repeated until it satisfies a predicate.

from __future__ import annotations

from typing import Callable, Tuple, TypeVar

from utils.exceptions import SamplingExhaustedError

__all__ = ["sample_until", "DEFAULT_MAX_ATTEMPTS"]

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS: int = 10_000      # per accepted sample


def sample_until(
    draw: Callable[[], T],
    predicate: Callable[[T], bool],
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> Tuple[T, int]:
    """
    Call *draw* until *predicate* accepts its result.

    Parameters
    ----------
    draw : callable
        Zero-argument sampler; consumes the caller's random source.
    predicate : callable
        Acceptance test applied to each candidate.
    max_attempts : int
        Upper bound on the number of calls to *draw* (>= 1).

    Returns
    -------
    (candidate, attempts) : tuple
        The accepted candidate and how many draws it took.

    Raises
    ------
    SamplingExhaustedError
        If no candidate is accepted within *max_attempts* draws.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    for attempt in range(1, max_attempts + 1):
        candidate = draw()
        if predicate(candidate):
            return candidate, attempt

    raise SamplingExhaustedError(
        f"no admissible sample after {max_attempts} attempts",
        attempts=max_attempts,
    )
