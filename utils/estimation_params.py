# utils/estimation_params.py
"""
EstimationRequest

Immutable container for every knob of one prevalence estimation:

    • n, k          – sampled population size / observed positives
    • n_u, k_u      – known-negative validation trial (false positives k_u)
    • n_v, k_v      – known-positive validation trial (true positives k_v)
    • N             – Monte Carlo sample count for (u, v)
    • M             – prevalence grid resolution (M+1 points on [0, 1])
    • a_u, b_u      – Beta prior on the false-positive rate u
    • a_v, b_v      – Beta prior on the true-positive rate v
    • w             – population weighting, display scaling only

The dataclass is *frozen* so a request cannot drift between the sampler
and the integrator.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, fields
from typing import Any, Mapping, Tuple

from utils.exceptions import InvalidInputError

__all__ = ["EstimationRequest"]

_COUNT_FIELDS = ("n", "k", "n_u", "k_u", "n_v", "k_v")
_SHAPE_FIELDS = ("a_u", "b_u", "a_v", "b_v", "w")


@dataclass(slots=True, frozen=True)
class EstimationRequest:
    # survey
    n:   int                  # subjects tested        n >= 0
    k:   int                  # tested positive        0 <= k <= n

    # validation trials
    n_u: int                  # known negatives        n_u >= 0
    k_u: int                  # false positives        0 <= k_u <= n_u
    n_v: int                  # known positives        n_v >= 0
    k_v: int                  # true positives         0 <= k_v <= n_v

    # numerical precision
    N:   int   = 1000         # (u, v) samples         N >= 1
    M:   int   = 1000         # grid intervals         M >= 0

    # validation priors, uniform by default
    a_u: float = 1.0
    b_u: float = 1.0
    a_v: float = 1.0
    b_v: float = 1.0

    # population weighting (presentation only)
    w:   float = 1.0

    def __post_init__(self) -> None:
        for name in _COUNT_FIELDS + ("N", "M"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise InvalidInputError(f"{name} must be an integer; got {value!r}")
            if value < 0:
                raise InvalidInputError(f"{name} must be >= 0; got {value}")
        if self.k > self.n:
            raise InvalidInputError(f"k must not exceed n ({self.k} > {self.n})")
        if self.k_u > self.n_u:
            raise InvalidInputError(f"k_u must not exceed n_u ({self.k_u} > {self.n_u})")
        if self.k_v > self.n_v:
            raise InvalidInputError(f"k_v must not exceed n_v ({self.k_v} > {self.n_v})")
        if self.N < 1:
            raise InvalidInputError("N must be >= 1")

        for name in _SHAPE_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise InvalidInputError(f"{name} must be a real number; got {value!r}")
            if not math.isfinite(value) or value <= 0.0:
                raise InvalidInputError(f"{name} must be finite and > 0; got {value}")

    # beta shapes of the (u, v) posteriors
    @property
    def u_shape(self) -> Tuple[float, float]:
        return (self.k_u + self.a_u, self.n_u - self.k_u + self.b_u)

    @property
    def v_shape(self) -> Tuple[float, float]:
        return (self.k_v + self.a_v, self.n_v - self.k_v + self.b_v)

    @classmethod
    def from_mapping(cls, cfg: Mapping[str, Any]) -> "EstimationRequest":
        """
        Build a request from a loosely-typed mapping (YAML row, query dict).
        Unknown keys are rejected rather than silently ignored.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(cfg) - known)
        if unknown:
            raise InvalidInputError(f"unknown estimation parameter(s): {', '.join(unknown)}")
        missing = sorted(name for name in _COUNT_FIELDS if name not in cfg)
        if missing:
            raise InvalidInputError(f"missing estimation parameter(s): {', '.join(missing)}")
        return cls(**dict(cfg))
