# utils/validation_sampler.py
# ────────────────────────────────────────────────────────────────────────────
# Monte Carlo draws of the test's error rates.
#
#   u ~ Beta(k_u + a_u, n_u - k_u + b_u)      false-positive rate
#   v ~ Beta(k_v + a_v, n_v - k_v + b_v)      true-positive rate
#
# Both are redrawn together until u < v.  Each accepted pair carries the
# Jacobian factor
#
#   duv = (v - u) / (I_v(k+1, n-k+1) - I_u(k+1, n-k+1))
#
# which maps the linear interpolation p = u + θ(v - u) back onto θ in the
# grid integrator.  The incomplete betas are taken in the complementary form
# I_{1-x}(n-k+1, k+1): when k/n is large both direct values sit next to 1
# and their difference would be pure rounding noise.
#
# A pair whose Jacobian is not finite and positive (Bu == Bv after rounding)
# is rejected like a pair with u >= v and drawn again.
# ────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from numpy.random import Generator

from utils.beta_utils import regularized_ibeta, sample_beta
from utils.estimation_params import EstimationRequest
from utils.exceptions import SamplingExhaustedError
from utils.sampling_utils import DEFAULT_MAX_ATTEMPTS, sample_until

__all__ = ["ValidationSamples", "draw_validation_samples"]

# (u, v, duv)
_Pair = Tuple[float, float, float]


@dataclass(slots=True, frozen=True)
class ValidationSamples:
    """
    Three parallel arrays of length N; index i is one ValidationSample.
    The arrays are flagged read-only so the integrator workers can share them.
    """
    u:   np.ndarray
    v:   np.ndarray
    duv: np.ndarray

    def __post_init__(self) -> None:
        if not (self.u.shape == self.v.shape == self.duv.shape) or self.u.ndim != 1:
            raise ValueError("u, v and duv must be 1-D arrays of identical length")
        for arr in (self.u, self.v, self.duv):
            arr.setflags(write=False)

    def __len__(self) -> int:
        return int(self.u.shape[0])

    @classmethod
    def from_arrays(cls, u, v, duv) -> "ValidationSamples":
        return cls(
            u=np.array(u, dtype=float),
            v=np.array(v, dtype=float),
            duv=np.array(duv, dtype=float),
        )


def _jacobian(u: float, v: float, n: int, k: int) -> float:
    """duv for one pair; nan when the incomplete-beta difference vanishes."""
    Bu = float(regularized_ibeta(1.0 - u, n - k + 1.0, k + 1.0))
    Bv = float(regularized_ibeta(1.0 - v, n - k + 1.0, k + 1.0))
    dB = Bu - Bv
    if dB == 0.0:
        return math.nan
    return (v - u) / dB


def _admissible(pair: _Pair) -> bool:
    u, v, duv = pair
    return u < v and math.isfinite(duv) and duv > 0.0


def draw_validation_samples(
    request: EstimationRequest,
    rng: Generator,
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> ValidationSamples:
    """
    Draw ``request.N`` admissible (u, v, duv) triples.

    Parameters
    ----------
    request : EstimationRequest
        Counts, priors and sample size.
    rng : numpy.random.Generator
        Random source; the only state consumed.
    max_attempts : int
        Rejection budget *per sample*.

    Raises
    ------
    SamplingExhaustedError
        If any single sample needs more than *max_attempts* draws.
    """
    n, k = request.n, request.k
    a_u, b_u = request.u_shape
    a_v, b_v = request.v_shape

    def _draw() -> _Pair:
        u = sample_beta(rng, a_u, b_u)
        v = sample_beta(rng, a_v, b_v)
        if u >= v:                      # skip the incomplete betas
            return u, v, math.nan
        return u, v, _jacobian(u, v, n, k)

    us   = np.empty(request.N, dtype=float)
    vs   = np.empty(request.N, dtype=float)
    duvs = np.empty(request.N, dtype=float)
    draws = 0
    for i in range(request.N):
        try:
            (u, v, duv), attempts = sample_until(_draw, _admissible,
                                                 max_attempts=max_attempts)
        except SamplingExhaustedError as exc:
            raise SamplingExhaustedError(
                f"sample {i}: no (u, v) with u < v and finite Jacobian after "
                f"{max_attempts} attempts (u ~ Beta({a_u:g}, {b_u:g}), "
                f"v ~ Beta({a_v:g}, {b_v:g}))",
                attempts=exc.attempts,
                index=i,
            ) from exc
        us[i], vs[i], duvs[i] = u, v, duv
        draws += attempts

    logging.debug("validation sampler: %d samples from %d draws (acceptance %.3f)",
                  request.N, draws, request.N / draws)
    return ValidationSamples(u=us, v=vs, duv=duvs)
