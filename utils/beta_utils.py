# utils/beta_utils.py

# Beta-distribution primitives used by the sampler and the grid integrator.
# All three follow the standard Beta(a, b) parameterisation; the incomplete
# beta is regularised so that I_x(a, b) is the Beta(a, b) CDF at x.

from __future__ import annotations

import numpy as np
from numpy.random import Generator
from scipy import special, stats

__all__ = ["sample_beta", "beta_pdf", "regularized_ibeta"]


def sample_beta(rng: Generator, a: float, b: float) -> float:
    """One draw from Beta(a, b)."""
    return float(rng.beta(a, b))


def beta_pdf(x: np.ndarray | float, a: float, b: float) -> np.ndarray | float:
    """
    Beta(a, b) density at *x*; vectorised over *x*.

    Points outside [0, 1] evaluate to 0.
    """
    return stats.beta.pdf(x, a, b)


def regularized_ibeta(x: np.ndarray | float, a: float, b: float) -> np.ndarray | float:
    """
    Regularised incomplete beta I_x(a, b) in [0, 1].

    Callers needing I_u(a, b) for u close to 1 should evaluate the
    complement 1 - I_{1-u}(b, a) instead; differences of two values near 1
    lose every significant digit otherwise.
    """
    return special.betainc(a, b, x)
