# prevalence.py
# ────────────────────────────────────────────────────────────────────────────
# Posterior density of disease prevalence θ under an imperfect test.
#
# Model
#   k | θ, u, v   ~ Binomial(n, p),     p = u + θ (v - u)
#   k_u | u       ~ Binomial(n_u, u)    false positives among known negatives
#   k_v | v       ~ Binomial(n_v, v)    true positives among known positives
#   u ~ Beta(a_u, b_u),  v ~ Beta(a_v, b_v),  θ ~ Uniform(0, 1),  u < v
#
# The posterior of θ integrates u and v out.  Stage 1 draws (u, v) from
# their validation posteriors and attaches the change-of-variables factor
# duv; stage 2 evaluates the Monte Carlo average on the θ-grid and
# normalises it.  Stage 2 needs every sample from stage 1, so the two
# stages always run in that order.
# ────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping

import numpy as np
import pandas as pd
from numpy.random import Generator

from utils.estimation_params import EstimationRequest
from utils.grid_integrator import DEFAULT_CHUNK_SIZE, integrate_grid, prevalence_grid
from utils.sampling_utils import DEFAULT_MAX_ATTEMPTS
from utils.validation_sampler import draw_validation_samples

__all__ = ["posterior", "posterior_frame", "EstimationRequest"]


def _as_request(request: EstimationRequest | Mapping[str, Any]) -> EstimationRequest:
    if isinstance(request, EstimationRequest):
        return request
    return EstimationRequest.from_mapping(request)


def posterior(
    request: EstimationRequest | Mapping[str, Any],
    *,
    seed: int | None = None,
    rng: Generator | None = None,
    jobs: int = 1,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    cancel: threading.Event | None = None,
    progress: bool = False,
) -> np.ndarray:
    """
    Posterior probability density of prevalence on θ = 0, 1/M, …, 1.

    Parameters
    ----------
    request : EstimationRequest or mapping
        Survey and validation counts plus precision knobs.  A mapping is
        validated through ``EstimationRequest.from_mapping``.
    seed : int, optional
        Seed for a fresh ``numpy.random.default_rng``; ignored if *rng* given.
    rng : numpy.random.Generator, optional
        Random source to consume.
    jobs : int
        joblib workers for the grid integral (1 = sequential).
    chunk_size : int
        Grid points per work unit / cancellation check.
    max_attempts : int
        Rejection budget per (u, v) sample.
    cancel : threading.Event, optional
        Abort flag checked between grid chunks.
    progress : bool
        tqdm progress bar over the grid.

    Returns
    -------
    numpy.ndarray
        M+1 non-negative values with ``pdf.sum() / (M+1) == 1``.

    Raises
    ------
    InvalidInputError, SamplingExhaustedError, IllPosedEstimateError,
    EstimationCancelledError
    """
    req = _as_request(request)
    if rng is None:
        rng = np.random.default_rng(seed)

    logging.debug("posterior: n=%d k=%d n_u=%d k_u=%d n_v=%d k_v=%d N=%d M=%d",
                  req.n, req.k, req.n_u, req.k_u, req.n_v, req.k_v, req.N, req.M)

    samples = draw_validation_samples(req, rng, max_attempts=max_attempts)
    return integrate_grid(
        samples,
        n=req.n,
        k=req.k,
        M=req.M,
        jobs=jobs,
        chunk_size=chunk_size,
        cancel=cancel,
        progress=progress,
    )


def posterior_frame(
    request: EstimationRequest | Mapping[str, Any],
    **kwargs: Any,
) -> pd.DataFrame:
    """
    ``posterior()`` as a long-format table.

    Columns: grid_index, theta, prevalence_pct (θ scaled by the population
    weighting *w* and capped at 100) and density.
    """
    req   = _as_request(request)
    pdf   = posterior(req, **kwargs)
    theta = prevalence_grid(req.M)
    return pd.DataFrame({
        "grid_index":     np.arange(theta.size, dtype="int64"),
        "theta":          theta,
        "prevalence_pct": np.minimum(100.0 * theta * req.w, 100.0),
        "density":        pdf,
    })
