# utils/grid_integrator.py
# ────────────────────────────────────────────────────────────────────────────
# Monte Carlo estimate of the prevalence density on a uniform θ-grid.
#
#   θ_j      = j / M                                    j = 0 … M
#   p_ij     = u_i + θ_j (v_i - u_i)
#   raw_j    = Σ_i  BetaPdf(p_ij; k+1, n-k+1) · duv_i   (compensated)
#   pdf_j    = raw_j / (Σ_j raw_j / (M+1))              (compensated total)
#
# so that  Σ_j pdf_j / (M+1) == 1.
#
# Grid points are independent of each other and only read the (immutable)
# sample arrays, so the grid is cut into contiguous chunks that may run on
# separate joblib workers.  Inside a chunk the sum over samples is still
# sequential per grid point: each sample adds one vector of pdf values to
# an element-wise CompensatedSum.  Chunking therefore never changes the
# order of additions for any θ_j.
# ────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import logging
import math
import threading
from typing import List, Sequence

import numpy as np
from joblib import Parallel, delayed, effective_n_jobs
from tqdm import tqdm

from utils.beta_utils import beta_pdf
from utils.compensated_sum import CompensatedSum, compensated_total
from utils.exceptions import EstimationCancelledError, IllPosedEstimateError
from utils.validation_sampler import ValidationSamples

__all__ = [
    "prevalence_grid",
    "raw_density",
    "normalise_density",
    "integrate_grid",
    "DEFAULT_CHUNK_SIZE",
]

DEFAULT_CHUNK_SIZE: int = 128          # grid points per work unit


def prevalence_grid(M: int) -> np.ndarray:
    """θ_j = j/M for j = 0 … M; a single point θ = 0 when M == 0."""
    if M < 0:
        raise ValueError("M must be >= 0")
    if M == 0:
        return np.zeros(1, dtype=float)
    return np.arange(M + 1, dtype=float) / M


def _integrate_chunk(
    theta: np.ndarray,
    u: np.ndarray,
    v: np.ndarray,
    duv: np.ndarray,
    a: float,
    b: float,
) -> np.ndarray:
    """Un-normalised density on one slice of the grid."""
    acc = CompensatedSum(theta.shape)
    for u_i, v_i, duv_i in zip(u, v, duv):
        p = u_i + theta * (v_i - u_i)
        acc.add(beta_pdf(p, a, b) * duv_i)
    return acc.total


def _chunk_bounds(size: int, chunk_size: int) -> List[slice]:
    return [slice(lo, min(lo + chunk_size, size)) for lo in range(0, size, chunk_size)]


def _check_cancel(cancel: threading.Event | None, done: int, size: int) -> None:
    if cancel is not None and cancel.is_set():
        logging.warning("grid integration cancelled after %d / %d grid points",
                        done, size)
        raise EstimationCancelledError(
            f"estimation cancelled after {done} of {size} grid points"
        )


def raw_density(
    samples: ValidationSamples,
    *,
    n: int,
    k: int,
    M: int,
    jobs: int = 1,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    cancel: threading.Event | None = None,
    progress: bool = False,
) -> np.ndarray:
    """
    Un-normalised density values at the M+1 grid points.

    Parameters
    ----------
    samples : ValidationSamples
        Output of the validation sampler.
    n, k : int
        Survey size and observed positives; the likelihood is Beta(k+1, n-k+1).
    M : int
        Grid resolution.
    jobs : int
        joblib workers (1 = sequential, -1 = all cores).
    chunk_size : int
        Grid points per work unit; cancellation is checked between units.
    cancel : threading.Event, optional
        Set it from another thread to abort with EstimationCancelledError.
    progress : bool
        Show a tqdm bar over grid chunks.
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")

    theta  = prevalence_grid(M)
    a, b   = k + 1.0, n - k + 1.0
    chunks = _chunk_bounds(theta.size, chunk_size)
    out    = np.empty(theta.size, dtype=float)
    arrays = (np.asarray(samples.u), np.asarray(samples.v), np.asarray(samples.duv))

    logging.debug("grid integrator: %d grid points × %d samples in %d chunk(s), jobs=%s",
                  theta.size, len(samples), len(chunks), jobs)

    bar = tqdm(total=theta.size, desc="θ-grid", unit="pt", disable=not progress)
    try:
        if jobs == 1:
            for sl in chunks:
                _check_cancel(cancel, sl.start, theta.size)
                out[sl] = _integrate_chunk(theta[sl], *arrays, a, b)
                bar.update(sl.stop - sl.start)
        else:
            # dispatch in waves so the cancel flag is seen between them
            wave = max(1, effective_n_jobs(jobs)) * 2
            with Parallel(n_jobs=jobs, backend="loky") as parallel:
                for start in range(0, len(chunks), wave):
                    batch: Sequence[slice] = chunks[start:start + wave]
                    _check_cancel(cancel, batch[0].start, theta.size)
                    results = parallel(
                        delayed(_integrate_chunk)(theta[sl], *arrays, a, b)
                        for sl in batch
                    )
                    for sl, values in zip(batch, results):
                        out[sl] = values
                    bar.update(batch[-1].stop - batch[0].start)
    finally:
        bar.close()
    return out


def normalise_density(raw: np.ndarray) -> np.ndarray:
    """
    Scale *raw* so that its mean over the grid is 1.

    Raises
    ------
    IllPosedEstimateError
        If the compensated total is zero, negative or non-finite.
    """
    raw   = np.asarray(raw, dtype=float)
    total = compensated_total(raw)
    if not math.isfinite(total) or total <= 0.0:
        raise IllPosedEstimateError(
            f"posterior density cannot be normalised (grid total = {total!r})"
        )
    return raw / (total / raw.size)


def integrate_grid(
    samples: ValidationSamples,
    *,
    n: int,
    k: int,
    M: int,
    jobs: int = 1,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    cancel: threading.Event | None = None,
    progress: bool = False,
) -> np.ndarray:
    """Normalised posterior density on the M+1 point grid; see raw_density()."""
    raw = raw_density(samples, n=n, k=k, M=M, jobs=jobs, chunk_size=chunk_size,
                      cancel=cancel, progress=progress)
    return normalise_density(raw)
