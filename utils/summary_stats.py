# utils/summary_stats.py
"""
Credible interval, median and mode of a gridded prevalence density.

The density is read as L = M+1 equal cells.  With the cumulative mass

    c_0 = 0,   c_i = Σ_{j<i} pdf_j / L

a quantile q sits at the first index i with c_i > q, moved back into the
preceding cell by linear interpolation.  Positions are in cell units and
are mapped to prevalence as  position · w / L.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np

__all__ = ["PosteriorSummary", "summarise", "trim_negligible"]


@dataclass(slots=True, frozen=True)
class PosteriorSummary:
    ci:     float     # credible level in percent
    lower:  float     # prevalence fractions, population-weighted
    upper:  float
    median: float
    mode:   float

    def as_dict(self) -> Dict[str, float]:
        return {"ci": self.ci, "lower": self.lower, "upper": self.upper,
                "median": self.median, "mode": self.mode}


def _crossing(cumsum: np.ndarray, target: float) -> float:
    """Interpolated position where *cumsum* first exceeds *target*."""
    above = np.flatnonzero(cumsum > target)
    if above.size == 0:
        return float(cumsum.size - 1)
    i = int(above[0])
    if i == 0:
        return 0.0
    return i - (cumsum[i] - target) / (cumsum[i] - cumsum[i - 1])


def _positions(pdf: np.ndarray, ci: float) -> Tuple[float, float, float, int]:
    alpha  = 1.0 - ci / 100.0
    cumsum = np.concatenate(([0.0], np.cumsum(pdf / pdf.size)))
    return (
        _crossing(cumsum, alpha / 2.0),
        _crossing(cumsum, 1.0 - alpha / 2.0),
        _crossing(cumsum, 0.5),
        int(np.argmax(pdf)),
    )


def summarise(pdf, *, ci: float = 95.0, weight: float = 1.0) -> PosteriorSummary:
    """
    Summary statistics of a normalised density.

    Parameters
    ----------
    pdf : array-like
        Density values on the uniform grid (length M+1, mean ≈ 1).
    ci : float
        Credible level in percent, 0 < ci < 100.
    weight : float
        Population weighting *w*; scales every reported prevalence.
    """
    if not (0.0 < ci < 100.0):
        raise ValueError("ci must be in (0, 100)")
    pdf = np.asarray(pdf, dtype=float)
    if pdf.ndim != 1 or pdf.size == 0:
        raise ValueError("pdf must be a non-empty 1-D array")

    lower, upper, median, mode = _positions(pdf, ci)
    scale = weight / pdf.size
    return PosteriorSummary(
        ci=float(ci),
        lower=float(lower * scale),
        upper=float(upper * scale),
        median=float(median * scale),
        mode=float(mode * scale),
    )


def trim_negligible(pdf, *, ci: float = 95.0, rel_threshold: float = 1e-3) -> slice:
    """
    Slice of *pdf* without the leading / trailing cells whose density is
    below ``rel_threshold · max(pdf)`` and that lie outside the credible
    interval.
    """
    pdf = np.asarray(pdf, dtype=float)
    lower, upper, _, _ = _positions(pdf, ci)
    thresh = pdf.max() * rel_threshold
    begin, end = 0, pdf.size - 1
    while begin < pdf.size and begin < lower and pdf[begin] < thresh:
        begin += 1
    while end > begin and end > upper and pdf[end] < thresh:
        end -= 1
    return slice(begin, end + 1)
