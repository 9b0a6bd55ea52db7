# utils/compensated_sum.py
# ────────────────────────────────────────────────────────────────────────────
# Kahan–Babuška–Neumaier compensated summation.
#
#   value        – running (rounded) sum
#   compensation – low-order bits lost by each addition so far
#   total        – value + compensation, the corrected sum
#
# The accumulator works on Python floats or element-wise on numpy arrays of
# a fixed shape.  In the array case every element is an independent,
# strictly sequential compensated sum; the vectorisation only runs many of
# those sums side by side.
#
# Plain accumulation is not an acceptable substitute: the grid integral adds
# N terms of very different magnitude per grid point and the rounding error
# of a naive sum shows up in the density tails, which is where credible
# intervals are read off.
# ────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

from typing import Iterable, Union

import numpy as np

__all__ = ["CompensatedSum", "compensated_total"]

Number = Union[float, np.ndarray]


class CompensatedSum:
    """Running sum with a Neumaier error term."""

    __slots__ = ("value", "compensation")

    def __init__(self, shape: int | tuple[int, ...] | None = None) -> None:
        if shape is None:
            self.value: Number        = 0.0
            self.compensation: Number = 0.0
        else:
            self.value        = np.zeros(shape, dtype=float)
            self.compensation = np.zeros(shape, dtype=float)

    def add(self, x: Number) -> None:
        """Add *x* (scalar, or array matching the accumulator's shape)."""
        s = self.value
        t = s + x
        if isinstance(t, np.ndarray):
            big = np.abs(s) >= np.abs(x)
            # the smaller operand is the one whose low bits got rounded away
            with np.errstate(invalid="ignore"):     # inf - inf, total goes nan
                err = np.where(big, (s - t) + x, (x - t) + s)
            self.compensation = self.compensation + err
        else:
            if abs(s) >= abs(x):
                self.compensation += (s - t) + x
            else:
                self.compensation += (x - t) + s
        self.value = t

    @property
    def total(self) -> Number:
        return self.value + self.compensation

    def __repr__(self) -> str:                               # pragma: no cover
        return f"CompensatedSum(value={self.value!r}, compensation={self.compensation!r})"


def compensated_total(values: Iterable[float]) -> float:
    """Compensated sum of a scalar sequence, visited in order."""
    acc = CompensatedSum()
    for x in values:
        acc.add(float(x))
    return float(acc.total)
