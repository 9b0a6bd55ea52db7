from __future__ import annotations

import numpy as np
import pandera.pandas as pa
from pandera.pandas import Column, Check

# DataFrameSchema

DENSITY_SCHEMA = pa.DataFrameSchema(
    {
        # core identifiers
        "scenario_id":    Column(str, nullable=False),
        "test_label":     Column(str, nullable=False),

        # grid
        "grid_index":     Column(int,   Check.ge(0)),
        "theta":          Column(float, Check.in_range(0, 1)),
        "prevalence_pct": Column(float, Check.in_range(0, 100)),

        # posterior density, normalised per scenario
        "density":        Column(float, [Check.ge(0), Check(lambda s: np.isfinite(s), error="non-finite density")]),
    },
    coerce=True,
    strict=False,              # allow extra diagnostic columns
    index=pa.Index(int),
)

SUMMARY_SCHEMA = pa.DataFrameSchema(
    {
        "scenario_id": Column(str, nullable=False, unique=True),
        "test_label":  Column(str, nullable=False),
        "hypothesis":  Column(str, nullable=False),
        "n":           Column(int, Check.ge(0)),
        "k":           Column(int, Check.ge(0)),
        "N":           Column(int, Check.ge(1)),
        "M":           Column(int, Check.ge(0)),
        "w":           Column(float, Check.gt(0)),
        "seed":        Column(int, Check.ge(0)),

        "ci":          Column(float, [Check.gt(0), Check.lt(100)]),
        "lower":       Column(float, Check.ge(0)),
        "upper":       Column(float, Check.ge(0)),
        "median":      Column(float, Check.ge(0)),
        "mode":        Column(float, Check.ge(0)),

        # displayable grid slice [begin, end) after trimming negligible tails
        "begin":       Column(int, Check.ge(0)),
        "end":         Column(int, Check.ge(1)),
    },
    checks=[
        Check(lambda df: df["lower"] <= df["median"], error="lower > median"),
        Check(lambda df: df["median"] <= df["upper"], error="median > upper"),
        Check(lambda df: df["begin"] < df["end"], error="empty display slice"),
        Check(lambda df: df["end"] <= df["M"] + 1, error="display slice past grid"),
    ],
    coerce=True,
    strict=False,
    index=pa.Index(int),
)

"""
1. What the schemas do

DENSITY_SCHEMA describes the long-format density table written by
estimate_runner: one row per (scenario, grid point).  theta must lie in
[0, 1], prevalence_pct in [0, 100] and the density must be a finite,
non-negative number.

SUMMARY_SCHEMA describes the per-scenario summary table: credible bounds,
median and mode of every posterior, next to the counts that produced it.
The frame-level checks enforce lower <= median <= upper and a non-empty
display slice [begin, end) inside the grid.

2. How to use them

    import validator
    validator.DENSITY_SCHEMA.validate(df)

Pandera raises a SchemaError naming the offending column and rows.
Because strict=False, extra columns may be added without touching the
schema.
"""
