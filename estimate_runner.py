# estimate_runner.py
from __future__ import annotations

import argparse
import hashlib
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Tuple

import pandas as pd
from tqdm import tqdm

import validator
from prevalence import posterior_frame
from scenarios import PrevalenceScenario, load_requests
from utils.exceptions import PrevalenceError
from utils.sampling_utils import DEFAULT_MAX_ATTEMPTS
from utils.summary_stats import summarise, trim_negligible

_DENSITY_ORDER = ["scenario_id", "test_label", "grid_index",
                  "theta", "prevalence_pct", "density"]

# helpers                                                                     #
def _stable_uint32(token: str, *, global_seed: int | None) -> int:
    """
    Deterministic 32-bit seed per scenario: MD5 of "<global_seed>_<token>",
    so every scenario draws an independent but reproducible stream.
    """
    base_str = f"{global_seed}_{token}" if global_seed is not None else str(token)
    digest   = hashlib.md5(base_str.encode("utf-8")).hexdigest()
    return int(digest[:8], 16)


def _run_single(scn: PrevalenceScenario,
                *,
                global_seed: int | None,
                jobs: int,
                max_attempts: int,
                ci: float | None) -> Tuple[pd.DataFrame, Dict[str, Any]]:
    """Estimate one scenario; returns its density rows and summary row."""
    seed = _stable_uint32(scn.id, global_seed=global_seed)
    req  = scn.request
    try:
        df = posterior_frame(req, seed=seed, jobs=jobs, max_attempts=max_attempts)
    except PrevalenceError as exc:
        raise RuntimeError(f"scenario '{scn.id}' failed: {exc}") from exc

    level   = scn.ci if ci is None else ci
    pdf     = df["density"].to_numpy()
    summary = summarise(pdf, ci=level, weight=req.w)
    shown   = trim_negligible(pdf, ci=level)          # grid slice worth displaying
    logging.info("%s: median %.4f  %g%% CI [%.4f, %.4f]  mode %.4f",
                 scn.id, summary.median, level, summary.lower,
                 summary.upper, summary.mode)

    df.insert(0, "scenario_id", scn.id)
    df.insert(1, "test_label", scn.test_label)
    row = {
        "scenario_id": scn.id,
        "test_label":  scn.test_label,
        "hypothesis":  scn.hypothesis,
        "n": req.n, "k": req.k, "N": req.N, "M": req.M, "w": float(req.w),
        "seed": seed,
        **summary.as_dict(),
        "begin": shown.start, "end": shown.stop,
    }
    return df, row


def run_scenarios(scenarios: List[PrevalenceScenario],
                  *,
                  seed_global: int | None = None,
                  jobs: int = 1,
                  max_attempts: int = DEFAULT_MAX_ATTEMPTS,
                  ci: float | None = None) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Estimate every scenario in order and return the validated
    (density, summary) tables.  *jobs* parallelises each grid integral.
    """
    dens: List[pd.DataFrame] = []
    rows: List[Dict[str, Any]] = []
    for scn in tqdm(scenarios, desc="scenarios"):
        df, row = _run_single(scn, global_seed=seed_global, jobs=jobs,
                              max_attempts=max_attempts, ci=ci)
        dens.append(df)
        rows.append(row)

    density = pd.concat(dens, ignore_index=True)[_DENSITY_ORDER]
    summary = pd.DataFrame(rows)
    return (validator.DENSITY_SCHEMA.validate(density),
            validator.SUMMARY_SCHEMA.validate(summary))

# CLI                                                                         #
def main(argv: List[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Estimate prevalence posteriors for all scenarios.")
    p.add_argument("--config", default="scenarios.yaml",
                   help="Path to YAML with scenario definitions")
    p.add_argument("--out", default="outputs/posteriors.parquet",
                   help="Destination Parquet file for the density table")
    p.add_argument("--summary", default=None,
                   help="Summary CSV (default: <out>.summary.csv)")
    p.add_argument("--jobs", type=int, default=1,
                   help="Parallel workers per grid integral (-1 = all cores, 1 = sequential)")
    p.add_argument("--seed", type=int, default=2025,
                   help="Global deterministic RNG seed")
    p.add_argument("--max-attempts", type=int, default=DEFAULT_MAX_ATTEMPTS,
                   help="Rejection budget per (u, v) sample")
    p.add_argument("--ci", type=float, default=None,
                   help="Credible level in percent (overrides the YAML)")
    p.add_argument("--log-level", default="INFO",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    args = p.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(asctime)s %(levelname)s %(message)s")

    try:
        scenarios = load_requests(args.config)
    except PrevalenceError as exc:
        raise RuntimeError(f"invalid scenario file {args.config}: {exc}") from exc
    scenarios.sort(key=lambda scn: scn.id)           # deterministic job order

    if not scenarios:
        print("[estimate_runner] nothing to run; no scenarios defined.")
        return

    density, summary = run_scenarios(scenarios,
                                     seed_global=args.seed,
                                     jobs=args.jobs,
                                     max_attempts=args.max_attempts,
                                     ci=args.ci)

    out = Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    density.to_parquet(out, index=False)
    summary_path = Path(args.summary) if args.summary else out.with_suffix(".summary.csv")
    summary_path.parent.mkdir(parents=True, exist_ok=True)
    summary.to_csv(summary_path, index=False)

    print(f"[estimate_runner] wrote {len(density):,} rows -> {out}")
    print(f"[estimate_runner] wrote {len(summary):,} summaries -> {summary_path}")
    print(f"[estimate_runner] deterministic seed = {args.seed}")

if __name__ == "__main__":                # entry-point
    try:
        main()
    except RuntimeError as err:
        print(f"ERROR: {err}", file=sys.stderr)
        sys.exit(1)
