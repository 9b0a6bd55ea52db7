# scenarios.py
from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from itertools import product
from pathlib import Path
from typing import Any, Dict, Final, List

import yaml

from utils.estimation_params import EstimationRequest
from utils.exceptions import InvalidInputError

# keys a scenario row may carry besides its `estimate` block
_ROW_KEYS: Final = {"id", "test_label", "hypothesis", "tags", "ci", "estimate"}

# data-class consumed by estimate_runner
@dataclass(frozen=True, slots=True)
class PrevalenceScenario:
    id:         str
    request:    EstimationRequest
    ci:         float = 95.0              # credible level (%) for the summary

    test_label: str = ""
    hypothesis: str = ""
    tags:       tuple[str, ...] = ()

# public API
def load_requests(yaml_path: str | Path = "scenarios.yaml") -> List[PrevalenceScenario]:
    """
    Parse a scenario YAML and return fully-validated PrevalenceScenario
    objects.  Layout::

        defaults:
          ci: 95
          estimate: {N: 1000, M: 1000, a_u: 1, b_u: 1, a_v: 1, b_v: 1}
          matrix:                       # optional Cartesian grid
            base: {n: 100, n_u: 500, n_v: 500, k_v: 480}
            axes: {k: [5, 10, 20], k_u: [0, 5]}
        scenarios:
          - id: serosurvey
            estimate: {n: 100, k: 10, n_u: 500, k_u: 5, n_v: 500, k_v: 480}

    Every `estimate` block is merged over `defaults.estimate`; unknown keys
    raise InvalidInputError.
    """
    raw: Dict[str, Any] = yaml.safe_load(Path(yaml_path).read_text()) or {}
    defaults = raw.get("defaults") or {}
    est_defaults = defaults.get("estimate") or {}
    ci_default = float(defaults.get("ci", 95.0))

    out: List[PrevalenceScenario] = []
    seen: set[str] = set()
    for row in raw.get("scenarios") or []:
        scn = _build_scenario(row, est_defaults, ci_default)
        if scn.id in seen:
            raise InvalidInputError(f"duplicate scenario id '{scn.id}'")
        seen.add(scn.id)
        out.append(scn)

    for auto in generate_matrix(defaults):
        out.append(_build_scenario(auto, est_defaults, ci_default))
    return out

def generate_matrix(defaults: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Expand `defaults['matrix']` into raw scenario rows that mimic the manual
    YAML records.  Every combination of the `axes` values is laid over
    `base`.
    """
    if "matrix" not in defaults:          # nothing to do
        return []

    matrix = defaults["matrix"] or {}
    base   = dict(matrix.get("base") or {})
    axes   = OrderedDict(matrix.get("axes") or {})
    if not axes:
        return []
    keys, values = list(axes.keys()), list(axes.values())

    rows: List[Dict[str, Any]] = []
    for combo in product(*values):
        spec  = dict(zip(keys, combo))
        label = "-".join(f"{key}={val}" for key, val in spec.items())
        rows.append(
            {
                "id": f"auto-{len(rows):05d}",
                "test_label": label,
                "hypothesis": f"How does the prevalence posterior move with {label}?",
                "tags": ("matrix",),
                "estimate": {**base, **spec},
            }
        )
    return rows

# internal helpers
def _build_scenario(row: Dict[str, Any],
                    est_defaults: Dict[str, Any],
                    ci_default: float) -> PrevalenceScenario:
    if "id" not in row:
        raise InvalidInputError(f"scenario row without 'id': {row!r}")
    unknown = sorted(set(row) - _ROW_KEYS)
    if unknown:
        raise InvalidInputError(
            f"scenario '{row['id']}': unknown key(s) {', '.join(unknown)}"
        )

    cfg = {**est_defaults, **(row.get("estimate") or {})}
    try:
        request = EstimationRequest.from_mapping(cfg)
    except InvalidInputError as exc:
        raise InvalidInputError(f"scenario '{row['id']}': {exc}") from exc

    return PrevalenceScenario(
        id=str(row["id"]),
        request=request,
        ci=float(row.get("ci", ci_default)),
        test_label=row.get("test_label", ""),
        hypothesis=row.get("hypothesis", ""),
        tags=tuple(row.get("tags", ())),
    )
