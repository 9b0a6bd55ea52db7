from pathlib import Path
import textwrap

import pytest

from scenarios import PrevalenceScenario, generate_matrix, load_requests
from utils.exceptions import InvalidInputError

_REPO = Path(__file__).resolve().parent.parent


def _write(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "scenarios.yaml"
    path.write_text(textwrap.dedent(body))
    return path


def test_defaults_are_merged(tmp_path):
    path = _write(tmp_path, """
        defaults:
          ci: 90
          estimate: {N: 50, M: 20, b_u: 3}
        scenarios:
          - id: one
            test_label: t1
            estimate: {n: 10, k: 2, n_u: 5, k_u: 0, n_v: 5, k_v: 5, M: 40}
    """)
    (scn,) = load_requests(path)
    assert isinstance(scn, PrevalenceScenario)
    assert scn.id == "one" and scn.test_label == "t1"
    assert scn.ci == 90.0
    assert scn.request.N == 50
    assert scn.request.M == 40                     # row overrides defaults
    assert scn.request.b_u == 3
    assert scn.request.a_u == 1.0


def test_matrix_expansion():
    defaults = {
        "matrix": {
            "base": {"n": 100, "n_u": 50, "k_u": 1, "n_v": 50},
            "axes": {"k": [5, 10], "k_v": [40, 45, 50]},
        }
    }
    rows = generate_matrix(defaults)
    assert len(rows) == 6
    assert rows[0]["id"] == "auto-00000"
    assert rows[-1]["id"] == "auto-00005"
    assert rows[0]["estimate"] == {"n": 100, "n_u": 50, "k_u": 1, "n_v": 50, "k": 5, "k_v": 40}
    assert rows[1]["test_label"] == "k=5-k_v=45"


def test_no_matrix_no_rows():
    assert generate_matrix({}) == []


def test_unknown_row_key_rejected(tmp_path):
    path = _write(tmp_path, """
        scenarios:
          - id: bad
            method: mcmc
            estimate: {n: 10, k: 2, n_u: 5, k_u: 0, n_v: 5, k_v: 5}
    """)
    with pytest.raises(InvalidInputError, match="method"):
        load_requests(path)


def test_invalid_counts_name_the_scenario(tmp_path):
    path = _write(tmp_path, """
        scenarios:
          - id: too-many-positives
            estimate: {n: 10, k: 20, n_u: 5, k_u: 0, n_v: 5, k_v: 5}
    """)
    with pytest.raises(InvalidInputError, match="too-many-positives"):
        load_requests(path)


def test_duplicate_ids_rejected(tmp_path):
    path = _write(tmp_path, """
        scenarios:
          - id: twin
            estimate: {n: 10, k: 2, n_u: 5, k_u: 0, n_v: 5, k_v: 5}
          - id: twin
            estimate: {n: 10, k: 3, n_u: 5, k_u: 0, n_v: 5, k_v: 5}
    """)
    with pytest.raises(InvalidInputError, match="duplicate"):
        load_requests(path)


def test_shipped_scenario_file_loads():
    scenarios = load_requests(_REPO / "scenarios.yaml")
    ids = {scn.id for scn in scenarios}
    assert {"serosurvey-baseline", "near-perfect-test", "weighted-population"} <= ids
    assert sum(1 for scn in scenarios if "matrix" in scn.tags) == 9
    weighted = next(scn for scn in scenarios if scn.id == "weighted-population")
    assert weighted.ci == 90.0 and weighted.request.w == 0.5
