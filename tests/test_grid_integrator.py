import math
import threading

import numpy as np
import pytest
from scipy import stats

from utils import grid_integrator
from utils.estimation_params import EstimationRequest
from utils.exceptions import EstimationCancelledError, IllPosedEstimateError
from utils.grid_integrator import (
    integrate_grid,
    normalise_density,
    prevalence_grid,
    raw_density,
)
from utils.validation_sampler import ValidationSamples, draw_validation_samples


@pytest.fixture(scope="module")
def samples():
    req = EstimationRequest(n=100, k=10, n_u=500, k_u=5, n_v=500, k_v=480, N=200, M=50)
    return draw_validation_samples(req, np.random.default_rng(2020))


def test_prevalence_grid_endpoints():
    np.testing.assert_array_equal(prevalence_grid(0), [0.0])
    np.testing.assert_array_equal(prevalence_grid(1), [0.0, 1.0])
    np.testing.assert_array_equal(prevalence_grid(4), [0.0, 0.25, 0.5, 0.75, 1.0])
    assert prevalence_grid(1000).size == 1001


def test_raw_density_matches_exact_sum(samples):
    """Each grid value is the compensated sum over samples; compare with a
    correctly rounded math.fsum of the same terms."""
    M = 20
    raw = raw_density(samples, n=100, k=10, M=M)
    for j, theta in enumerate(prevalence_grid(M)):
        p = samples.u + theta * (samples.v - samples.u)
        terms = stats.beta.pdf(p, 11.0, 91.0) * samples.duv
        assert raw[j] == pytest.approx(math.fsum(terms), rel=1e-14)


def test_normalised_mean_is_one(samples):
    pdf = integrate_grid(samples, n=100, k=10, M=50)
    assert pdf.shape == (51,)
    assert pdf.sum() / pdf.size == pytest.approx(1.0, rel=1e-9)
    assert np.all(pdf >= 0.0)


@pytest.mark.parametrize("chunk_size", [1, 7, 64, 10_000])
def test_chunking_does_not_change_result(samples, chunk_size):
    ref = raw_density(samples, n=100, k=10, M=50, chunk_size=128)
    got = raw_density(samples, n=100, k=10, M=50, chunk_size=chunk_size)
    np.testing.assert_array_equal(got, ref)


def test_parallel_matches_sequential(samples):
    seq = integrate_grid(samples, n=100, k=10, M=50, jobs=1, chunk_size=8)
    par = integrate_grid(samples, n=100, k=10, M=50, jobs=2, chunk_size=8)
    np.testing.assert_allclose(par, seq, rtol=1e-13, atol=0)


def test_zero_total_is_ill_posed():
    """duv == 0 everywhere gives an all-zero density that cannot be normalised."""
    s = ValidationSamples.from_arrays([0.1, 0.2], [0.3, 0.4], [0.0, 0.0])
    with pytest.raises(IllPosedEstimateError):
        integrate_grid(s, n=10, k=2, M=10)


def test_non_finite_total_is_ill_posed():
    s = ValidationSamples.from_arrays([0.1], [0.3], [np.inf])
    with pytest.raises(IllPosedEstimateError):
        integrate_grid(s, n=10, k=2, M=10)


@pytest.mark.parametrize("raw", [np.zeros(5), np.array([1.0, np.nan, 1.0])])
def test_normalise_density_rejects_degenerate(raw):
    with pytest.raises(IllPosedEstimateError):
        normalise_density(raw)


def test_normalise_density_scales_to_unit_mean():
    pdf = normalise_density(np.array([1.0, 3.0, 0.0, 4.0]))
    np.testing.assert_allclose(pdf, [0.5, 1.5, 0.0, 2.0])


def test_cancel_before_start(samples):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(EstimationCancelledError):
        raw_density(samples, n=100, k=10, M=50, cancel=cancel)


def test_cancel_between_chunks(samples, monkeypatch):
    """Setting the flag during the first chunk stops before the second."""
    cancel = threading.Event()
    calls = []
    original = grid_integrator._integrate_chunk

    def _chunk(*args):
        calls.append(1)
        cancel.set()
        return original(*args)

    monkeypatch.setattr(grid_integrator, "_integrate_chunk", _chunk)
    with pytest.raises(EstimationCancelledError):
        raw_density(samples, n=100, k=10, M=50, chunk_size=10, cancel=cancel)
    assert len(calls) == 1


def test_invalid_chunk_size(samples):
    with pytest.raises(ValueError):
        raw_density(samples, n=100, k=10, M=10, chunk_size=0)
