import numpy as np
import pytest

from utils.summary_stats import PosteriorSummary, summarise, trim_negligible


def test_uniform_density_quantiles():
    pdf = np.ones(1001)
    s = summarise(pdf, ci=95)
    assert s.lower == pytest.approx(0.025)
    assert s.median == pytest.approx(0.5)
    assert s.upper == pytest.approx(0.975)
    assert s.mode == 0.0                      # first maximum wins


def test_population_weighting_scales_everything():
    pdf = np.ones(1001)
    s = summarise(pdf, ci=95, weight=0.5)
    assert s.median == pytest.approx(0.25)
    assert s.upper == pytest.approx(0.4875)


def test_mode_of_peaked_density():
    theta = np.arange(101) / 100
    pdf = np.exp(-0.5 * ((theta - 0.3) / 0.05) ** 2)
    pdf /= pdf.mean()
    s = summarise(pdf, ci=90)
    assert s.mode == pytest.approx(30 / 101)
    assert s.lower < s.median < s.upper
    assert s.median == pytest.approx(0.3, abs=0.01)
    assert s.ci == 90.0


def test_as_dict_keys():
    s = PosteriorSummary(ci=95.0, lower=0.1, upper=0.3, median=0.2, mode=0.19)
    assert s.as_dict() == {"ci": 95.0, "lower": 0.1, "upper": 0.3,
                           "median": 0.2, "mode": 0.19}


@pytest.mark.parametrize("ci", [0, 100, -5, 150])
def test_rejects_bad_level(ci):
    with pytest.raises(ValueError):
        summarise(np.ones(10), ci=ci)


def test_rejects_empty_density():
    with pytest.raises(ValueError):
        summarise(np.array([]))


def test_trim_negligible_drops_empty_tails():
    pdf = np.zeros(101)
    pdf[40:61] = 1.0
    pdf /= pdf.mean()
    sl = trim_negligible(pdf)
    assert sl.start == 40
    assert sl.stop == 61


def test_trim_keeps_everything_for_flat_density():
    sl = trim_negligible(np.ones(50))
    assert (sl.start, sl.stop) == (0, 50)
