import itertools

import pytest

from utils.exceptions import SamplingExhaustedError
from utils.sampling_utils import sample_until


def test_returns_first_accepted_candidate_and_attempts():
    counter = itertools.count()
    value, attempts = sample_until(lambda: next(counter), lambda x: x >= 3, max_attempts=10)
    assert value == 3
    assert attempts == 4


def test_raises_after_budget():
    calls = []

    def _draw():
        calls.append(1)
        return 0

    with pytest.raises(SamplingExhaustedError) as info:
        sample_until(_draw, lambda x: x > 0, max_attempts=25)
    assert info.value.attempts == 25
    assert len(calls) == 25


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        sample_until(lambda: 1, lambda x: True, max_attempts=0)
