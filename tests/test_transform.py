from __future__ import annotations

import math

import pytest

from nomad_scraper.metrics.transform import JobStatusSample, ZeroDesiredPolicy, to_sample, up_ratio

from _helpers import make_status


def test_all_healthy_gives_full_ratio():
    sample = to_sample(make_status(desired=4, healthy=4, unhealthy=0))
    assert sample == JobStatusSample(up=4, down=0, up_ratio=1.0)


def test_ratio_uses_true_division():
    sample = to_sample(make_status(desired=3, healthy=1, unhealthy=2))
    assert sample is not None
    assert sample.up == 1
    assert sample.down == 2
    assert sample.up_ratio == pytest.approx(1 / 3)


def test_ratio_may_exceed_one_during_rollout():
    assert up_ratio(healthy=5, desired=4) == pytest.approx(1.25)


@pytest.mark.parametrize("policy,expected", [
    (ZeroDesiredPolicy.ZERO, 0.0),
    (ZeroDesiredPolicy.NAN, math.nan),
])
def test_zero_desired_policies_publish(policy, expected):
    sample = to_sample(make_status(desired=0, healthy=0), policy)
    assert sample is not None
    if math.isnan(expected):
        assert math.isnan(sample.up_ratio)
    else:
        assert sample.up_ratio == expected


def test_zero_desired_skip_returns_none():
    assert to_sample(make_status(desired=0, healthy=0), ZeroDesiredPolicy.SKIP) is None


def test_zero_desired_default_is_zero_even_with_stray_healthy():
    sample = to_sample(make_status(desired=0, healthy=2))
    assert sample is not None
    assert sample.up == 2
    assert sample.up_ratio == 0.0


def test_policy_parses_from_string():
    assert ZeroDesiredPolicy("nan") is ZeroDesiredPolicy.NAN
    with pytest.raises(ValueError):
        ZeroDesiredPolicy("infinity")


def test_partially_healthy_group():
    sample = to_sample(make_status(desired=10, healthy=7, unhealthy=3))
    assert sample is not None
    assert (sample.up, sample.down) == (7, 3)
    assert sample.up_ratio == pytest.approx(0.7)
