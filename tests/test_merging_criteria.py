"""Tests for configuration and merging criteria."""

import pytest

from clustering_config import (
    ClusteringConfig,
    ClusteringStateError,
    ConfigurationError,
    MergingCriterion,
)
from merging_criteria import (
    AdaptiveLambda,
    Equalization,
    ManualLambda,
    compute_cdf,
    delta_bin,
    make_policy,
    running_mean,
)


def test_running_mean():
    assert running_mean([1, 2, 3, 4]) == pytest.approx(2.5)
    assert running_mean([]) == 0.0
    assert running_mean([1e8 + 0.5] * 1000) == pytest.approx(1e8 + 0.5)


def test_manual_lambda_blend():
    policy = ManualLambda(0.25)
    assert policy.weight(0.4, 0.8) == pytest.approx(0.25 * 0.4 + 0.75 * 0.8)


def test_manual_lambda_range():
    with pytest.raises(ConfigurationError):
        ManualLambda(1.5)


def test_adaptive_lambda():
    policy = AdaptiveLambda()
    with pytest.raises(ClusteringStateError):
        policy.weight(0.1, 0.1)
    policy.setup([0.2, 0.2], [0.6, 0.6])
    assert policy.lambda_weight == pytest.approx(0.75)
    assert policy.weight(0.2, 0.6) == pytest.approx(0.75 * 0.2 + 0.25 * 0.6)


def test_adaptive_lambda_zero_population():
    policy = AdaptiveLambda()
    policy.setup([0.0], [0.0])
    assert policy.lambda_weight == 0.5


def test_compute_cdf():
    cdf = compute_cdf([0.0, 0.05, 0.3, 0.99, 1.0], 10)
    assert len(cdf) == 10
    assert cdf[-1] == 1.0
    assert all(a <= b for a, b in zip(cdf, cdf[1:]))
    assert cdf[0] == pytest.approx(0.4)
    assert cdf[3] == pytest.approx(0.6)


def test_delta_bin_clamps_both_ends():
    assert delta_bin(1.0, 500) == 499
    assert delta_bin(0.0, 500) == 0
    assert delta_bin(0.5, 4) == 2


def test_equalization_weight():
    policy = Equalization(4)
    policy.setup([0.1, 0.6], [0.2, 1.0])
    # cdf_c = [0.5, 0.5, 1, 1], cdf_g = [0.5, 0.5, 0.5, 1]
    assert policy.weight(0.1, 1.0) == pytest.approx(0.25 + 0.5)
    assert policy.weight(0.6, 0.2) == pytest.approx(0.5 + 0.25)


def test_equalization_needs_setup():
    with pytest.raises(ClusteringStateError):
        Equalization(10).weight(0.1, 0.1)


def test_make_policy():
    config = ClusteringConfig(merging=MergingCriterion.EQUALIZATION, bins_num=20)
    policy = make_policy(config)
    assert isinstance(policy, Equalization)
    assert policy.bins_num == 20
    assert isinstance(make_policy(ClusteringConfig()), AdaptiveLambda)


def test_lambda_only_under_manual():
    config = ClusteringConfig()
    with pytest.raises(ConfigurationError):
        config.with_lambda(0.3)
    manual = config.with_merging(MergingCriterion.MANUAL_LAMBDA).with_lambda(0.3)
    assert manual.lambda_weight == 0.3
    with pytest.raises(ConfigurationError):
        manual.with_lambda(-0.1)


def test_bins_only_under_equalization():
    config = ClusteringConfig()
    with pytest.raises(ConfigurationError):
        config.with_bins_num(10)
    eq = config.with_merging(MergingCriterion.EQUALIZATION)
    assert eq.with_bins_num(10).bins_num == 10
    with pytest.raises(ConfigurationError):
        eq.with_bins_num(0)


@pytest.mark.parametrize("bins_num", ["abc", 2.5, True, None])
def test_bins_num_must_be_an_integer(bins_num):
    with pytest.raises(ConfigurationError):
        ClusteringConfig(merging=MergingCriterion.EQUALIZATION, bins_num=bins_num)


def test_switching_criterion_resets_parameters():
    manual = ClusteringConfig(merging=MergingCriterion.MANUAL_LAMBDA, lambda_weight=0.9)
    switched = manual.with_merging(MergingCriterion.EQUALIZATION)
    assert switched.lambda_weight == 0.5
    assert switched.bins_num == 500
    assert manual.lambda_weight == 0.9
