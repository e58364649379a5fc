"""Tests for the threshold sweep."""

import logging

import numpy as np
import pytest

from clustering import Clustering
from clustering_config import (
    ClusteringConfig,
    ClusteringStateError,
    ColorDistance,
    ConfigurationError,
    MergingCriterion,
)
from partition_evaluation import LabeledCloud, PerformanceRecord
from threshold_sweep import ThresholdSweep, best_threshold, threshold_range
from conftest import flat_patch


def two_region_engine():
    """Two adjacent patches whose only edge weighs 0.4."""
    regions = {0: flat_patch(0.0, 0.0, 0.0), 1: flat_patch(1.0, 0.0, 0.4)}
    config = ClusteringConfig(delta_c=ColorDistance.RGB_EUCL,
                              merging=MergingCriterion.MANUAL_LAMBDA,
                              lambda_weight=1.0)
    engine = Clustering(config)
    engine.set_initial_state(regions, [(0, 1)])
    truth = LabeledCloud(
        np.concatenate([regions[0].points, regions[1].points]),
        np.repeat([0, 1], 16),
    )
    return engine, truth


def record(fscore):
    return PerformanceRecord(precision=fscore, recall=fscore, fscore=fscore,
                             voi=0.0, wov=fscore, fpr=0.0, fnr=0.0)


def test_threshold_range():
    thresholds = threshold_range(0.0, 1.0, 0.1)
    assert len(thresholds) == 11
    assert thresholds[0] == 0.0
    assert thresholds[-1] == pytest.approx(1.0)
    assert threshold_range(0.3, 0.3, 0.0) == [0.3]


def test_threshold_range_swaps_with_warning(caplog):
    with caplog.at_level(logging.WARNING):
        thresholds = threshold_range(1.0, 0.0, 0.5)
    assert thresholds == [0.0, 0.5, 1.0]
    assert "inverting" in caplog.text


@pytest.mark.parametrize("start,end,step", [(-0.1, 1.0, 0.1), (0.0, 1.2, 0.1),
                                            (0.0, 1.0, 2.0), (0.0, 1.0, 0.0)])
def test_threshold_range_rejects_bad_values(start, end, step):
    with pytest.raises(ConfigurationError):
        threshold_range(start, end, step)


def test_sweep_two_regions():
    engine, truth = two_region_engine()
    results = ThresholdSweep(engine).sweep(truth, 0.0, 1.0, 0.5)

    assert list(results) == [0.0, 0.5, 1.0]
    assert results[0.0].fscore == pytest.approx(1.0)
    assert results[0.0].voi == pytest.approx(0.0, abs=1e-12)
    # the 0.4 edge is contracted as soon as the threshold exceeds it
    assert results[0.5] == results[1.0]
    assert results[0.5].fscore < 1.0
    assert len(engine.get_current_state()[0]) == 1


def test_sweep_restarts_from_initial_partition():
    engine, truth = two_region_engine()
    engine.cluster(1.0)
    results = ThresholdSweep(engine).sweep(truth, 0.0, 0.0, 0.1)
    assert results[0.0].fscore == pytest.approx(1.0)


def test_sweep_requires_initial_state():
    engine = Clustering()
    with pytest.raises(ClusteringStateError):
        ThresholdSweep(engine).sweep(None, 0.0, 1.0, 0.5)


def test_best_threshold_prefers_first_maximum():
    results = {0.1: record(0.5), 0.2: record(0.8), 0.3: record(0.8), 0.4: record(0.2)}
    t, p = best_threshold(results)
    assert t == 0.2
    assert p.fscore == 0.8


def test_best_threshold_all_zero():
    t, p = best_threshold({0.1: record(0.0), 0.2: record(0.0)})
    assert t == 0.1


def test_best_threshold_empty():
    with pytest.raises(ConfigurationError):
        best_threshold({})


def test_sweep_best_threshold():
    engine, truth = two_region_engine()
    t, p = ThresholdSweep(engine).best_threshold(truth, 0.0, 1.0, 0.5)
    assert t == 0.0
    assert p.fscore == pytest.approx(1.0)
