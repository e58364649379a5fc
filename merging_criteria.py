"""
Merging criteria: turn a (delta_c, delta_g) pair into one merge weight.

Three criteria are available:

- MANUAL_LAMBDA: w = λ·δc + (1 − λ)·δg with a caller-supplied λ
- ADAPTIVE_LAMBDA: same blend, λ = mean(δg) / (mean(δc) + mean(δg)) computed
  once over the initial edge population
- EQUALIZATION: each delta is replaced by its empirical CDF value over the
  initial population, w = CDF_c(δc)/2 + CDF_g(δg)/2

Policies that learn from the population expose setup(), which the clustering
graph calls exactly once before pricing any edge.
"""

import logging
import math
from typing import Iterable

import numpy as np

from clustering_config import (
    ClusteringConfig,
    ClusteringStateError,
    ConfigurationError,
    DEFAULT_LAMBDA,
    MergingCriterion,
)

logger = logging.getLogger(__name__)


def running_mean(values: Iterable[float]) -> float:
    """
    Mean of `values` computed incrementally (Welford update).

    Avoids accumulating a large sum on big populations. Returns 0.0 for an
    empty population.
    """
    mean = 0.0
    count = 0
    for value in values:
        count += 1
        mean += (value - mean) / count
    return mean


def delta_bin(delta: float, bins_num: int) -> int:
    """Bin index of `delta` among `bins_num` equal-width bins over [0, 1]."""
    b = int(math.floor(delta * bins_num))
    return min(max(b, 0), bins_num - 1)


def compute_cdf(deltas, bins_num: int) -> np.ndarray:
    """
    Empirical cumulative distribution of a delta population.

    Args:
        deltas (array-like): Raw distances, nominally in [0, 1]
        bins_num (int): Number of equal-width bins spanning [0, 1]

    Returns:
        np.ndarray: Shape (bins_num,), entry i is the fraction of deltas whose
            bin index is <= i. Non-decreasing, last entry exactly 1.0 for a
            non-empty population (all zeros for an empty one).

    Notes:
        - A delta of exactly 1.0 falls in the last bin
    """
    deltas = np.asarray(list(deltas), dtype=float)
    if bins_num <= 0:
        raise ConfigurationError(f"Bins number must be positive, got {bins_num}")
    if len(deltas) == 0:
        return np.zeros(bins_num)
    bins = np.clip(np.floor(deltas * bins_num).astype(int), 0, bins_num - 1)
    counts = np.bincount(bins, minlength=bins_num)
    return np.cumsum(counts) / len(deltas)


class MergingPolicy:
    """Base class; subclasses implement t_c() and t_g()."""

    criterion = None
    needs_setup = False

    def __init__(self):
        self.ready = not self.needs_setup

    def setup(self, deltas_c, deltas_g) -> None:
        self.ready = True

    def t_c(self, delta_c: float) -> float:
        raise NotImplementedError

    def t_g(self, delta_g: float) -> float:
        raise NotImplementedError

    def weight(self, delta_c: float, delta_g: float) -> float:
        if not self.ready:
            raise ClusteringStateError(
                f"{type(self).__name__} must be set up on the initial edge "
                "population before pricing edges")
        return self.t_c(delta_c) + self.t_g(delta_g)


class ManualLambda(MergingPolicy):
    criterion = MergingCriterion.MANUAL_LAMBDA

    def __init__(self, lambda_weight: float = DEFAULT_LAMBDA):
        super().__init__()
        if not 0 <= lambda_weight <= 1:
            raise ConfigurationError(f"Lambda outside range [0, 1]: {lambda_weight}")
        self.lambda_weight = lambda_weight

    def t_c(self, delta_c):
        return self.lambda_weight * delta_c

    def t_g(self, delta_g):
        return (1 - self.lambda_weight) * delta_g


class AdaptiveLambda(ManualLambda):
    criterion = MergingCriterion.ADAPTIVE_LAMBDA
    needs_setup = True

    def setup(self, deltas_c, deltas_g):
        mean_c = running_mean(deltas_c)
        mean_g = running_mean(deltas_g)
        if mean_c + mean_g > 0:
            self.lambda_weight = mean_g / (mean_c + mean_g)
        else:
            logger.warning("All initial deltas are 0; keeping lambda = %f",
                           self.lambda_weight)
        logger.debug("Adaptive lambda: mean_c = %f, mean_g = %f, lambda = %f",
                     mean_c, mean_g, self.lambda_weight)
        super().setup(deltas_c, deltas_g)


class Equalization(MergingPolicy):
    criterion = MergingCriterion.EQUALIZATION
    needs_setup = True

    def __init__(self, bins_num: int):
        super().__init__()
        if bins_num <= 0:
            raise ConfigurationError(f"Bins number must be positive, got {bins_num}")
        self.bins_num = bins_num
        self.cdf_c = None
        self.cdf_g = None

    def setup(self, deltas_c, deltas_g):
        self.cdf_c = compute_cdf(deltas_c, self.bins_num)
        self.cdf_g = compute_cdf(deltas_g, self.bins_num)
        super().setup(deltas_c, deltas_g)

    def t_c(self, delta_c):
        return float(self.cdf_c[delta_bin(delta_c, self.bins_num)]) / 2

    def t_g(self, delta_g):
        return float(self.cdf_g[delta_bin(delta_g, self.bins_num)]) / 2


def make_policy(config: ClusteringConfig) -> MergingPolicy:
    """Build a fresh, not yet set up, policy for `config.merging`."""
    if config.merging is MergingCriterion.MANUAL_LAMBDA:
        return ManualLambda(config.lambda_weight)
    if config.merging is MergingCriterion.ADAPTIVE_LAMBDA:
        return AdaptiveLambda(config.lambda_weight)
    if config.merging is MergingCriterion.EQUALIZATION:
        return Equalization(config.bins_num)
    raise ConfigurationError(f"Unknown merging criterion: {config.merging!r}")
