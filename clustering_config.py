"""
Configuration and error types for supervoxel clustering.

A clustering run is parameterised by three independent choices:

- the color distance (perceptual Lab or Euclidean RGB),
- the geometric distance (normals difference, optionally convexity aware),
- the merging criterion that blends both into a single edge weight.

The configuration is an immutable value. Changing a parameter produces a new
configuration; callers holding cached weights must treat a new configuration
as invalidating them.

Usage:
    config = ClusteringConfig(merging=MergingCriterion.MANUAL_LAMBDA)
    config = config.with_lambda(0.7)
"""

import numbers
from dataclasses import dataclass, replace
from enum import Enum
from typing import Tuple


DEFAULT_LAMBDA = 0.5
DEFAULT_BINS_NUM = 500


class ClusteringError(Exception):
    """Base class for all clustering and evaluation errors."""


class ConfigurationError(ClusteringError, ValueError):
    """Invalid parameter value, or parameter set under the wrong criterion."""


class ClusteringStateError(ClusteringError, RuntimeError):
    """Operation invoked in a state that does not allow it."""


class ColorDistance(Enum):
    LAB_CIEDE00 = "lab_ciede00"
    RGB_EUCL = "rgb_eucl"


class GeometricDistance(Enum):
    NORMALS_DIFF = "normals_diff"
    CONVEX_NORMALS_DIFF = "convex_normals_diff"


class MergingCriterion(Enum):
    MANUAL_LAMBDA = "manual_lambda"
    ADAPTIVE_LAMBDA = "adaptive_lambda"
    EQUALIZATION = "equalization"


@dataclass(frozen=True)
class ClusteringConfig:
    """
    Immutable clustering parameters.

    Attributes:
        delta_c (ColorDistance): Color distance variant
        delta_g (GeometricDistance): Geometric distance variant
        merging (MergingCriterion): How color and geometry are blended
        lambda_weight (float): Color weight in [0, 1], meaningful for the
            lambda criteria (computed from data under ADAPTIVE_LAMBDA)
        bins_num (int): Number of histogram bins under EQUALIZATION
        viewpoint (tuple): Point normals are oriented towards after a merge
    """

    delta_c: ColorDistance = ColorDistance.LAB_CIEDE00
    delta_g: GeometricDistance = GeometricDistance.NORMALS_DIFF
    merging: MergingCriterion = MergingCriterion.ADAPTIVE_LAMBDA
    lambda_weight: float = DEFAULT_LAMBDA
    bins_num: int = DEFAULT_BINS_NUM
    viewpoint: Tuple[float, float, float] = (0.0, 0.0, 0.0)

    def __post_init__(self):
        if not isinstance(self.delta_c, ColorDistance):
            raise ConfigurationError(f"Unknown color distance: {self.delta_c!r}")
        if not isinstance(self.delta_g, GeometricDistance):
            raise ConfigurationError(f"Unknown geometric distance: {self.delta_g!r}")
        if not isinstance(self.merging, MergingCriterion):
            raise ConfigurationError(f"Unknown merging criterion: {self.merging!r}")
        if not 0 <= self.lambda_weight <= 1:
            raise ConfigurationError(
                f"Lambda outside range [0, 1]: {self.lambda_weight}")
        if (not isinstance(self.bins_num, numbers.Integral) or isinstance(self.bins_num, bool)
                or self.bins_num <= 0):
            raise ConfigurationError(
                f"Bins number must be a positive integer, got {self.bins_num}")
        if len(self.viewpoint) != 3:
            raise ConfigurationError(
                f"Viewpoint must have 3 coordinates, got {self.viewpoint!r}")

    def with_merging(self, merging: MergingCriterion) -> "ClusteringConfig":
        """Switch criterion; lambda and bins number go back to their defaults."""
        return replace(self, merging=merging, lambda_weight=DEFAULT_LAMBDA,
                       bins_num=DEFAULT_BINS_NUM)

    def with_lambda(self, value: float) -> "ClusteringConfig":
        """
        Copy with a new fixed lambda.

        Args:
            value (float): Color weight, in [0, 1]

        Raises:
            ConfigurationError: If the criterion is not MANUAL_LAMBDA or the
                value is out of range
        """
        if self.merging is not MergingCriterion.MANUAL_LAMBDA:
            raise ConfigurationError(
                "Lambda can be set only if the merging criterion is MANUAL_LAMBDA")
        return replace(self, lambda_weight=value)

    def with_bins_num(self, value: int) -> "ClusteringConfig":
        """
        Copy with a new number of histogram bins.

        Args:
            value (int): Positive bin count

        Raises:
            ConfigurationError: If the criterion is not EQUALIZATION or the
                value is not a positive integer
        """
        if self.merging is not MergingCriterion.EQUALIZATION:
            raise ConfigurationError(
                "Bins number can be set only if the merging criterion is EQUALIZATION")
        return replace(self, bins_num=value)

    def with_delta_c(self, value: ColorDistance) -> "ClusteringConfig":
        """Copy with another color distance."""
        return replace(self, delta_c=value)

    def with_delta_g(self, value: GeometricDistance) -> "ClusteringConfig":
        """Copy with another geometric distance."""
        return replace(self, delta_g=value)
