"""
Greedy agglomerative clustering of supervoxels.

Starting from an over-segmentation (supervoxels plus their adjacency), the
engine repeatedly contracts the globally lightest edge of the region graph
until the lightest remaining weight reaches a threshold. Weights of the edges
around a merged region are always recomputed from its new aggregates.

States:
    - no initial state: cluster() raises ClusteringStateError
    - unpriced: the initial graph carries placeholder weights; the first
      cluster() call prices it under the current configuration
    - ready: weights assigned, contraction allowed

Usage:
    engine = Clustering(ClusteringConfig(merging=MergingCriterion.EQUALIZATION))
    engine.set_initial_state(supervoxels, adjacency)
    engine.cluster(0.3)
    engine.cluster(0.5)          # continues from the 0.3 result
    cloud = engine.get_labeled_cloud()
"""

import logging
from typing import Dict, Optional, Set, Tuple

import numpy as np

from clustering_config import ClusteringConfig, ClusteringStateError, ConfigurationError
from clustering_graph import ClusteringGraph
from distances import DistanceMetrics
from label_colors import label2color
from merging_criteria import make_policy
from partition_evaluation import LabeledCloud
from supervoxel import Supervoxel

logger = logging.getLogger(__name__)


def labeled_cloud(regions: Dict[int, Supervoxel]) -> LabeledCloud:
    """
    Flatten a partition into a labeled cloud.

    Supervoxels are visited by ascending id and labeled 0, 1, 2, ...
    """
    ids = sorted(regions)
    if not ids:
        return LabeledCloud(np.zeros((0, 3)), np.zeros(0, dtype=np.int64))
    points = np.concatenate([regions[i].points for i in ids])
    labels = np.concatenate([np.full(len(regions[i]), l, dtype=np.int64)
                             for l, i in enumerate(ids)])
    return LabeledCloud(points, labels)


class Clustering:
    """
    Clustering engine holding the initial and the current region graph.

    Attributes:
        config (ClusteringConfig): Active configuration
        initial_state (ClusteringGraph or None): Graph as given to
            set_initial_state(), priced lazily
        state (ClusteringGraph or None): Current, progressively contracted graph
    """

    def __init__(self, config: Optional[ClusteringConfig] = None):
        self.config = config if config is not None else ClusteringConfig()
        self.initial_state = None
        self.state = None
        self.init_initial_weights = False

    # Configuration: every change yields a new config and drops cached pricing

    def set_config(self, config: ClusteringConfig) -> None:
        self.config = config
        self.init_initial_weights = False
        if self.initial_state is not None:
            self.state = self.initial_state.copy()

    def set_delta_c(self, delta_c) -> None:
        self.set_config(self.config.with_delta_c(delta_c))

    def set_delta_g(self, delta_g) -> None:
        self.set_config(self.config.with_delta_g(delta_g))

    def set_merging(self, merging) -> None:
        self.set_config(self.config.with_merging(merging))

    def set_lambda(self, value: float) -> None:
        self.set_config(self.config.with_lambda(value))

    def set_bins_num(self, value: int) -> None:
        self.set_config(self.config.with_bins_num(value))

    def set_initial_state(self, regions: Dict[int, Supervoxel], adjacency) -> None:
        """
        Set the partition clustering starts from.

        Args:
            regions (dict): {id: Supervoxel}
            adjacency (iterable): Adjacent id pairs, in any orientation
        """
        self.initial_state = ClusteringGraph(regions, adjacency)
        self.state = self.initial_state.copy()
        self.init_initial_weights = False
        logger.info("Initial state: %d supervoxels, %d edges",
                    len(self.initial_state.regions), len(self.initial_state))

    def init_weights(self) -> None:
        """Price the initial graph under the current config and restart from it."""
        metrics = DistanceMetrics.from_config(self.config)
        policy = make_policy(self.config)
        self.initial_state.price_all_edges(metrics, policy)
        self.state = self.initial_state.copy()
        self.init_initial_weights = True

    def reset(self) -> None:
        """Go back to the initial partition (keeping its weights)."""
        if self.initial_state is None:
            raise ClusteringStateError("No initial state to reset to")
        self.state = self.initial_state.copy()

    def cluster(self, threshold: float) -> None:
        """
        Merge supervoxels while the lightest edge weighs less than `threshold`.

        Each step contracts the single globally lightest edge. Calling it
        again continues from the current partition, so a larger threshold only
        adds merges.

        Args:
            threshold (float): Stop threshold in [0, 1]

        Raises:
            ClusteringStateError: If no initial state was set
            ConfigurationError: If threshold is outside [0, 1]
        """
        if self.initial_state is None:
            raise ClusteringStateError(
                "Cannot call 'cluster' before setting an initial state "
                "with 'set_initial_state'")
        if not 0 <= threshold <= 1:
            raise ConfigurationError(f"Threshold outside range [0, 1]: {threshold}")

        if not self.init_initial_weights:
            self.init_weights()

        state = self.state
        while len(state):
            edge = state.min_weight_edge()
            if edge.weight >= threshold:
                break
            logger.debug("left: %de/%dp - w: %f - [%d, %d]", len(state),
                         len(state.regions), edge.weight, edge.first, edge.second)
            state.contract(edge)

    def get_current_state(self) -> Tuple[Dict[int, Supervoxel], Set[Tuple[int, int]]]:
        if self.state is None:
            raise ClusteringStateError("No initial state set")
        return dict(self.state.regions), self.state.adjacency()

    def get_labeled_cloud(self) -> LabeledCloud:
        regions, _ = self.get_current_state()
        return labeled_cloud(regions)

    def get_colored_cloud(self) -> Tuple[np.ndarray, np.ndarray]:
        return label2color(self.get_labeled_cloud())
