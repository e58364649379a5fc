"""
Threshold sweep: find the merge threshold that best matches a ground truth.

The sweep clusters once at the start threshold, then keeps raising the
threshold on the same progressively contracted graph, evaluating the
partition against the ground truth after every step.
"""

import logging
import math
from typing import Dict, List, Tuple

from clustering import Clustering
from clustering_config import ConfigurationError
from partition_evaluation import LabeledCloud, PartitionEvaluator, PerformanceRecord

logger = logging.getLogger(__name__)


def threshold_range(start: float, end: float, step: float) -> List[float]:
    """
    Thresholds start, start + step, ... up to end (inclusive).

    Args:
        start (float): First threshold, in [0, 1]
        end (float): Last threshold, in [0, 1]; swapped with start if smaller
        step (float): Increment, in [0, 1]

    Returns:
        list: Increasing thresholds, computed as start + k * step

    Raises:
        ConfigurationError: If a value is outside [0, 1], or step is 0 while
            start and end differ
    """
    for name, value in (("start", start), ("end", end), ("step", step)):
        if not 0 <= value <= 1:
            raise ConfigurationError(f"{name} threshold outside range [0, 1]: {value}")
    if start > end:
        logger.warning("Start threshold greater than end threshold, inverting.")
        start, end = end, start
    if start == end:
        return [start]
    if step == 0:
        raise ConfigurationError("step threshold must be greater than 0")

    # tolerance keeps `end` reachable despite float rounding of (end - start) / step
    count = int(math.floor((end - start) / step + 1e-9))
    return [min(start + k * step, end) for k in range(count + 1)]


def best_threshold(results: Dict[float, PerformanceRecord]) -> Tuple[float, PerformanceRecord]:
    """Threshold with the highest fscore; the first one wins ties."""
    if not results:
        raise ConfigurationError("No threshold results to choose from")
    best_t, best_p = None, None
    for t, p in results.items():
        if best_p is None or p.fscore > best_p.fscore:
            best_t, best_p = t, p
    return best_t, best_p


class ThresholdSweep:
    """Evaluates a Clustering engine over a range of thresholds."""

    def __init__(self, clustering: Clustering):
        self.clustering = clustering

    def sweep(self, ground_truth: LabeledCloud, start: float = 0.0, end: float = 1.0,
              step: float = 0.05) -> Dict[float, PerformanceRecord]:
        """
        Cluster and evaluate at every threshold of threshold_range().

        The engine is reset to its initial partition once; each following
        threshold continues from the previous result.

        Returns:
            dict: {threshold: PerformanceRecord}, in increasing threshold order
        """
        thresholds = threshold_range(start, end, step)
        logger.info("Testing thresholds from %f to %f (step %f)",
                    thresholds[0], thresholds[-1], step)

        self.clustering.reset()
        evaluator = None
        results = {}
        for t in thresholds:
            self.clustering.cluster(t)
            segm = self.clustering.get_labeled_cloud()
            if evaluator is None:
                evaluator = PartitionEvaluator(segm, ground_truth)
            else:
                evaluator.set_segm(segm)
            p = evaluator.eval_performance()
            results[t] = p
            logger.info("<T, Fscore, voi, wov> = <%f, %f, %f, %f>",
                        t, p.fscore, p.voi, p.wov)
        return results

    def best_threshold(self, ground_truth: LabeledCloud, start: float = 0.0,
                       end: float = 1.0, step: float = 0.05) -> Tuple[float, PerformanceRecord]:
        return best_threshold(self.sweep(ground_truth, start, end, step))
