"""
Comparison of a predicted point labeling against a ground-truth labeling.

Both labelings must cover the same points (same coordinates, possibly in a
different order). Points are identified by their exact coordinates and
grouped by label; duplicated points count with their multiplicity.

Metrics:
- precision, recall, fscore, fpr, fnr: computed over a one-to-one best match
  between ground-truth and predicted clusters
- voi: variation of information H(segm) + H(truth) − 2·I(segm, truth)
- wov: weighted overlap, size-weighted intersection over union of the
  matched pairs

Best match:
    Ground-truth clusters are visited by decreasing size; each one claims the
    predicted cluster with the largest intersection among those not claimed
    yet. A ground-truth cluster whose unclaimed candidates all have an empty
    intersection stays unmatched (-1).

Usage:
    evaluator = PartitionEvaluator(segm, truth)
    record = evaluator.eval_performance()
    evaluator.set_segm(other_segm)  # cached metrics are dropped
"""

import logging
from dataclasses import asdict, dataclass
from typing import Dict, Optional

import numpy as np

from clustering_config import ClusteringStateError, ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class LabeledCloud:
    """Points with one integer label each."""

    points: np.ndarray
    labels: np.ndarray

    def __post_init__(self):
        self.points = np.asarray(self.points, dtype=float).reshape(-1, 3)
        self.labels = np.asarray(self.labels).reshape(-1)
        if len(self.points) != len(self.labels):
            raise ConfigurationError(
                f"Got {len(self.labels)} labels for {len(self.points)} points")

    def __len__(self):
        return len(self.points)


@dataclass(frozen=True)
class PerformanceRecord:
    precision: float
    recall: float
    fscore: float
    voi: float
    wov: float
    fpr: float
    fnr: float

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


def label_map(cloud: LabeledCloud) -> Dict[int, np.ndarray]:
    """
    Group the rows of `cloud` by label.

    Returns:
        dict: {new_label: row indices}, labels renumbered 0..k-1 following
            the ascending order of the original labels
    """
    original, inverse = np.unique(cloud.labels, return_inverse=True)
    inverse = inverse.reshape(-1)
    return {l: np.flatnonzero(inverse == l) for l in range(len(original))}


def _multiset(keys: np.ndarray):
    return np.unique(keys, return_counts=True)


def count_intersect(c1, c2) -> int:
    """Size of the multiset intersection of two (keys, counts) pairs."""
    keys1, counts1 = c1
    keys2, counts2 = c2
    _, i1, i2 = np.intersect1d(keys1, keys2, assume_unique=True, return_indices=True)
    return int(np.minimum(counts1[i1], counts2[i2]).sum())


def count_union(c1, c2) -> int:
    """Size of the multiset union of two (keys, counts) pairs."""
    keys1, counts1 = c1
    keys2, counts2 = c2
    keys = np.union1d(keys1, keys2)
    w1 = np.zeros(len(keys), dtype=np.int64)
    w2 = np.zeros(len(keys), dtype=np.int64)
    w1[np.searchsorted(keys, keys1)] = counts1
    w2[np.searchsorted(keys, keys2)] = counts2
    return int(np.maximum(w1, w2).sum())


class PartitionEvaluator:
    """
    Memoised comparison of a segmentation (`segm`) with a ground truth (`truth`).

    Attributes:
        segm (LabeledCloud or None): Predicted labeling
        truth (LabeledCloud or None): Ground-truth labeling
        segm_labels, truth_labels (dict): Label maps, {label: row indices}
        inter_matrix (np.ndarray): (n, m) intersection counts, n predicted
            clusters by m ground-truth clusters
        matches (np.ndarray): (m,) matched predicted cluster per ground-truth
            cluster, -1 when unmatched
    """

    def __init__(self, segm: Optional[LabeledCloud] = None,
                 truth: Optional[LabeledCloud] = None):
        self.segm = None
        self.truth = None
        self.segm_labels = {}
        self.truth_labels = {}
        self.inter_matrix = None
        self.matches = None
        self._segm_sets = []
        self._truth_sets = []
        self._init_performance()
        if segm is not None:
            self.set_segm(segm)
        if truth is not None:
            self.set_truth(truth)

    def _init_performance(self):
        self._precision = None
        self._recall = None
        self._fscore = None
        self._voi = None
        self._wov = None
        self._fpr = None
        self._fnr = None

    def set_segm(self, segm: LabeledCloud) -> None:
        if segm is None or len(segm) == 0:
            raise ConfigurationError("The cloud to be set as 'segm' cannot be empty")
        self.segm = segm
        self._init_performance()
        self.matches = None
        self.segm_labels = label_map(segm)
        if self.truth is not None:
            self.compute_intersections()

    def set_truth(self, truth: LabeledCloud) -> None:
        if truth is None or len(truth) == 0:
            raise ConfigurationError("The cloud to be set as 'truth' cannot be empty")
        self.truth = truth
        self._init_performance()
        self.matches = None
        self.truth_labels = label_map(truth)
        if self.segm is not None:
            self.compute_intersections()

    def _require_both(self):
        if self.segm is None or self.truth is None or self.matches is None:
            raise ClusteringStateError(
                "Both 'segm' and 'truth' must be set before evaluating")

    def compute_intersections(self) -> None:
        """
        Build the intersection matrix and the best match.

        Process:
            1. Give every distinct coordinate a shared integer key
            2. Turn every cluster into a multiset of keys
            3. Fill the (n, m) intersection matrix
            4. Assign matches, largest ground-truth clusters first

        Raises:
            ConfigurationError: If both clouds do not have the same size
        """
        if len(self.segm) != len(self.truth):
            raise ConfigurationError(
                f"'segm' has {len(self.segm)} points but 'truth' has {len(self.truth)}")

        stacked = np.concatenate([self.segm.points, self.truth.points])
        _, keys = np.unique(stacked, axis=0, return_inverse=True)
        keys = keys.reshape(-1)
        segm_keys = keys[:len(self.segm)]
        truth_keys = keys[len(self.segm):]

        self._segm_sets = [_multiset(segm_keys[rows])
                           for _, rows in sorted(self.segm_labels.items())]
        self._truth_sets = [_multiset(truth_keys[rows])
                            for _, rows in sorted(self.truth_labels.items())]

        n, m = len(self._segm_sets), len(self._truth_sets)
        self.inter_matrix = np.zeros((n, m), dtype=np.int64)
        for i, s in enumerate(self._segm_sets):
            for j, t in enumerate(self._truth_sets):
                self.inter_matrix[i, j] = count_intersect(s, t)

        truth_sizes = np.array([len(self.truth_labels[j]) for j in range(m)])
        self.matches = np.full(m, -1, dtype=np.int64)
        claimed = set()
        for j in np.argsort(-truth_sizes, kind="stable"):
            col = self.inter_matrix[:, j].copy()
            while col.any():
                row = int(np.argmax(col))
                if row not in claimed:
                    self.matches[j] = row
                    claimed.add(row)
                    logger.debug("Best match: truth %d - segm %d (%d points)",
                                 j, row, col[row])
                    break
                col[row] = 0
            else:
                logger.debug("Best match not found for truth %d", j)

    def eval_precision(self) -> float:
        """
        Precision; also computes recall, fpr and fnr in the same pass.

        For each matched pair (i, j):
            p += |S_i ∩ T_j| · |T_j| / |S_i|
            r += |S_i ∩ T_j|
            fp += |S_i| − |S_i ∩ T_j|
            fn += |T_j| − |S_i ∩ T_j|
        and unmatched ground-truth clusters add |T_j| to fn. All four sums are
        divided by the number of points.
        """
        self._require_both()
        if self._precision is None:
            p = r = fp = fn = 0.0
            for j, i in enumerate(self.matches):
                g = len(self.truth_labels[j])
                if i == -1:
                    fn += g
                    continue
                inter = self.inter_matrix[i, j]
                s = len(self.segm_labels[i])
                p += inter * g / s
                r += inter
                fp += s - inter
                fn += g - inter
            n = len(self.truth)
            self._precision = p / n
            self._recall = r / n
            self._fpr = fp / n
            self._fnr = fn / n
        return self._precision

    def eval_recall(self) -> float:
        """
        Recall: matched intersections over the number of points.

        Returns:
            float: Σ |S_i ∩ T_j| / N over matched pairs, in [0, 1]

        Raises:
            ClusteringStateError: If segm or truth is missing
        """
        self.eval_precision()
        return self._recall

    def eval_fpr(self) -> float:
        """
        False positive rate: predicted points outside their matched truth cluster.

        Returns:
            float: Σ (|S_i| − |S_i ∩ T_j|) / N over matched pairs
        """
        self.eval_precision()
        return self._fpr

    def eval_fnr(self) -> float:
        """
        False negative rate: truth points missed by their matched cluster.

        Returns:
            float: Σ (|T_j| − |S_i ∩ T_j|) / N, unmatched truth clusters
                counting in full
        """
        self.eval_precision()
        return self._fnr

    def eval_fscore(self) -> float:
        """
        Harmonic mean of precision and recall.

        Returns:
            float: 2·p·r / (p + r), or 0 when both are 0 (a warning is logged)

        Raises:
            ClusteringStateError: If segm or truth is missing
        """
        if self._fscore is None:
            precision = self.eval_precision()
            recall = self._recall
            if precision == 0 and recall == 0:
                logger.warning("Both precision and recall equal to 0; "
                               "setting f-score to 0")
                self._fscore = 0.0
            else:
                self._fscore = 2 * precision * recall / (precision + recall)
        return self._fscore

    def eval_voi(self) -> float:
        """Variation of information over the full intersection matrix (natural log)."""
        self._require_both()
        if self._voi is None:
            n = float(len(self.truth))
            p = np.array([len(self.segm_labels[i]) for i in range(len(self.segm_labels))]) / n
            q = np.array([len(self.truth_labels[j]) for j in range(len(self.truth_labels))]) / n
            r = self.inter_matrix / n

            h_s = -np.sum(p * np.log(p))
            h_t = -np.sum(q * np.log(q))
            nonzero = r > 0
            outer = np.outer(p, q)
            mi = np.sum(r[nonzero] * np.log(r[nonzero] / outer[nonzero]))
            self._voi = max(float(h_s + h_t - 2 * mi), 0.0)
        return self._voi

    def eval_wov(self) -> float:
        """Weighted overlap: Σ |S_i ∩ T_j| · |T_j| / |S_i ∪ T_j| / N over matches."""
        self._require_both()
        if self._wov is None:
            w = 0.0
            for j, i in enumerate(self.matches):
                if i == -1:
                    continue
                inter = self.inter_matrix[i, j]
                union = count_union(self._segm_sets[i], self._truth_sets[j])
                w += inter * len(self.truth_labels[j]) / union
            self._wov = w / len(self.truth)
        return self._wov

    def eval_performance(self) -> PerformanceRecord:
        return PerformanceRecord(
            precision=float(self.eval_precision()),
            recall=float(self.eval_recall()),
            fscore=float(self.eval_fscore()),
            voi=float(self.eval_voi()),
            wov=float(self.eval_wov()),
            fpr=float(self.eval_fpr()),
            fnr=float(self.eval_fnr()),
        )


def evaluate(segm: LabeledCloud, truth: LabeledCloud) -> PerformanceRecord:
    """One-shot comparison of a predicted labeling with a ground truth."""
    return PartitionEvaluator(segm, truth).eval_performance()
