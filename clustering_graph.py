"""
Weighted region adjacency graph with edge contraction.

The graph owns the current supervoxels (by id) and one weighted edge per pair
of adjacent supervoxels. Edges are kept in a binary heap so that the lightest
edge is found in logarithmic time; contraction re-prices edges by pushing new
heap entries and invalidating the old ones lazily, the same way hierarchical
grouping keeps its similarity heap in selective search.

Key concepts:
- Edge: (weight, first, second) with first < second; `first` survives a merge
- Pricing: weights come from a DistanceMetrics + MergingPolicy pair, set up
  once over the initial edge population by price_all_edges()
- Contraction: merge the two endpoints, move all their edges onto the
  survivor and re-price them from the merged aggregates

Invariants (after every public call):
- every edge references two ids present in `regions`
- the edge set equals the adjacency relation, with no self edges and at most
  one edge per unordered pair
"""

import copy
import heapq
import logging
from typing import Dict, Iterable, List, NamedTuple, Set, Tuple

from clustering_config import ClusteringStateError, ConfigurationError

logger = logging.getLogger(__name__)


UNPRICED = -1.0


class Edge(NamedTuple):
    weight: float
    first: int
    second: int

    @property
    def ids(self) -> Tuple[int, int]:
        return self.first, self.second


def _pair(i: int, j: int) -> Tuple[int, int]:
    return (i, j) if i < j else (j, i)


class ClusteringGraph:
    """
    Supervoxel adjacency graph supporting lightest-edge contraction.

    Attributes:
        regions (dict): {id: Supervoxel} for the current partition
        priced (bool): True once price_all_edges() has run
        metrics (DistanceMetrics or None): Distances used for re-pricing
        policy (MergingPolicy or None): Criterion used for re-pricing

    Data structures:
        - _weights: {(first, second): (weight, stamp)}, the live edges
        - _neighbors: {id: set of adjacent ids}
        - _heap: min-heap of (weight, first, second, stamp); an entry is stale
          when its pair is gone or its stamp differs from the live one
    """

    def __init__(self, regions: Dict[int, object], adjacency: Iterable[Tuple[int, int]]):
        """
        Initialize the graph from an externally built partition.

        Args:
            regions (dict): {id: Supervoxel}
            adjacency (iterable): Pairs of adjacent ids, in any orientation;
                both directions of a pair may be present

        Raises:
            ConfigurationError: If a pair references an unknown id
        """
        self.regions = dict(regions)
        self.priced = False
        self.metrics = None
        self.policy = None
        self._stamp = 0
        self._weights = {}
        self._neighbors = {i: set() for i in self.regions}
        self._heap = []

        for i, j in self.clear_adjacency(adjacency):
            if i not in self.regions or j not in self.regions:
                raise ConfigurationError(
                    f"Adjacency references unknown supervoxel in pair ({i}, {j})")
            self._set_edge(i, j, UNPRICED)

    @staticmethod
    def clear_adjacency(adjacency: Iterable[Tuple[int, int]]) -> List[Tuple[int, int]]:
        """
        Canonicalise an adjacency relation into sorted unordered pairs.

        Every pair is oriented as (min, max); duplicates (including the two
        directions of the same pair) collapse and self pairs are dropped.
        A pair given in one direction only is kept.
        """
        pairs = {_pair(int(i), int(j)) for i, j in adjacency if i != j}
        return sorted(pairs)

    def __len__(self):
        return len(self._weights)

    def _set_edge(self, i, j, weight):
        self._stamp += 1
        self._weights[(i, j)] = (weight, self._stamp)
        self._neighbors[i].add(j)
        self._neighbors[j].add(i)
        heapq.heappush(self._heap, (weight, i, j, self._stamp))

    def _remove_edge(self, i, j):
        del self._weights[(i, j)]
        self._neighbors[i].discard(j)
        self._neighbors[j].discard(i)

    def _delta(self, i, j) -> float:
        delta_c, delta_g = self.metrics.deltas(self.regions[i], self.regions[j])
        return self.policy.weight(delta_c, delta_g)

    def price_all_edges(self, metrics, policy) -> None:
        """
        Compute the final weight of every edge.

        Process:
            1. Compute (delta_c, delta_g) for every edge
            2. Hand both populations to policy.setup() (adaptive lambda or
               CDF tables)
            3. Replace every weight with policy.weight(delta_c, delta_g)

        Args:
            metrics (DistanceMetrics): Provides deltas(sv1, sv2)
            policy (MergingPolicy): Blends both deltas into one weight

        Notes:
            - Running it again with unchanged regions gives identical weights
            - The heap is rebuilt from scratch, dropping all stale entries
        """
        pairs = sorted(self._weights)
        deltas = [metrics.deltas(self.regions[i], self.regions[j]) for i, j in pairs]
        policy.setup([d[0] for d in deltas], [d[1] for d in deltas])

        self.metrics = metrics
        self.policy = policy
        self._weights = {}
        self._heap = []
        for (i, j), (delta_c, delta_g) in zip(pairs, deltas):
            self._stamp += 1
            w = policy.weight(delta_c, delta_g)
            self._weights[(i, j)] = (w, self._stamp)
            self._heap.append((w, i, j, self._stamp))
        heapq.heapify(self._heap)
        self.priced = True
        logger.debug("Priced %d edges over %d supervoxels", len(pairs), len(self.regions))

    def min_weight_edge(self) -> Edge:
        """
        Return the lightest edge, ties broken by (first, second).

        Raises:
            ClusteringStateError: If the graph has no edge
        """
        while self._heap:
            w, i, j, stamp = self._heap[0]
            live = self._weights.get((i, j))
            if live is not None and live[1] == stamp:
                return Edge(w, i, j)
            heapq.heappop(self._heap)
        raise ClusteringStateError("The graph has no edge left")

    def contract(self, edge) -> None:
        """
        Merge the two supervoxels joined by `edge`.

        The lower id survives and absorbs the other supervoxel. The contracted
        edge is removed; every other edge touching either endpoint is moved
        onto the survivor (a pair reached from both endpoints becomes a single
        edge) and re-priced from the merged aggregates. Edges touching neither
        endpoint are untouched.

        Args:
            edge (Edge or tuple): The edge, or a (first, second) id pair

        Raises:
            ClusteringStateError: If the graph is unpriced, an endpoint no
                longer exists or the two ids are not adjacent. Nothing is
                modified in that case.

        Time complexity: O(d log E) for d edges touching the merged pair
        """
        i, j = edge.ids if isinstance(edge, Edge) else edge
        survivor, absorbed = _pair(i, j)
        if not self.priced:
            raise ClusteringStateError("Cannot contract an edge before pricing the graph")
        if survivor not in self.regions or absorbed not in self.regions:
            raise ClusteringStateError(
                f"Cannot contract ({survivor}, {absorbed}): supervoxel no longer exists")
        if (survivor, absorbed) not in self._weights:
            raise ClusteringStateError(
                f"Cannot contract ({survivor}, {absorbed}): supervoxels are not adjacent")

        self.regions[survivor].absorb(self.regions[absorbed])
        self._remove_edge(survivor, absorbed)

        # snapshot before _remove_edge empties the absorbed neighbor set
        moved = set(self._neighbors[absorbed])
        for n in moved:
            self._remove_edge(*_pair(absorbed, n))
        del self._neighbors[absorbed]
        del self.regions[absorbed]

        touched = self._neighbors[survivor] | moved
        for n in sorted(touched):
            self._set_edge(*_pair(survivor, n), self._delta(survivor, n))

    def edges(self) -> List[Edge]:
        """All live edges sorted by (weight, first, second)."""
        return sorted(Edge(w, i, j) for (i, j), (w, _) in self._weights.items())

    def adjacency(self) -> Set[Tuple[int, int]]:
        return set(self._weights)

    def copy(self) -> "ClusteringGraph":
        """Deep copy; supervoxels are copied too since contraction mutates them."""
        return copy.deepcopy(self)
