"""Shared test fixtures."""

import numpy as np
import pytest

from partition_evaluation import LabeledCloud
from supervoxel import Supervoxel


UP = (0.0, 0.0, 1.0)


def flat_patch(x, y, gray, size=4):
    """
    Horizontal square patch of points centered on (x, y, 0), facing +z.

    `gray` is in [0, 1]; with RGB_EUCL, two patches are at color distance
    |gray1 - gray2|.
    """
    offsets = np.linspace(-0.1, 0.1, size)
    points = [(x + dx, y + dy, 0.0) for dx in offsets for dy in offsets]
    colors = [(gray * 255.0,) * 3] * len(points)
    return Supervoxel(points, colors, normal=UP, viewpoint=(0.0, 0.0, 10.0))


def cloud(points, labels):
    return LabeledCloud(np.asarray(points, dtype=float), np.asarray(labels))


class TableMetrics:
    """Distance stub: color deltas looked up by id pair, geometric delta 0."""

    def __init__(self, regions, table):
        self.ids = {id(sv): i for i, sv in regions.items()}
        self.table = table
        self.calls = []

    def deltas(self, sv1, sv2):
        pair = tuple(sorted((self.ids[id(sv1)], self.ids[id(sv2)])))
        self.calls.append(pair)
        return self.table[pair], 0.0


@pytest.fixture
def three_regions():
    """Regions A=1, B=2, C=3 on the z = 0 plane, mutually adjacent."""
    regions = {
        1: flat_patch(0.0, 0.0, 0.0),
        2: flat_patch(1.0, 0.0, 0.0),
        3: flat_patch(0.5, 1.0, 0.0),
    }
    return regions, [(1, 2), (2, 1), (1, 3), (3, 2)]


@pytest.fixture
def line_regions():
    """Four patches on a line; neighbor color distances 0.1, 0.4, 0.2."""
    grays = [0.0, 0.1, 0.5, 0.7]
    regions = {i: flat_patch(float(i), 0.0, g) for i, g in enumerate(grays)}
    adjacency = [(0, 1), (1, 0), (1, 2), (2, 3), (3, 2)]
    return regions, adjacency


@pytest.fixture
def grid_regions():
    """3x3 grid of patches with 4-neighbor adjacency and varied grays."""
    grays = [0.0, 0.3, 0.35, 0.8, 0.1, 0.6, 0.65, 0.2, 0.9]
    regions = {}
    adjacency = []
    for k, g in enumerate(grays):
        row, col = divmod(k, 3)
        regions[k] = flat_patch(float(col), float(row), g)
        if col < 2:
            adjacency.append((k, k + 1))
        if row < 2:
            adjacency.append((k + 3, k))
    return regions, adjacency


@pytest.fixture
def ten_points():
    return [(float(k), 0.0, 0.0) for k in range(10)]
