"""Tests for label/color conversion."""

import numpy as np
import pytest

from clustering_config import ConfigurationError
from label_colors import MAX_COLORS, color2label, label2color, label_palette
from conftest import cloud


def test_palette_shape_and_distinct_colors():
    palette = label_palette(40)
    assert palette.shape == (40, 3)
    assert palette.dtype == np.uint8
    assert len({tuple(c) for c in palette[:20].tolist()}) == 20
    assert label_palette(0).shape == (0, 3)


def test_round_trip_keeps_partition(ten_points):
    labels = [5, 5, 2, 2, 2, 9, 9, 9, 9, 5]
    points, colors = label2color(cloud(ten_points, labels))
    recovered = color2label(points, colors)

    assert recovered.points.tolist() == [list(p) for p in ten_points]
    assert recovered.labels.tolist() == [0, 0, 1, 1, 1, 2, 2, 2, 2, 0]


def test_large_palette_stays_distinct():
    palette = label_palette(3000)
    assert len({tuple(c) for c in palette.tolist()}) == 3000


def test_round_trip_keeps_many_labels():
    n = 3000
    points = [(float(k), 0.0, 0.0) for k in range(n)]
    points, colors = label2color(cloud(points, list(range(n))))
    recovered = color2label(points, colors)
    assert recovered.labels.tolist() == list(range(n))


def test_palette_size_limit():
    with pytest.raises(ConfigurationError):
        label_palette(MAX_COLORS + 1)
