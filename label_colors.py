"""
Conversion between labeled clouds and colored clouds.

Segmentations are often exchanged as colored point clouds, one color per
segment. label2color() paints a labeling with a palette of distinct colors,
color2label() recovers a labeling from such a cloud.
"""

from typing import Tuple

import numpy as np
from matplotlib import colormaps
from matplotlib.colors import hsv_to_rgb

from clustering_config import ConfigurationError
from partition_evaluation import LabeledCloud


GOLDEN_RATIO_CONJUGATE = 0.618033988749895
MAX_COLORS = 256 ** 3


def _cube_color(index: int) -> Tuple[int, int, int]:
    return (index >> 16) & 0xFF, (index >> 8) & 0xFF, index & 0xFF


def label_palette(n: int) -> np.ndarray:
    """
    Return `n` distinct RGB colors as uint8, shape (n, 3).

    The first 20 colors are matplotlib's tab20 qualitative palette; further
    colors walk the hue circle by the golden ratio, cycling through a few
    saturation/value levels. A walk color that rounds onto a color already
    taken is replaced by the next free color of the RGB cube, so the rows
    stay pairwise distinct up to MAX_COLORS.

    Raises:
        ConfigurationError: If more than MAX_COLORS colors are requested
    """
    if n > MAX_COLORS:
        raise ConfigurationError(f"Cannot build more than {MAX_COLORS} distinct colors, got {n}")
    base = colormaps["tab20"].colors
    candidates = [base[k] for k in range(min(n, len(base)))]
    for k in range(len(base), n):
        hue = (k * GOLDEN_RATIO_CONJUGATE) % 1.0
        saturation = (0.95, 0.75, 0.55)[k % 3]
        value = (0.95, 0.7, 0.85)[(k // 3) % 3]
        candidates.append(hsv_to_rgb((hue, saturation, value)))
    if not candidates:
        return np.zeros((0, 3), dtype=np.uint8)

    rounded = np.round(np.asarray(candidates, dtype=float)[:, :3] * 255).astype(np.uint8)
    seen = set()
    spare = 0
    for k, color in enumerate(map(tuple, rounded.tolist())):
        while color in seen:
            color = _cube_color(spare)
            spare += 1
        seen.add(color)
        rounded[k] = color
    return rounded


def label2color(cloud: LabeledCloud) -> Tuple[np.ndarray, np.ndarray]:
    """
    Paint every point with the palette color of its label.

    Labels are ranked in ascending order, the k-th label getting the k-th
    palette color.

    Returns:
        tuple: (points (N, 3), colors (N, 3) uint8)
    """
    unique, inverse = np.unique(cloud.labels, return_inverse=True)
    palette = label_palette(len(unique))
    return cloud.points.copy(), palette[inverse.reshape(-1)]


def color2label(points, colors) -> LabeledCloud:
    """Label points by color; labels follow the order of first appearance."""
    colors = np.asarray(colors).reshape(-1, 3)
    mapping = {}
    labels = np.empty(len(colors), dtype=np.int64)
    for k, rgb in enumerate(map(tuple, colors.tolist())):
        labels[k] = mapping.setdefault(rgb, len(mapping))
    return LabeledCloud(points, labels)
