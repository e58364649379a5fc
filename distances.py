"""
Color and geometric dissimilarities between two supervoxels.

Both distances are normalised to roughly [0, 1] so that they can be blended
into a single merge weight by a merging criterion (see merging_criteria.py).

Color distances:
    - LAB_CIEDE00: CIEDE2000 difference of the mean colors in CIE Lab,
      divided by LAB_RANGE
    - RGB_EUCL: Euclidean distance of the mean RGB colors, divided by RGB_RANGE

Geometric distances:
    - NORMALS_DIFF: mean of |n1 x n2|, |n1 . C| and |n2 . C|, where C is the
      unit vector joining the two centroids
    - CONVEX_NORMALS_DIFF: as NORMALS_DIFF, halved for convex junctions

Color conversion and the CIEDE2000 formula come from scikit-image.
"""

import numpy as np
from skimage import color

from clustering_config import ClusteringConfig, ColorDistance, GeometricDistance


LAB_RANGE = 100.0
RGB_RANGE = 255.0 * np.sqrt(3)
CONVEX_DISCOUNT = 0.5


def rgb2lab(rgb) -> np.ndarray:
    """Convert one RGB color in [0, 255] to CIE Lab (D65)."""
    rgb = np.clip(np.asarray(rgb, dtype=float) / 255.0, 0.0, 1.0)
    return color.rgb2lab(rgb.reshape(1, 1, 3)).reshape(3)


def lab_ciede00(rgb1, rgb2) -> float:
    """
    Normalised perceptual color difference between two RGB colors.

    Args:
        rgb1, rgb2 (array-like): RGB colors with values in [0, 255]

    Returns:
        float: CIEDE2000 difference divided by LAB_RANGE
    """
    delta = color.deltaE_ciede2000(rgb2lab(rgb1), rgb2lab(rgb2))
    return float(delta) / LAB_RANGE


def rgb_eucl(rgb1, rgb2) -> float:
    """Normalised Euclidean RGB distance, in [0, 1] for colors in [0, 255]."""
    diff = np.asarray(rgb1, dtype=float) - np.asarray(rgb2, dtype=float)
    return float(np.linalg.norm(diff)) / RGB_RANGE


def _centroid_direction(centroid1, centroid2) -> np.ndarray:
    c = np.asarray(centroid2, dtype=float) - np.asarray(centroid1, dtype=float)
    norm = np.linalg.norm(c)
    if norm == 0:
        # coincident centroids carry no direction
        return np.zeros(3)
    return c / norm


def normals_diff(normal1, centroid1, normal2, centroid2) -> float:
    """
    Geometric dissimilarity of two oriented surface patches.

    Args:
        normal1, normal2 (array-like): Unit normals, shape (3,)
        centroid1, centroid2 (array-like): Patch centroids, shape (3,)

    Returns:
        float: (|n1 x n2| + |n1 . C| + |n2 . C|) / 3, in [0, 1]

    Interpretation:
        - Coplanar patches side by side → 0
        - Perpendicular patches, or patches facing each other → close to 1
    """
    n1 = np.asarray(normal1, dtype=float)
    n2 = np.asarray(normal2, dtype=float)
    c = _centroid_direction(centroid1, centroid2)

    n1xn2 = np.linalg.norm(np.cross(n1, n2))
    n1_c = abs(np.dot(n1, c))
    n2_c = abs(np.dot(n2, c))
    return float((n1xn2 + n1_c + n2_c) / 3)


def is_convex(normal1, centroid1, normal2, centroid2) -> bool:
    """True when the two patches meet at a convex junction: (n1 - n2) . C < 0."""
    c = _centroid_direction(centroid1, centroid2)
    diff = np.asarray(normal1, dtype=float) - np.asarray(normal2, dtype=float)
    return bool(np.dot(diff, c) < 0)


def convex_normals_diff(normal1, centroid1, normal2, centroid2) -> float:
    """
    normals_diff() discounted on convex junctions.

    Args:
        normal1, normal2 (array-like): Unit normals, shape (3,)
        centroid1, centroid2 (array-like): Patch centroids, shape (3,)

    Returns:
        float: normals_diff() * CONVEX_DISCOUNT when is_convex() holds,
            plain normals_diff() otherwise
    """
    delta = normals_diff(normal1, centroid1, normal2, centroid2)
    if is_convex(normal1, centroid1, normal2, centroid2):
        return delta * CONVEX_DISCOUNT
    return delta


_COLOR_DISTANCES = {
    ColorDistance.LAB_CIEDE00: lab_ciede00,
    ColorDistance.RGB_EUCL: rgb_eucl,
}

_GEOMETRIC_DISTANCES = {
    GeometricDistance.NORMALS_DIFF: normals_diff,
    GeometricDistance.CONVEX_NORMALS_DIFF: convex_normals_diff,
}


class DistanceMetrics:
    """
    Pair of distance functions selected once for a clustering run.

    Attributes:
        delta_c_type (ColorDistance): Selected color distance
        delta_g_type (GeometricDistance): Selected geometric distance
    """

    def __init__(self, delta_c=ColorDistance.LAB_CIEDE00,
                 delta_g=GeometricDistance.NORMALS_DIFF):
        self.delta_c_type = delta_c
        self.delta_g_type = delta_g
        self._color = _COLOR_DISTANCES[delta_c]
        self._geometric = _GEOMETRIC_DISTANCES[delta_g]

    @classmethod
    def from_config(cls, config: ClusteringConfig) -> "DistanceMetrics":
        return cls(config.delta_c, config.delta_g)

    def color(self, sv1, sv2) -> float:
        return self._color(sv1.mean_color, sv2.mean_color)

    def geometric(self, sv1, sv2) -> float:
        return self._geometric(sv1.normal, sv1.centroid, sv2.normal, sv2.centroid)

    def deltas(self, sv1, sv2):
        """Return (delta_c, delta_g) for two supervoxels."""
        return self.color(sv1, sv2), self.geometric(sv1, sv2)
