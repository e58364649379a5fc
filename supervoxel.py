"""
Supervoxel: the unit region handled by the clustering graph.

A supervoxel is a set of 3D points with colors, summarised by four aggregate
descriptors used by the distance functions:

- mean color (RGB, values in [0, 255])
- centroid (3D point)
- unit normal (3D vector, oriented towards a fixed viewpoint)
- curvature (surface variation, in [0, 1/3])

Supervoxels are built by an external region builder (which may provide its own
normal estimate) and mutated in place by absorb() when the clustering graph
contracts an edge.

Usage:
    sv = Supervoxel(points, colors)
    sv.absorb(other)  # sv now covers the union of both point sets
"""

from typing import Optional, Sequence, Tuple

import numpy as np


ORIGIN = (0.0, 0.0, 0.0)


def compute_point_normal(points: np.ndarray) -> Tuple[np.ndarray, float]:
    """
    Estimate the surface normal and curvature of a point set by PCA.

    The normal is the eigenvector of the point covariance matrix associated
    with its smallest eigenvalue; the curvature is the surface variation
    λ0 / (λ0 + λ1 + λ2).

    Args:
        points (np.ndarray): Points with shape (N, 3)

    Returns:
        tuple: (normal, curvature) where normal is a unit vector of shape (3,)

    Notes:
        - A single point (or coincident points) has a zero covariance; the
          curvature is then reported as 0
        - The sign of the returned normal is arbitrary, see
          flip_normal_towards_viewpoint()
    """
    centered = points - points.mean(axis=0)
    covariance = centered.T @ centered / len(points)
    # eigh returns eigenvalues in ascending order
    eigenvalues, eigenvectors = np.linalg.eigh(covariance)
    normal = eigenvectors[:, 0]
    total = eigenvalues.sum()
    curvature = float(eigenvalues[0] / total) if total > 0 else 0.0
    return normal / np.linalg.norm(normal), max(curvature, 0.0)


def flip_normal_towards_viewpoint(point, normal, viewpoint=ORIGIN) -> np.ndarray:
    """Return `normal` with its sign chosen so it faces `viewpoint` from `point`."""
    to_viewpoint = np.asarray(viewpoint, dtype=float) - np.asarray(point, dtype=float)
    normal = np.asarray(normal, dtype=float)
    if np.dot(to_viewpoint, normal) < 0:
        return -normal
    return normal


class Supervoxel:
    """
    Region of points with aggregate color and oriented-surface descriptors.

    Attributes:
        points (np.ndarray): Point coordinates, shape (N, 3)
        colors (np.ndarray): Point colors in RGB [0, 255], shape (N, 3)
        normals (np.ndarray or None): Optional per-point normals, shape (N, 3)
        viewpoint (np.ndarray): Orientation reference for the aggregate normal
        mean_color (np.ndarray): Mean RGB color, shape (3,)
        centroid (np.ndarray): Mean point, shape (3,)
        normal (np.ndarray): Unit surface normal, shape (3,)
        curvature (float): Surface variation of the point set
    """

    def __init__(self, points, colors, normal=None, curvature: Optional[float] = None,
                 normals=None, viewpoint: Sequence[float] = ORIGIN):
        """
        Build a supervoxel from its points.

        Args:
            points (array-like): Point coordinates, shape (N, 3), N >= 1
            colors (array-like): RGB colors in [0, 255], shape (N, 3)
            normal (array-like, optional): Normal supplied by the region builder.
                If omitted, it is estimated by PCA over the points.
            curvature (float, optional): Curvature supplied with `normal`
            normals (array-like, optional): Per-point normals, carried along
                on merges
            viewpoint (sequence): Point the aggregate normal must face

        Raises:
            ValueError: If the arrays are empty or shapes disagree
        """
        self.points = np.asarray(points, dtype=float).reshape(-1, 3)
        self.colors = np.asarray(colors, dtype=float).reshape(-1, 3)
        if len(self.points) == 0:
            raise ValueError("A supervoxel needs at least one point")
        if len(self.colors) != len(self.points):
            raise ValueError(
                f"Got {len(self.colors)} colors for {len(self.points)} points")
        self.normals = None
        if normals is not None:
            self.normals = np.asarray(normals, dtype=float).reshape(-1, 3)
            if len(self.normals) != len(self.points):
                raise ValueError(
                    f"Got {len(self.normals)} normals for {len(self.points)} points")
        self.viewpoint = np.asarray(viewpoint, dtype=float)

        self.mean_color = self.colors.mean(axis=0)
        self.centroid = self.points.mean(axis=0)
        if normal is None:
            self._update_normal()
        else:
            normal = np.asarray(normal, dtype=float)
            self.normal = normal / np.linalg.norm(normal)
            self.curvature = 0.0 if curvature is None else float(curvature)

    def __len__(self):
        return len(self.points)

    def __repr__(self):
        return (f"Supervoxel(size={len(self)}, centroid={self.centroid.tolist()}, "
                f"normal={self.normal.tolist()})")

    def _update_normal(self):
        normal, curvature = compute_point_normal(self.points)
        self.normal = flip_normal_towards_viewpoint(self.centroid, normal, self.viewpoint)
        self.curvature = curvature

    def absorb(self, other: "Supervoxel") -> None:
        """
        Merge `other` into this supervoxel.

        The point sets are concatenated and every aggregate is recomputed over
        the union: mean color, centroid, and the PCA normal and curvature, the
        normal being oriented towards this supervoxel's viewpoint.

        Args:
            other (Supervoxel): Region being absorbed; it is left untouched

        Notes:
            - Per-point normals are kept only if both sides carry them
        """
        self.points = np.concatenate([self.points, other.points])
        self.colors = np.concatenate([self.colors, other.colors])
        if self.normals is not None and other.normals is not None:
            self.normals = np.concatenate([self.normals, other.normals])
        else:
            self.normals = None

        self.mean_color = self.colors.mean(axis=0)
        self.centroid = self.points.mean(axis=0)
        self._update_normal()
