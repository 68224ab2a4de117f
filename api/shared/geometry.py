"""
Planar geometry helpers shared by the clustering visualizations.

Points are handled as ``(n, 2)`` float arrays. The convex hull uses
Andrew's monotone chain so the output is counter-clockwise and collinear
boundary points are dropped.
"""

from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np
from scipy.spatial.distance import cdist


def as_points(points: Iterable[Sequence[float]] | np.ndarray) -> np.ndarray:
    """Convert any sequence of ``(x, y)`` pairs into an ``(n, 2)`` float array."""
    arr = np.asarray(list(points) if not isinstance(points, np.ndarray) else points, dtype=np.float64)
    if arr.size == 0:
        return np.empty((0, 2), dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValueError(f"Expected (n, 2) points, got shape {arr.shape}")
    return arr


def squared_distances(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Pairwise squared Euclidean distances, shape ``(len(a), len(b))``."""
    return cdist(np.atleast_2d(a), np.atleast_2d(b), metric="sqeuclidean")


def nearest_index(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Index of the nearest row of ``b`` for each row of ``a``.

    Ties resolve to the lowest index, i.e. the first-seen candidate.
    """
    return np.argmin(squared_distances(a, b), axis=1)


def cross(o: Sequence[float], a: Sequence[float], b: Sequence[float]) -> float:
    """Z component of ``(a - o) x (b - o)``; positive for a left turn."""
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def convex_hull(points: Iterable[Sequence[float]]) -> list[tuple[float, float]]:
    """Compute the convex hull of a 2D point set.

    Args:
        points: Iterable of ``(x, y)`` pairs.

    Returns:
        Hull vertices in counter-clockwise order starting from the lowest-x
        point. Inputs with fewer than three points are returned unchanged.
    """
    pts = [(float(p[0]), float(p[1])) for p in points]
    if len(pts) < 3:
        return pts

    ordered = sorted(pts)

    lower: list[tuple[float, float]] = []
    for p in ordered:
        while len(lower) >= 2 and cross(lower[-2], lower[-1], p) <= 0:
            lower.pop()
        lower.append(p)

    upper: list[tuple[float, float]] = []
    for p in reversed(ordered):
        while len(upper) >= 2 and cross(upper[-2], upper[-1], p) <= 0:
            upper.pop()
        upper.append(p)

    # Last point of each chain is the first point of the other
    return lower[:-1] + upper[:-1]


def bounding_box(points: np.ndarray) -> tuple[float, float, float, float]:
    """Return ``(x_min, x_max, y_min, y_max)`` of a point array."""
    pts = as_points(points)
    if len(pts) == 0:
        raise ValueError("Cannot compute the bounding box of an empty point set")
    return (
        float(pts[:, 0].min()),
        float(pts[:, 0].max()),
        float(pts[:, 1].min()),
        float(pts[:, 1].max()),
    )
