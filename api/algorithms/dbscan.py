"""
DBSCAN labelling and convex-hull overlay.

Cluster labels come from scikit-learn's DBSCAN. The overlay groups the
labelled points per cluster and draws the convex hull of each one; noise
points (label -1) never contribute to a hull.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from sklearn.cluster import DBSCAN

from ..shared.geometry import as_points, bounding_box, convex_hull
from ..shared.rendering import HULL_COLORS, Circle, PlotTransform, Polyline, Scene, axes, color_for

NOISE_LABEL = -1
TOTAL_POINTS = 200
NOISE_RATIO = 0.1


def generate_cluster_data(
    num_clusters: int,
    total: int = TOTAL_POINTS,
    noise_ratio: float = NOISE_RATIO,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Blobs of radius 0.3 inside ``[-1, 1]^2`` followed by uniform noise.

    ``floor(total * (1 - noise_ratio))`` points are split evenly across the
    clusters (remainder dropped), then ``floor(total * noise_ratio)`` noise
    points are appended.
    """
    if num_clusters < 1:
        raise ValueError("num_clusters must be >= 1")
    if not 0.0 <= noise_ratio < 1.0:
        raise ValueError("noise_ratio must be in [0, 1)")
    rng = rng or np.random.default_rng()

    cluster_count = math.floor(total * (1 - noise_ratio))
    per_cluster = cluster_count // num_clusters
    centers = rng.uniform(-0.8, 0.8, size=(num_clusters, 2))

    blobs = []
    for center in centers:
        angle = rng.uniform(0, 2 * math.pi, size=per_cluster)
        distance = rng.uniform(0, 0.3, size=per_cluster)
        offsets = np.column_stack([np.cos(angle), np.sin(angle)]) * distance[:, None]
        blobs.append(np.clip(center + offsets, -1.0, 1.0))

    noise = rng.uniform(-1.0, 1.0, size=(math.floor(total * noise_ratio), 2))
    return np.vstack(blobs + [noise]) if blobs else noise


def run_dbscan(points: np.ndarray, epsilon: float, min_points: int) -> np.ndarray:
    """Label points with DBSCAN; -1 marks noise."""
    points = as_points(points)
    if len(points) == 0:
        return np.empty(0, dtype=np.int64)
    model = DBSCAN(eps=epsilon, min_samples=min_points)
    return model.fit_predict(points).astype(np.int64)


@dataclass
class ClusterHull:
    label: int
    size: int
    hull: List[Tuple[float, float]] = field(default_factory=list)
    # (x_min, x_max, y_min, y_max) of the member points
    bounds: Optional[Tuple[float, float, float, float]] = None

    @property
    def drawable(self) -> bool:
        return len(self.hull) >= 3


def group_by_label(points: np.ndarray, labels: Sequence[int]) -> Dict[int, np.ndarray]:
    """Points per cluster label, noise excluded, in ascending label order."""
    points = as_points(points)
    labels = np.asarray(labels, dtype=np.int64)
    if len(labels) != len(points):
        raise ValueError(f"Got {len(labels)} labels for {len(points)} points")
    return {
        int(label): points[labels == label]
        for label in np.unique(labels)
        if label != NOISE_LABEL
    }


def cluster_hulls(points: np.ndarray, labels: Sequence[int]) -> List[ClusterHull]:
    """Convex hull of every non-noise cluster."""
    return [
        ClusterHull(label=label, size=len(members), hull=convex_hull(members), bounds=bounding_box(members))
        for label, members in group_by_label(points, labels).items()
    ]


def render_overlay(points: np.ndarray, labels: Sequence[int], width: int = 800, height: int = 400) -> Scene:
    """Describe the DBSCAN canvas: axes, translucent hulls, then every point."""
    points = as_points(points)
    labels = np.asarray(labels, dtype=np.int64)
    t = PlotTransform(width, height, margin=40)
    scene = Scene(width=width, height=height)
    scene.extend(axes(t))

    hulls = cluster_hulls(points, labels)
    for hull in hulls:
        if not hull.drawable:
            continue
        color = color_for(hull.label, HULL_COLORS)
        scene.add(Polyline(
            [t.to_canvas(x, y) for x, y in hull.hull],
            stroke=color,
            fill=color + "33",
            line_width=2,
            closed=True,
        ))

    for (x, y), label in zip(points, labels):
        cx, cy = t.to_canvas(float(x), float(y))
        if label == NOISE_LABEL:
            scene.add(Circle(cx, cy, 3, fill="#888888"))
        else:
            scene.add(Circle(cx, cy, 4, fill=color_for(int(label), HULL_COLORS)))

    scene.info = {
        "clusters": len(hulls),
        "noise": int((labels == NOISE_LABEL).sum()),
    }
    return scene
