"""
K-nearest-neighbour classification for the click-to-classify canvas.

Majority vote over the ``k`` closest points. When several labels share the
top count the default ``"nearest"`` tie-break returns the label of the
closest neighbour among the tied labels; ``"lowest"`` returns the smallest
tied label instead.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import List, Literal, Optional, Tuple

import numpy as np

from ..shared.geometry import squared_distances
from ..shared.rendering import CLUSTER_COLORS, Circle, Polyline, Scene, Text, color_for
from .kmeans import DEFAULT_BOUNDS, Bounds, uniform_in_bounds

TieBreak = Literal["nearest", "lowest"]


@dataclass
class Neighbor:
    index: int
    x: float
    y: float
    label: int
    distance: float


@dataclass
class KNNResult:
    prediction: Optional[int]
    neighbors: List[Neighbor] = field(default_factory=list)
    votes: dict = field(default_factory=dict)
    tied_labels: List[int] = field(default_factory=list)


def generate_labeled_points(
    n: int,
    classes: int,
    bounds: Bounds = DEFAULT_BOUNDS,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Uniform points with uniformly random labels in ``range(classes)``."""
    rng = rng or np.random.default_rng()
    return uniform_in_bounds(n, bounds, rng), rng.integers(0, classes, size=n)


def classify(
    points: np.ndarray,
    labels: np.ndarray,
    query: Tuple[float, float],
    k: int,
    tie_break: TieBreak = "nearest",
) -> KNNResult:
    """Classify ``query`` by majority vote over its ``k`` nearest points."""
    points = np.asarray(points, dtype=np.float64)
    labels = np.asarray(labels, dtype=np.int64)
    if len(points) == 0:
        return KNNResult(prediction=None)
    if k < 1:
        raise ValueError("k must be >= 1")

    dist2 = squared_distances(np.asarray([query], dtype=np.float64), points)[0]
    order = np.argsort(dist2, kind="stable")[:k]
    neighbors = [
        Neighbor(
            index=int(i),
            x=float(points[i, 0]),
            y=float(points[i, 1]),
            label=int(labels[i]),
            distance=float(np.sqrt(dist2[i])),
        )
        for i in order
    ]

    votes = Counter(n.label for n in neighbors)
    top = max(votes.values())
    tied = sorted(label for label, count in votes.items() if count == top)

    if tie_break == "lowest":
        prediction = tied[0]
    else:
        # Neighbours are sorted by distance, so the first match is the closest
        prediction = next(n.label for n in neighbors if n.label in tied)

    return KNNResult(prediction=prediction, neighbors=neighbors, votes=dict(votes), tied_labels=tied)


def render_frame(
    points: np.ndarray,
    labels: np.ndarray,
    query: Optional[Tuple[float, float]] = None,
    result: Optional[KNNResult] = None,
    width: int = 800,
    height: int = 600,
) -> Scene:
    """Points, neighbour links with distances, and the classified query point."""
    scene = Scene(width=width, height=height, background="#000000")
    for (x, y), label in zip(points, labels):
        scene.add(Circle(float(x), float(y), 5, fill=color_for(int(label), CLUSTER_COLORS)))

    if query is not None and result is not None:
        qx, qy = query
        for n in result.neighbors:
            scene.add(Polyline([(qx, qy), (n.x, n.y)], stroke="#aaa", line_width=1.5))
            scene.add(Text((qx + n.x) / 2 + 5, (qy + n.y) / 2 - 5, f"{n.distance:.1f}", fill="white", font="12px sans-serif"))
    if query is not None:
        fill = color_for(result.prediction) if result is not None and result.prediction is not None else "gray"
        scene.add(Circle(query[0], query[1], 8, fill=fill, stroke="black", line_width=2))
    return scene
