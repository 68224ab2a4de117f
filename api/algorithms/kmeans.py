"""
K-Means simulation for the canvas visualizer.

The simulation is expressed as an immutable ``KMeansState`` and a pure
``step`` function: assign every point to its nearest centroid, then move
each centroid to the mean of its points. Empty clusters are re-seeded at a
random position inside the canvas bounds. There is no convergence check;
``run`` always performs the configured number of iterations so each one can
be animated.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Literal, Optional, Tuple

import numpy as np

from ..shared.geometry import nearest_index, squared_distances
from ..shared.rendering import (
    CLUSTER_COLORS,
    Circle,
    Scene,
    Text,
    color_for,
    region_grid,
    tint_image,
)

InitMode = Literal["random", "kmeans++"]

# (x_min, x_max, y_min, y_max) of the default 800x600 canvas, inset by 10px
Bounds = Tuple[float, float, float, float]
DEFAULT_BOUNDS: Bounds = (10.0, 790.0, 10.0, 590.0)


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, copy=True)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class KMeansParams:
    points: int = 100
    clusters: int = 1
    iterations: int = 10
    init_mode: InitMode = "random"
    bounds: Bounds = DEFAULT_BOUNDS


@dataclass(frozen=True)
class KMeansState:
    """One frame of the simulation.

    ``labels`` are the assignments computed against the previous centroids;
    ``centroids`` are the updated means. Before the first step every label
    is -1.
    """

    points: np.ndarray
    centroids: np.ndarray
    labels: np.ndarray
    iteration: int = 0
    shift: float = 0.0

    @property
    def k(self) -> int:
        return len(self.centroids)

    def to_dict(self) -> dict:
        return {
            "iteration": self.iteration,
            "shift": self.shift,
            "points": self.points.tolist(),
            "labels": self.labels.tolist(),
            "centroids": self.centroids.tolist(),
        }


# ============= Data and initialization =============


def uniform_in_bounds(n: int, bounds: Bounds, rng: np.random.Generator) -> np.ndarray:
    x_min, x_max, y_min, y_max = bounds
    xs = rng.uniform(x_min, x_max, size=n)
    ys = rng.uniform(y_min, y_max, size=n)
    return np.column_stack([xs, ys])


def generate_points(n: int, bounds: Bounds = DEFAULT_BOUNDS, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Uniformly scattered points inside the canvas bounds."""
    rng = rng or np.random.default_rng()
    return uniform_in_bounds(n, bounds, rng)


def initialize_centroids(
    points: np.ndarray,
    k: int,
    mode: InitMode = "random",
    bounds: Bounds = DEFAULT_BOUNDS,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Pick the starting centroids.

    Args:
        points: ``(n, 2)`` input points.
        k: Number of centroids.
        mode: ``"random"`` draws uniformly inside ``bounds``; ``"kmeans++"``
            picks input points sequentially with probability proportional to
            the squared distance to the closest centroid chosen so far.
        bounds: Sampling bounds for the random mode.
        rng: Random generator.

    Returns:
        ``(k, 2)`` array of centroids.
    """
    if k < 1:
        raise ValueError("k must be >= 1")
    rng = rng or np.random.default_rng()
    points = np.asarray(points, dtype=np.float64)

    if mode == "random":
        return uniform_in_bounds(k, bounds, rng)
    if mode != "kmeans++":
        raise ValueError(f"Unknown init mode: {mode}")
    if len(points) == 0:
        raise ValueError("kmeans++ initialization needs at least one point")

    chosen = [points[rng.integers(len(points))]]
    while len(chosen) < k:
        distances = squared_distances(points, np.array(chosen)).min(axis=1)
        total = distances.sum()
        if total <= 0:
            chosen.append(points[rng.integers(len(points))])
            continue
        r = rng.random() * total
        idx = int(np.searchsorted(np.cumsum(distances), r, side="left"))
        chosen.append(points[min(idx, len(points) - 1)])
    return np.array(chosen, dtype=np.float64)


def initial_state(points: np.ndarray, centroids: np.ndarray) -> KMeansState:
    points = np.asarray(points, dtype=np.float64)
    return KMeansState(
        points=_frozen(points),
        centroids=_frozen(np.asarray(centroids, dtype=np.float64)),
        labels=_frozen(np.full(len(points), -1, dtype=np.int64)),
    )


# ============= Iteration =============


def assign(points: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """Nearest centroid for each point (squared Euclidean, first-seen wins)."""
    if len(points) == 0:
        return np.empty(0, dtype=np.int64)
    return nearest_index(points, centroids).astype(np.int64)


def update_centroids(
    points: np.ndarray,
    labels: np.ndarray,
    k: int,
    bounds: Bounds = DEFAULT_BOUNDS,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Mean of each cluster's points; empty clusters get a random position."""
    rng = rng or np.random.default_rng()
    centroids = np.empty((k, 2), dtype=np.float64)
    counts = np.bincount(labels, minlength=k) if len(labels) else np.zeros(k, dtype=np.int64)
    for i in range(k):
        if counts[i]:
            centroids[i] = points[labels == i].mean(axis=0)
        else:
            centroids[i] = uniform_in_bounds(1, bounds, rng)[0]
    return centroids


def step(state: KMeansState, bounds: Bounds = DEFAULT_BOUNDS, rng: Optional[np.random.Generator] = None) -> KMeansState:
    """Advance one assign-and-update iteration."""
    labels = assign(state.points, state.centroids)
    centroids = update_centroids(state.points, labels, state.k, bounds, rng)
    shift = float(np.sqrt(((centroids - state.centroids) ** 2).sum(axis=1)).max()) if state.k else 0.0
    return replace(
        state,
        centroids=_frozen(centroids),
        labels=_frozen(labels),
        iteration=state.iteration + 1,
        shift=shift,
    )


def run(
    params: KMeansParams,
    rng: Optional[np.random.Generator] = None,
    points: Optional[np.ndarray] = None,
    centroids: Optional[np.ndarray] = None,
) -> List[KMeansState]:
    """Run the full iteration budget and return every frame.

    The returned list starts with the initial state, so it holds
    ``iterations + 1`` entries.
    """
    rng = rng or np.random.default_rng()
    if points is None:
        points = generate_points(params.points, params.bounds, rng)
    if centroids is None:
        centroids = initialize_centroids(points, params.clusters, params.init_mode, params.bounds, rng)

    state = initial_state(points, centroids)
    history = [state]
    for _ in range(params.iterations):
        state = step(state, params.bounds, rng)
        history.append(state)
    return history


# ============= Rendering =============


def render_frame(state: KMeansState, width: int = 800, height: int = 600, stride: int = 4, include_tint: bool = False) -> Scene:
    """Describe a K-Means frame: Voronoi tint, points and centroid rings."""
    scene = Scene(width=width, height=height)
    regions = region_grid(state.centroids, width, height, stride)
    scene.layers["regions"] = regions
    scene.layers["stride"] = stride
    if include_tint:
        tint = tint_image(regions)
        scene.layers["tint"] = tint
        # msgpack sends the RGBA bytes flat
        scene.layers["tint_shape"] = list(tint.shape)

    for (x, y), label in zip(state.points, state.labels):
        fill = color_for(int(label)) if label >= 0 else CLUSTER_COLORS[0]
        scene.add(Circle(float(x), float(y), 8, fill=fill))

    for i, (x, y) in enumerate(state.centroids):
        scene.add(Circle(float(x), float(y), 8, stroke=color_for(i), line_width=3))
        scene.add(Text(float(x) + 10, float(y) - 10, f"Cluster {i + 1}"))

    scene.info = {"iteration": state.iteration, "shift": state.shift, "clusters": state.k}
    return scene
