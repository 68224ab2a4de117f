"""
Self-Organizing Map training as an explicit state machine.

Each ``step`` picks one random input, finds its best matching unit (BMU)
and pulls every node toward the input by a Gaussian of its lattice
distance to the BMU. Learning rate and neighborhood radius both decay as
``value * exp(-t / iterations)``. Training is capped at ``iterations``
steps; further calls return the state unchanged.

Frames are produced by carrying the state forward one step at a time, so
rendering frame ``n`` costs one step rather than ``n``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import List, Optional

import numpy as np

from ..shared.rendering import Circle, PlotTransform, Polyline, Scene


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, copy=True)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class SOMParams:
    grid_size: int = 10
    learning_rate: float = 0.1
    iterations: int = 100
    sigma: float = 1.0
    grid_size_y: Optional[int] = None

    @property
    def rows(self) -> int:
        return self.grid_size

    @property
    def cols(self) -> int:
        return self.grid_size_y if self.grid_size_y is not None else self.grid_size


@dataclass(frozen=True)
class SOMState:
    """Weights are stored row-major: node ``i * cols + j`` sits at lattice ``(i, j)``."""

    weights: np.ndarray
    lattice: np.ndarray
    rows: int
    cols: int
    iteration: int = 0
    bmu_index: Optional[int] = None
    bmu_input: Optional[np.ndarray] = None

    def weight_grid(self) -> np.ndarray:
        return self.weights.reshape(self.rows, self.cols, -1)

    def to_dict(self) -> dict:
        return {
            "iteration": self.iteration,
            "rows": self.rows,
            "cols": self.cols,
            "weights": self.weight_grid().tolist(),
            "bmu_index": self.bmu_index,
            "bmu_input": self.bmu_input.tolist() if self.bmu_input is not None else None,
        }


# ============= Math =============


def neighborhood_influence(grid_distance, sigma: float):
    """Gaussian neighborhood ``exp(-d^2 / (2 sigma^2))``."""
    if sigma <= 0:
        raise ValueError("sigma must be positive")
    d = np.asarray(grid_distance, dtype=np.float64)
    return np.exp(-(d ** 2) / (2 * sigma ** 2))


def decay(value: float, iteration: int, iterations: int) -> float:
    return value * math.exp(-iteration / iterations)


def find_bmu(weights: np.ndarray, x: np.ndarray) -> int:
    """Index of the node closest to ``x``; the first node wins ties."""
    return int(np.argmin(np.linalg.norm(weights - x, axis=1)))


# ============= Data and state =============


def generate_ring(n: int = 200, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Points on a ring of radius 0.6 to 0.8 around the origin."""
    rng = rng or np.random.default_rng()
    angle = rng.uniform(0, 2 * math.pi, size=n)
    radius = 0.6 + rng.uniform(0, 0.2, size=n)
    return np.column_stack([np.cos(angle) * radius, np.sin(angle) * radius])


def lattice_coordinates(rows: int, cols: int) -> np.ndarray:
    ii, jj = np.meshgrid(np.arange(rows), np.arange(cols), indexing="ij")
    return np.column_stack([ii.ravel(), jj.ravel()]).astype(np.float64)


def initial_state(
    rows: int,
    cols: int,
    dims: int = 2,
    rng: Optional[np.random.Generator] = None,
    weights: Optional[np.ndarray] = None,
) -> SOMState:
    """Fresh map with weights uniform in ``[-1, 1]`` unless ``weights`` is given."""
    if rows < 1 or cols < 1:
        raise ValueError("grid dimensions must be >= 1")
    rng = rng or np.random.default_rng()
    if weights is None:
        weights = rng.uniform(-1.0, 1.0, size=(rows * cols, dims))
    else:
        weights = np.asarray(weights, dtype=np.float64).reshape(rows * cols, -1)
    return SOMState(
        weights=_frozen(weights),
        lattice=_frozen(lattice_coordinates(rows, cols)),
        rows=rows,
        cols=cols,
    )


# ============= Training =============


def update(state: SOMState, x: np.ndarray, params: SOMParams) -> SOMState:
    """Apply one competitive-learning update for input ``x``."""
    t = state.iteration
    bmu = find_bmu(state.weights, x)
    lr = decay(params.learning_rate, t, params.iterations)
    sigma = decay(params.sigma, t, params.iterations)

    grid_dist = np.linalg.norm(state.lattice - state.lattice[bmu], axis=1)
    influence = neighborhood_influence(grid_dist, sigma)[:, None]
    weights = state.weights + lr * influence * (x - state.weights)

    return replace(
        state,
        weights=_frozen(weights),
        iteration=t + 1,
        bmu_index=bmu,
        bmu_input=_frozen(x),
    )


def step(state: SOMState, data: np.ndarray, params: SOMParams, rng: Optional[np.random.Generator] = None) -> SOMState:
    """Train on one random input; no-op once the iteration cap is reached."""
    if state.iteration >= params.iterations:
        return state
    rng = rng or np.random.default_rng()
    x = np.asarray(data[rng.integers(len(data))], dtype=np.float64)
    return update(state, x, params)


def train(
    data: np.ndarray,
    params: SOMParams,
    rng: Optional[np.random.Generator] = None,
    initial_weights: Optional[np.ndarray] = None,
) -> tuple[SOMState, List[np.ndarray], List[np.ndarray]]:
    """Train for the full budget, recording weights before each step and each input.

    Returns:
        ``(final_state, weight_history, input_history)``
    """
    rng = rng or np.random.default_rng()
    data = np.asarray(data, dtype=np.float64)
    if data.ndim != 2 or len(data) == 0:
        raise ValueError("data must be a non-empty 2D array")

    state = initial_state(params.rows, params.cols, data.shape[1], rng, initial_weights)
    if state.weights.shape[1] != data.shape[1]:
        raise ValueError(
            f"initial weights have {state.weights.shape[1]} features, data has {data.shape[1]}"
        )

    weight_history: List[np.ndarray] = []
    input_history: List[np.ndarray] = []
    while state.iteration < params.iterations:
        weight_history.append(state.weight_grid())
        state = step(state, data, params, rng)
        input_history.append(state.bmu_input)
    return state, weight_history, input_history


# ============= Rendering =============


def render_frame(state: SOMState, data: np.ndarray, width: int = 1000, height: int = 600, frame: Optional[int] = None) -> Scene:
    """Describe a SOM frame: data, lattice links, nodes and the current BMU."""
    frame = state.iteration if frame is None else frame
    t = PlotTransform(width, height, margin=40)
    scene = Scene(width=width, height=height, background="#0a0a0a")

    m = t.margin
    scene.add(Polyline([(m, m), (width - m, m), (width - m, height - m), (m, height - m)], stroke="#444", closed=True))
    scene.add(Polyline([(width / 2, m), (width / 2, height - m)], stroke="#444"))
    scene.add(Polyline([(m, height / 2), (width - m, height / 2)], stroke="#444"))

    for x, y in t.map_points(data):
        scene.add(Circle(x, y, 3, fill="rgba(96, 165, 250, 0.7)"))

    nodes = [t.to_canvas(float(w[0]), float(w[1])) for w in state.weights]
    link = "rgba(255,255,255,0.4)"
    for i in range(state.rows):
        for j in range(state.cols):
            here = nodes[i * state.cols + j]
            if j < state.cols - 1:
                scene.add(Polyline([here, nodes[i * state.cols + j + 1]], stroke=link))
            if i < state.rows - 1:
                scene.add(Polyline([here, nodes[(i + 1) * state.cols + j]], stroke=link))

    for x, y in nodes:
        scene.add(Circle(x, y, 4, fill="#ff3366"))

    if state.bmu_index is not None:
        bx, by = nodes[state.bmu_index]
        pulse = 6 + math.sin(frame * 0.1) * 2
        scene.add(Circle(bx, by, pulse, stroke="#22c55e", line_width=3))
        if state.bmu_input is not None:
            ix, iy = t.to_canvas(float(state.bmu_input[0]), float(state.bmu_input[1]))
            scene.add(Circle(ix, iy, 5, fill="#FFD700"))
            scene.add(Polyline([(ix, iy), (bx, by)], stroke="#FFD700", line_width=1.5, dash=[5, 5]))

    scene.info = {"iteration": state.iteration, "frame": frame}
    return scene
