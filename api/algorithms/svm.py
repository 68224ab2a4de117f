"""
Instructional kernel SVM used by the SVM canvas.

This is not a trained SVM. It builds a pseudo-dual solution that makes the
role of C, the kernel and gamma visible:

1. score every training point with ``sum_j y_j K(x_i, x_j)``;
2. points whose score magnitude is below ``1 / C`` get ``alpha = +-C``,
   every other point gets zero;
3. the decision value is ``sum_i alpha_i K(x, x_i)``.

The scikit-learn ``SVC`` reference lives in the classifiers router.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

import numpy as np
from scipy.spatial.distance import cdist

from ..shared.rendering import Circle, PlotTransform, Polyline, Scene, Text, axes

Kernel = Literal["linear", "rbf"]

SUPPORT_VECTOR_BAND = 1.05
DOMAIN = (-5.0, 5.0)


@dataclass(frozen=True)
class SVMParams:
    c: float = 1.0
    kernel: Kernel = "rbf"
    gamma: float = 0.5
    noise: float = 0.1


def generate_data(n: int = 25, noise: float = 0.1, kernel: Kernel = "rbf", rng: Optional[np.random.Generator] = None):
    """Points in ``[-2, 2]^2`` with a linear or radial ground truth.

    Each label is flipped with probability ``noise``.
    """
    rng = rng or np.random.default_rng()
    X = rng.uniform(-2.0, 2.0, size=(n, 2))
    if kernel == "linear":
        truth = X[:, 1] > 0.5 * X[:, 0]
    else:
        truth = np.hypot(X[:, 0], X[:, 1]) < 1.2
    flip = rng.random(n) <= noise
    y = np.where(flip, ~truth, truth).astype(np.int64)
    return X, y


def kernel_matrix(A: np.ndarray, B: np.ndarray, kernel: Kernel, gamma: float) -> np.ndarray:
    A = np.atleast_2d(np.asarray(A, dtype=np.float64))
    B = np.atleast_2d(np.asarray(B, dtype=np.float64))
    if kernel == "linear":
        return A @ B.T
    if kernel == "rbf":
        return np.exp(-gamma * cdist(A, B, metric="sqeuclidean"))
    raise ValueError(f"Unknown kernel: {kernel}")


class InstructionalSVM:
    """Pseudo-dual classifier over a fixed training set."""

    def __init__(self, X: np.ndarray, y: np.ndarray, params: SVMParams):
        if params.c <= 0:
            raise ValueError("C must be positive")
        self.X = np.asarray(X, dtype=np.float64)
        self.y = np.asarray(y, dtype=np.int64)
        self.params = params
        signs = np.where(self.y == 1, 1.0, -1.0)

        if len(self.X):
            base = self._kernel(self.X) @ signs
        else:
            base = np.empty(0)
        cutoff = 1.0 / params.c
        self.alphas = np.where(np.abs(base) < cutoff, signs * params.c, 0.0)

    def _kernel(self, points: np.ndarray) -> np.ndarray:
        return kernel_matrix(points, self.X, self.params.kernel, self.params.gamma)

    def decision_function(self, points: np.ndarray) -> np.ndarray:
        points = np.atleast_2d(np.asarray(points, dtype=np.float64))
        if len(self.X) == 0:
            return np.zeros(len(points))
        return self._kernel(points) @ self.alphas

    def predict(self, points: np.ndarray) -> np.ndarray:
        return (self.decision_function(points) > 0).astype(np.int64)

    def support_vectors(self) -> np.ndarray:
        """Indices of training points inside the (slightly widened) margin."""
        if len(self.X) == 0:
            return np.empty(0, dtype=np.int64)
        return np.flatnonzero(np.abs(self.decision_function(self.X)) <= SUPPORT_VECTOR_BAND)

    def errors(self) -> int:
        if len(self.X) == 0:
            return 0
        return int((self.predict(self.X) != self.y).sum())

    def decision_grid(self, resolution: int = 200) -> tuple[np.ndarray, np.ndarray]:
        """Decision values and cell classes over ``[-5, 5]^2``.

        Row index follows the canvas y axis. Classes: 0 margin
        (``|raw| < 1``), 1 positive, -1 negative.
        """
        lo, hi = DOMAIN
        coords = lo + np.arange(resolution) / resolution * (hi - lo)
        gx, gy = np.meshgrid(coords, coords)
        raw = self.decision_function(np.column_stack([gx.ravel(), gy.ravel()])).reshape(resolution, resolution)
        classes = np.where(np.abs(raw) < 1.0, 0, np.where(raw > 0, 1, -1))
        return raw, classes

    def linear_weights(self) -> np.ndarray:
        """``w = sum_i alpha_i x_i``; only meaningful for the linear kernel."""
        if self.params.kernel != "linear":
            raise ValueError("Weights exist only for the linear kernel")
        return self.alphas @ self.X if len(self.X) else np.zeros(2)

    def level_segment(self, level: float) -> Optional[np.ndarray]:
        """Endpoints of ``w . p = level`` clipped to the plot domain.

        Returns None when the line misses the domain or ``w`` vanishes.
        """
        w = self.linear_weights()
        lo, hi = DOMAIN
        tol = 1e-9
        candidates = []
        if abs(w[1]) > tol:
            for x in (lo, hi):
                candidates.append((x, (level - w[0] * x) / w[1]))
        if abs(w[0]) > tol:
            for y in (lo, hi):
                candidates.append(((level - w[1] * y) / w[0], y))
        inside = [p for p in candidates if lo - tol <= p[0] <= hi + tol and lo - tol <= p[1] <= hi + tol]
        if len(inside) < 2:
            return None
        pts = np.array(inside)
        # Extreme points along the line direction
        along = pts @ np.array([-w[1], w[0]])
        start, end = pts[np.argmin(along)], pts[np.argmax(along)]
        if np.allclose(start, end):
            return None
        return np.vstack([start, end])


def render_frame(model: InstructionalSVM, width: int = 800, height: int = 400, resolution: int = 100) -> Scene:
    """Decision classes as a raster layer, axes, points and support vector rings."""
    lo, hi = DOMAIN
    t = PlotTransform(width, height, margin=40, x_range=DOMAIN, y_range=DOMAIN, invert_y=False)
    scene = Scene(width=width, height=height)
    _, classes = model.decision_grid(resolution)
    scene.layers["classes"] = classes
    scene.layers["resolution"] = resolution

    # Decision line and the +-1 margins
    if model.params.kernel == "linear":
        for level, color in ((0.0, "#000"), (1.0, "#aaa"), (-1.0, "#aaa")):
            segment = model.level_segment(level)
            if segment is not None:
                scene.add(Polyline(t.map_points(segment), stroke=color))

    scene.extend(axes(t, labels=(f"{lo:g}", "0", f"{hi:g}")))

    support = set(model.support_vectors().tolist())
    for i, ((x, y), label) in enumerate(zip(model.X, model.y)):
        cx, cy = t.to_canvas(float(x), float(y))
        scene.add(Circle(cx, cy, 4, fill="#4ade80" if label == 1 else "#f87171"))
        if i in support:
            scene.add(Circle(cx, cy, 6, stroke="#fff", line_width=2))

    p = model.params
    m = t.margin
    lines = [f"C: {p.c:.1f}", f"Kernel: {'Linear' if p.kernel == 'linear' else 'RBF'}"]
    if p.kernel == "rbf":
        lines.append(f"Gamma: {p.gamma:.1f}")
    lines.append(f"Errors: {model.errors()}")
    for row, line in enumerate(lines):
        scene.add(Text(m + 10, m + 20 * (row + 1), line))

    scene.info = {"errors": model.errors(), "support_vectors": sorted(support)}
    return scene
