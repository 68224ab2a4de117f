"""
Frame description utilities for the algorithm visualizations.

The browser pages draw onto a 2D canvas; the backend describes each frame
as a list of scene primitives (circles, polylines, polygons, text) in canvas
pixel coordinates, plus optional raster layers (region index grids and RGBA
tints) stored as numpy arrays.

Two coordinate conventions are in use:
- Canvas-space algorithms (K-Means, KNN) keep their points directly in pixel
  coordinates.
- Plot-space algorithms (DBSCAN, SOM, SVM) work in a data domain such as
  ``[-1, 1]`` and map into a canvas with a fixed margin via ``PlotTransform``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .geometry import nearest_index

# ============= Palettes =============

# Named cluster colors used by the K-Means and KNN canvases
CLUSTER_COLORS = ["red", "green", "blue", "orange", "purple", "cyan"]

NAMED_RGB: Dict[str, Tuple[int, int, int]] = {
    "red": (255, 0, 0),
    "green": (0, 128, 0),
    "blue": (0, 0, 255),
    "orange": (255, 165, 0),
    "purple": (128, 0, 128),
    "cyan": (0, 255, 255),
}

# Hex palette for density-based cluster hulls
HULL_COLORS = [
    "#4ade80",
    "#60a5fa",
    "#f472b6",
    "#fb923c",
    "#a78bfa",
    "#facc15",
    "#22d3ee",
]

TINT_ALPHA = 20


def color_for(index: int, palette: Sequence[str] = CLUSTER_COLORS) -> str:
    """Palette lookup that wraps around."""
    return palette[index % len(palette)]


def named_rgb(name: str) -> Tuple[int, int, int]:
    """RGB triple of a named color; unknown names map to white."""
    return NAMED_RGB.get(name, (255, 255, 255))


# ============= Coordinate transforms =============


@dataclass(frozen=True)
class PlotTransform:
    """Map a rectangular data domain into a canvas with a uniform margin.

    The y axis is inverted by default so larger data values are drawn
    higher on the canvas.
    """

    width: float
    height: float
    margin: float = 40.0
    x_range: Tuple[float, float] = (-1.0, 1.0)
    y_range: Tuple[float, float] = (-1.0, 1.0)
    invert_y: bool = True

    @property
    def plot_width(self) -> float:
        return self.width - 2 * self.margin

    @property
    def plot_height(self) -> float:
        return self.height - 2 * self.margin

    def to_canvas(self, x: float, y: float) -> Tuple[float, float]:
        x0, x1 = self.x_range
        y0, y1 = self.y_range
        cx = self.margin + (x - x0) / (x1 - x0) * self.plot_width
        fy = (y - y0) / (y1 - y0)
        if self.invert_y:
            fy = 1.0 - fy
        cy = self.margin + fy * self.plot_height
        return float(cx), float(cy)

    def to_data(self, cx: float, cy: float) -> Tuple[float, float]:
        x0, x1 = self.x_range
        y0, y1 = self.y_range
        fx = (cx - self.margin) / self.plot_width
        fy = (cy - self.margin) / self.plot_height
        if self.invert_y:
            fy = 1.0 - fy
        return float(x0 + fx * (x1 - x0)), float(y0 + fy * (y1 - y0))

    def map_points(self, points: np.ndarray) -> List[Tuple[float, float]]:
        return [self.to_canvas(float(p[0]), float(p[1])) for p in points]


# ============= Scene primitives =============


@dataclass
class Circle:
    x: float
    y: float
    radius: float
    fill: Optional[str] = None
    stroke: Optional[str] = None
    line_width: float = 1.0
    kind: str = "circle"


@dataclass
class Polyline:
    points: List[Tuple[float, float]]
    stroke: str = "#666"
    line_width: float = 1.0
    closed: bool = False
    fill: Optional[str] = None
    dash: Optional[List[float]] = None
    kind: str = "polyline"


@dataclass
class Text:
    x: float
    y: float
    text: str
    fill: str = "#ffffff"
    font: str = "14px sans-serif"
    align: str = "left"
    kind: str = "text"


@dataclass
class Scene:
    """An ordered list of primitives plus optional raster layers."""

    width: int
    height: int
    background: Optional[str] = None
    primitives: List[Any] = field(default_factory=list)
    layers: Dict[str, Any] = field(default_factory=dict)
    info: Dict[str, Any] = field(default_factory=dict)

    def add(self, primitive: Any) -> None:
        self.primitives.append(primitive)

    def extend(self, primitives: Sequence[Any]) -> None:
        self.primitives.extend(primitives)

    def to_dict(self, include_layers: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "width": self.width,
            "height": self.height,
            "background": self.background,
            "primitives": [asdict(p) for p in self.primitives],
            "info": self.info,
        }
        if include_layers:
            # Raster layers stay numpy arrays; negotiate_response encodes them
            data["layers"] = dict(self.layers)
        return data


def axes(transform: PlotTransform, labels: Sequence[str] = ("-1", "0", "1")) -> List[Any]:
    """Bottom and left axes with three tick labels each."""
    m = transform.margin
    w, h = transform.width, transform.height
    return [
        Polyline([(m, h - m), (w - m, h - m)], stroke="#666"),
        Polyline([(m, m), (m, h - m)], stroke="#666"),
        Text(m, h - m + 20, labels[0], fill="#999", font="12px sans-serif", align="center"),
        Text(m + transform.plot_width / 2, h - m + 20, labels[1], fill="#999", font="12px sans-serif", align="center"),
        Text(w - m, h - m + 20, labels[2], fill="#999", font="12px sans-serif", align="center"),
        Text(m - 10, h - m, labels[0], fill="#999", font="12px sans-serif", align="right"),
        Text(m - 10, h - m - transform.plot_height / 2, labels[1], fill="#999", font="12px sans-serif", align="right"),
        Text(m - 10, m, labels[2], fill="#999", font="12px sans-serif", align="right"),
    ]


# ============= Raster layers =============


def region_grid(centroids: np.ndarray, width: int, height: int, stride: int = 1) -> np.ndarray:
    """Nearest-centroid index for every ``stride``-th canvas pixel.

    Pixel ``(x, y)`` is evaluated at its integer coordinates, so the grid has
    shape ``(ceil(height / stride), ceil(width / stride))``. Ties go to the
    lowest centroid index.
    """
    if stride < 1:
        raise ValueError("stride must be >= 1")
    xs = np.arange(0, width, stride, dtype=np.float64)
    ys = np.arange(0, height, stride, dtype=np.float64)
    gx, gy = np.meshgrid(xs, ys)
    pixels = np.column_stack([gx.ravel(), gy.ravel()])
    labels = nearest_index(pixels, np.asarray(centroids, dtype=np.float64))
    return labels.reshape(len(ys), len(xs))


def tint_image(regions: np.ndarray, palette: Sequence[str] = CLUSTER_COLORS, alpha: int = TINT_ALPHA) -> np.ndarray:
    """Turn a region index grid into an RGBA ``uint8`` image."""
    lut = np.array([named_rgb(color_for(i, palette)) for i in range(len(palette))], dtype=np.uint8)
    rgb = lut[np.asarray(regions) % len(palette)]
    alpha_channel = np.full(rgb.shape[:-1] + (1,), alpha, dtype=np.uint8)
    return np.concatenate([rgb, alpha_channel], axis=-1)
