"""
Parameter controls for the visualization canvases.

A canvas page exposes a handful of slider/select controls over a render
callback. ``ParamControl`` captures one slider (range, step and default) and
knows how to coerce an arbitrary incoming value the way a slider would:
clamp into range, then snap to the nearest step.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence


@dataclass(frozen=True)
class ParamControl:
    """A single numeric (or enumerated) parameter control."""

    name: str
    label: str
    min: float = 0.0
    max: float = 1.0
    step: float = 1.0
    default: Any = 0.0
    options: Optional[List[str]] = None

    def coerce(self, value: Any) -> Any:
        """Clamp and snap ``value``; enumerations fall back to the default."""
        if self.options is not None:
            return value if value in self.options else self.default

        try:
            number = float(value)
        except (TypeError, ValueError):
            return self.default
        if math.isnan(number):
            return self.default

        number = min(max(number, self.min), self.max)
        if self.step > 0:
            steps = round((number - self.min) / self.step)
            number = min(self.min + steps * self.step, self.max)

        if _is_integral(self.min) and _is_integral(self.step) and _is_integral(self.default):
            return int(round(number))
        # Trim float noise from repeated step additions
        return round(number, 10)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["defaultValue"] = data.pop("default")
        return data


def _is_integral(value: Any) -> bool:
    return isinstance(value, int) or (isinstance(value, float) and value.is_integer())


@dataclass(frozen=True)
class ControlSet:
    """The full set of controls shown next to one canvas."""

    controls: Sequence[ParamControl] = field(default_factory=tuple)

    def defaults(self) -> Dict[str, Any]:
        return {c.name: c.default for c in self.controls}

    def coerce(self, params: Optional[Dict[str, Any]] = None, base: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Merge ``params`` over ``base`` (or the defaults) and coerce each value.

        Unknown keys are dropped.
        """
        merged = dict(base) if base is not None else self.defaults()
        for key, value in (params or {}).items():
            if key in merged:
                merged[key] = value
        return {c.name: c.coerce(merged[c.name]) for c in self.controls}

    def describe(self) -> List[Dict[str, Any]]:
        return [c.to_dict() for c in self.controls]


# ============= Control sets per canvas =============

KMEANS_CONTROLS = ControlSet((
    ParamControl("points", "Number of points in the dataset", 10, 300, 1, 100),
    ParamControl("clusters", "Number of clusters", 1, 6, 1, 1),
    ParamControl("iterations", "Iterations", 1, 50, 1, 10),
    ParamControl("initMode", "Centroid Initialization Method", default="random", options=["random", "kmeans++"]),
))

SOM_CONTROLS = ControlSet((
    ParamControl("gridSize", "Grid Size", 5, 20, 1, 10),
    ParamControl("learningRate", "Learning Rate", 0.01, 0.5, 0.01, 0.1),
    ParamControl("iterations", "Iterations", 10, 200, 10, 100),
    ParamControl("sigma", "Neighborhood Radius", 0.5, 3.0, 0.1, 1.0),
))

DBSCAN_CONTROLS = ControlSet((
    ParamControl("epsilon", "Epsilon", 0.05, 0.5, 0.01, 0.2),
    ParamControl("minPoints", "Min Points", 1, 20, 1, 5),
    ParamControl("numClusters", "Number of Clusters", 1, 7, 1, 3),
))

SVM_CONTROLS = ControlSet((
    ParamControl("c", "Regularization (C)", 0.1, 10.0, 0.1, 1.0),
    ParamControl("gamma", "Gamma", 0.1, 5.0, 0.1, 0.5),
    ParamControl("noise", "Noise", 0.0, 0.5, 0.05, 0.1),
    ParamControl("kernel", "Kernel", default="rbf", options=["linear", "rbf"]),
))

KNN_CONTROLS = ControlSet((
    ParamControl("points", "Number of points", 10, 300, 1, 100),
    ParamControl("classes", "Number of classes", 2, 6, 1, 3),
    ParamControl("k", "K", 1, 15, 1, 3),
))

CONTROL_SETS: Dict[str, ControlSet] = {
    "kmeans": KMEANS_CONTROLS,
    "som": SOM_CONTROLS,
    "dbscan": DBSCAN_CONTROLS,
    "svm": SVM_CONTROLS,
    "knn": KNN_CONTROLS,
}
