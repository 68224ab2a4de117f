"""
Shared utilities for the ML gallery API.

This module contains the geometry, canvas control, scene rendering and
response helpers used across multiple API endpoints.
"""
from .canvas import CONTROL_SETS, ControlSet, ParamControl
from .geometry import as_points, convex_hull, nearest_index
from .rendering import PlotTransform, Scene
from .responses import negotiate_response

__all__ = [
    "CONTROL_SETS",
    "ControlSet",
    "ParamControl",
    "as_points",
    "convex_hull",
    "nearest_index",
    "PlotTransform",
    "Scene",
    "negotiate_response",
]
