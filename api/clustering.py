"""
Clustering API routes for the ML visualization gallery.

This module provides FastAPI routes for the clustering pages:
- DBSCAN labels for a point set (scikit-learn) and the convex-hull overlay
- K-Means reference clustering (scikit-learn) and the animated simulation
- Sample sets for both pages
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import numpy as np
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field
from sklearn.cluster import KMeans

from .algorithms import dbscan, kmeans
from .shared.canvas import DBSCAN_CONTROLS, KMEANS_CONTROLS
from .shared.logger import get_logger
from .shared.responses import negotiate_response

logger = get_logger(__name__)

router = APIRouter(tags=["clustering"])


# ============= Pydantic Models =============


class Point(BaseModel):
    x: float
    y: float


def _to_array(points: List[Point]) -> np.ndarray:
    return np.array([[p.x, p.y] for p in points], dtype=np.float64).reshape(-1, 2)


class DBSCANRequest(BaseModel):
    points: List[Point]
    epsilon: float = Field(..., gt=0)
    minPoints: int = Field(..., ge=1)


class DBSCANResponse(BaseModel):
    labels: List[int]


class DBSCANSampleRequest(BaseModel):
    numClusters: int = 3
    total: int = Field(default=dbscan.TOTAL_POINTS, ge=1, le=5000)
    noiseRatio: float = Field(default=dbscan.NOISE_RATIO, ge=0.0, lt=1.0)
    seed: Optional[int] = None


class OverlayRequest(BaseModel):
    points: List[Point]
    labels: List[int]
    width: int = Field(default=800, ge=100, le=4000)
    height: int = Field(default=400, ge=100, le=4000)


class KMeansRequest(BaseModel):
    points: List[Point]
    clusters: int = Field(..., ge=1)


class KMeansResponse(BaseModel):
    labels: List[int]
    centers: List[List[float]]


class KMeansSimulateRequest(BaseModel):
    """Parameters of a full K-Means run; values are coerced like sliders."""

    params: Dict[str, Any] = Field(default_factory=dict)
    points: Optional[List[Point]] = None
    centroids: Optional[List[Point]] = None
    seed: Optional[int] = None


class KMeansRenderRequest(BaseModel):
    points: List[Point]
    centroids: List[Point]
    labels: Optional[List[int]] = None
    iteration: int = 0
    width: int = Field(default=800, ge=10, le=4000)
    height: int = Field(default=600, ge=10, le=4000)
    stride: int = Field(default=4, ge=1, le=64)
    tint: bool = False


# ============= DBSCAN =============


@router.post("/dbscan", response_model=DBSCANResponse)
def run_dbscan(request: DBSCANRequest):
    """Label each point with its DBSCAN cluster, -1 for noise."""
    labels = dbscan.run_dbscan(_to_array(request.points), request.epsilon, request.minPoints)
    return {"labels": labels.tolist()}


@router.post("/dbscan/sample")
def dbscan_sample(request: DBSCANSampleRequest):
    num_clusters = DBSCAN_CONTROLS.coerce({"numClusters": request.numClusters})["numClusters"]
    rng = np.random.default_rng(request.seed)
    points = dbscan.generate_cluster_data(num_clusters, request.total, request.noiseRatio, rng)
    return {"points": [{"x": float(x), "y": float(y)} for x, y in points]}


@router.post("/dbscan/overlay")
def dbscan_overlay(request: OverlayRequest, http_request: Request):
    """Convex hulls of the labelled clusters plus the full scene description."""
    if len(request.labels) != len(request.points):
        raise HTTPException(
            status_code=400,
            detail=f"Got {len(request.labels)} labels for {len(request.points)} points",
        )
    points = _to_array(request.points)
    hulls = dbscan.cluster_hulls(points, request.labels)
    scene = dbscan.render_overlay(points, request.labels, request.width, request.height)
    noise = [
        {"x": float(x), "y": float(y)}
        for (x, y), label in zip(points, request.labels)
        if label == dbscan.NOISE_LABEL
    ]
    return negotiate_response(
        {
            "hulls": [
                {"label": h.label, "size": h.size, "hull": h.hull, "bounds": h.bounds, "drawable": h.drawable}
                for h in hulls
            ],
            "noise": noise,
            "scene": scene.to_dict(),
        },
        http_request,
    )


# ============= K-Means =============


@router.post("/kmeans", response_model=KMeansResponse)
def run_kmeans(request: KMeansRequest):
    """Reference clustering with scikit-learn's KMeans."""
    data = _to_array(request.points)
    if len(data) < request.clusters:
        raise HTTPException(
            status_code=400,
            detail=f"Need at least {request.clusters} points, got {len(data)}",
        )
    model = KMeans(n_clusters=request.clusters, random_state=0, n_init=10)
    labels = model.fit_predict(data)
    return {"labels": labels.tolist(), "centers": model.cluster_centers_.tolist()}


def kmeans_params(raw: Dict[str, Any]) -> kmeans.KMeansParams:
    values = KMEANS_CONTROLS.coerce(raw)
    return kmeans.KMeansParams(
        points=values["points"],
        clusters=values["clusters"],
        iterations=values["iterations"],
        init_mode=values["initMode"],
    )


@router.post("/kmeans/simulate")
def kmeans_simulate(request: KMeansSimulateRequest):
    """Run every iteration and return the whole history for animation."""
    params = kmeans_params(request.params)
    points = _to_array(request.points) if request.points is not None else None
    centroids = _to_array(request.centroids) if request.centroids is not None else None
    if centroids is not None and len(centroids) == 0:
        raise HTTPException(status_code=400, detail="centroids must not be empty")

    try:
        history = kmeans.run(params, np.random.default_rng(request.seed), points, centroids)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.debug("K-Means simulation: %d points, %d iterations", len(history[0].points), params.iterations)
    return {
        "params": KMEANS_CONTROLS.coerce(request.params),
        "frames": [state.to_dict() for state in history],
    }


@router.post("/kmeans/render")
def kmeans_render(request: KMeansRenderRequest, http_request: Request):
    """Describe one K-Means frame: Voronoi regions, points and centroids."""
    points = _to_array(request.points)
    centroids = _to_array(request.centroids)
    if len(centroids) == 0:
        raise HTTPException(status_code=400, detail="centroids must not be empty")
    if request.labels is not None and len(request.labels) != len(points):
        raise HTTPException(
            status_code=400,
            detail=f"Got {len(request.labels)} labels for {len(points)} points",
        )

    state = kmeans.initial_state(points, centroids)
    labels = np.asarray(request.labels, dtype=np.int64) if request.labels is not None else kmeans.assign(points, centroids)
    state = kmeans.KMeansState(
        points=state.points,
        centroids=state.centroids,
        labels=labels,
        iteration=request.iteration,
    )
    scene = kmeans.render_frame(state, request.width, request.height, request.stride, include_tint=request.tint)
    return negotiate_response(scene.to_dict(), http_request)
