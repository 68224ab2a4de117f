"""
Classifier API routes for the ML visualization gallery.

This module provides FastAPI routes for the KNN and SVM pages:
- click-to-classify KNN with neighbour details
- the instructional SVM decision grid
- scikit-learn reference predictions for both
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Literal, Optional

import numpy as np
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field
from sklearn.neighbors import KNeighborsClassifier
from sklearn.svm import SVC

from .algorithms import knn, svm
from .shared.canvas import KNN_CONTROLS, SVM_CONTROLS
from .shared.geometry import as_points
from .shared.responses import negotiate_response

router = APIRouter(tags=["classifiers"])


# ============= Pydantic Models =============


class SupervisedRequest(BaseModel):
    X: List[List[float]]
    y: List[int]


class PredictionResponse(BaseModel):
    predictions: List[int]


class LabeledPoint(BaseModel):
    x: float
    y: float
    label: int


class KNNSampleRequest(BaseModel):
    params: Dict[str, Any] = Field(default_factory=dict)
    seed: Optional[int] = None


class KNNClassifyRequest(BaseModel):
    points: List[LabeledPoint]
    query: List[float] = Field(..., min_length=2, max_length=2)
    k: int = Field(default=3, ge=1)
    tie_break: Literal["nearest", "lowest"] = "nearest"
    render: bool = False
    width: int = Field(default=800, ge=10, le=4000)
    height: int = Field(default=600, ge=10, le=4000)


class SVMSampleRequest(BaseModel):
    params: Dict[str, Any] = Field(default_factory=dict)
    n: int = Field(default=25, ge=1, le=1000)
    seed: Optional[int] = None


class SVMDecisionRequest(BaseModel):
    X: List[List[float]]
    y: List[int]
    params: Dict[str, Any] = Field(default_factory=dict)
    resolution: int = Field(default=100, ge=2, le=400)
    width: int = Field(default=800, ge=10, le=4000)
    height: int = Field(default=400, ge=10, le=4000)


def _check_supervised(X: List[List[float]], y: List[int]) -> None:
    if len(X) != len(y):
        raise HTTPException(status_code=400, detail=f"Got {len(y)} labels for {len(X)} samples")
    if not X:
        raise HTTPException(status_code=400, detail="No samples provided")
    if len({len(row) for row in X}) != 1 or not X[0]:
        raise HTTPException(status_code=400, detail="Every sample must have the same, non-zero number of features")


# ============= KNN =============


@router.post("/knn", response_model=PredictionResponse)
def run_knn(request: SupervisedRequest):
    """Reference predictions from scikit-learn's KNeighborsClassifier(3)."""
    _check_supervised(request.X, request.y)
    if len(request.X) < 3:
        raise HTTPException(status_code=400, detail="Need at least 3 samples")
    model = KNeighborsClassifier(n_neighbors=3)
    model.fit(request.X, request.y)
    return {"predictions": model.predict(request.X).tolist()}


@router.post("/knn/sample")
def knn_sample(request: KNNSampleRequest):
    values = KNN_CONTROLS.coerce(request.params)
    points, labels = knn.generate_labeled_points(
        values["points"], values["classes"], rng=np.random.default_rng(request.seed)
    )
    return {
        "params": values,
        "points": [
            {"x": float(x), "y": float(y), "label": int(label)}
            for (x, y), label in zip(points, labels)
        ],
    }


@router.post("/knn/classify")
def knn_classify(request: KNNClassifyRequest, http_request: Request):
    points = np.array([[p.x, p.y] for p in request.points], dtype=np.float64).reshape(-1, 2)
    labels = np.array([p.label for p in request.points], dtype=np.int64)
    query = (float(request.query[0]), float(request.query[1]))

    result = knn.classify(points, labels, query, request.k, request.tie_break)
    data: Dict[str, Any] = {
        "prediction": result.prediction,
        "neighbors": [asdict(n) for n in result.neighbors],
        "votes": {str(label): count for label, count in result.votes.items()},
        "tied_labels": result.tied_labels,
    }
    if request.render:
        data["scene"] = knn.render_frame(points, labels, query, result, request.width, request.height).to_dict()
    return negotiate_response(data, http_request)


# ============= SVM =============


@router.post("/svm", response_model=PredictionResponse)
def run_svm(request: SupervisedRequest):
    """Reference predictions from scikit-learn's SVC."""
    _check_supervised(request.X, request.y)
    if len(set(request.y)) < 2:
        raise HTTPException(status_code=400, detail="SVC needs at least two classes")
    model = SVC()
    model.fit(request.X, request.y)
    return {"predictions": model.predict(request.X).tolist()}


def svm_params(raw: Dict[str, Any]) -> svm.SVMParams:
    values = SVM_CONTROLS.coerce(raw)
    return svm.SVMParams(c=values["c"], kernel=values["kernel"], gamma=values["gamma"], noise=values["noise"])


@router.post("/svm/sample")
def svm_sample(request: SVMSampleRequest):
    params = svm_params(request.params)
    X, y = svm.generate_data(request.n, params.noise, params.kernel, np.random.default_rng(request.seed))
    return {"X": X.tolist(), "y": y.tolist()}


@router.post("/svm/decision")
def svm_decision(request: SVMDecisionRequest, http_request: Request):
    """Decision classes over [-5, 5]^2, support vectors and the error count."""
    if len(request.X) != len(request.y):
        raise HTTPException(status_code=400, detail=f"Got {len(request.y)} labels for {len(request.X)} samples")
    try:
        X = as_points(request.X)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"X must be a list of [x, y] pairs: {e}")
    model = svm.InstructionalSVM(X, np.asarray(request.y), svm_params(request.params))

    _, classes = model.decision_grid(request.resolution)
    scene = svm.render_frame(model, request.width, request.height, request.resolution)
    return negotiate_response(
        {
            "resolution": request.resolution,
            "classes": classes.astype(np.int8),
            "support_vectors": model.support_vectors().tolist(),
            "alphas": model.alphas.tolist(),
            "errors": model.errors(),
            "scene": scene.to_dict(include_layers=False),
        },
        http_request,
    )
