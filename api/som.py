"""
Self-Organizing Map API routes for the ML visualization gallery.

- ``/som/simulate`` runs the ring demo from a fresh map and returns one
  state per iteration (each produced by a single step from the previous one).
- ``/som/render`` describes a frame for a given map state.
- ``/som_train`` trains on arbitrary-dimension data and returns the weight
  history used by the 3D view.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import numpy as np
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from .algorithms import som
from .shared.canvas import SOM_CONTROLS
from .shared.geometry import as_points
from .shared.logger import get_logger
from .shared.responses import negotiate_response

logger = get_logger(__name__)

router = APIRouter(tags=["som"])


class SOMSimulateRequest(BaseModel):
    params: Dict[str, Any] = Field(default_factory=dict)
    data: Optional[List[List[float]]] = None
    seed: Optional[int] = None


class SOMRenderRequest(BaseModel):
    data: List[List[float]]
    weights: List[List[List[float]]] = Field(..., description="Weights as [rows][cols][2]")
    iteration: int = 0
    bmu_index: Optional[int] = None
    bmu_input: Optional[List[float]] = None
    frame: Optional[int] = None
    width: int = Field(default=1000, ge=100, le=4000)
    height: int = Field(default=600, ge=100, le=4000)


class SOMTrainRequest(BaseModel):
    data: List[List[float]]
    grid_size_x: int = Field(..., ge=1, le=100)
    grid_size_y: int = Field(..., ge=1, le=100)
    learning_rate: float = Field(..., gt=0)
    iterations: int = Field(..., ge=1, le=10000)
    sigma: float = Field(..., gt=0)
    initial_weights: Optional[List[List[List[float]]]] = None
    seed: Optional[int] = 42


class SOMTrainResponse(BaseModel):
    final_weights: List[List[List[float]]]
    history: List[List[List[List[float]]]]
    bmu_history: List[List[float]]


def _planar(values: List[List[float]], name: str) -> np.ndarray:
    try:
        return as_points(values)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"{name} must be a list of [x, y] pairs: {e}")


def _float_array(values: Any, name: str) -> np.ndarray:
    try:
        return np.asarray(values, dtype=np.float64)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"{name} is not a rectangular array: {e}")


def som_params(raw: Dict[str, Any]) -> som.SOMParams:
    values = SOM_CONTROLS.coerce(raw)
    return som.SOMParams(
        grid_size=values["gridSize"],
        learning_rate=values["learningRate"],
        iterations=values["iterations"],
        sigma=values["sigma"],
    )


@router.post("/som/simulate")
def som_simulate(request: SOMSimulateRequest):
    params = som_params(request.params)
    rng = np.random.default_rng(request.seed)
    data = _planar(request.data, "data") if request.data else som.generate_ring(rng=rng)

    state = som.initial_state(params.rows, params.cols, 2, rng)
    frames = [state.to_dict()]
    while state.iteration < params.iterations:
        state = som.step(state, data, params, rng)
        frames.append(state.to_dict())

    return {
        "params": SOM_CONTROLS.coerce(request.params),
        "data": data.tolist(),
        "frames": frames,
    }


@router.post("/som/render")
def som_render(request: SOMRenderRequest, http_request: Request):
    weights = _float_array(request.weights, "weights")
    if weights.ndim != 3 or weights.shape[2] != 2:
        raise HTTPException(status_code=400, detail="weights must have shape [rows][cols][2]")
    rows, cols = weights.shape[:2]
    if request.bmu_index is not None and not 0 <= request.bmu_index < rows * cols:
        raise HTTPException(status_code=400, detail="bmu_index out of range")
    if request.bmu_input is not None and len(request.bmu_input) != 2:
        raise HTTPException(status_code=400, detail="bmu_input must be an [x, y] pair")

    base = som.initial_state(rows, cols, weights=weights)
    state = som.SOMState(
        weights=base.weights,
        lattice=base.lattice,
        rows=rows,
        cols=cols,
        iteration=request.iteration,
        bmu_index=request.bmu_index,
        bmu_input=np.asarray(request.bmu_input, dtype=np.float64) if request.bmu_input is not None else None,
    )
    data = _planar(request.data, "data")
    scene = som.render_frame(state, data, request.width, request.height, request.frame)
    return negotiate_response(scene.to_dict(), http_request)


@router.post("/som_train", response_model=SOMTrainResponse)
def som_train(request: SOMTrainRequest):
    """Train a SOM and return weights before each iteration plus the inputs used."""
    data = _float_array(request.data, "data")
    if data.ndim != 2 or data.size == 0:
        raise HTTPException(status_code=400, detail="data must be a non-empty list of feature vectors")

    initial = None
    if request.initial_weights is not None:
        initial = _float_array(request.initial_weights, "initial_weights")
        expected = (request.grid_size_x, request.grid_size_y, data.shape[1])
        if initial.shape != expected:
            raise HTTPException(
                status_code=400,
                detail=f"initial_weights has shape {initial.shape}, expected {expected}",
            )

    params = som.SOMParams(
        grid_size=request.grid_size_x,
        grid_size_y=request.grid_size_y,
        learning_rate=request.learning_rate,
        iterations=request.iterations,
        sigma=request.sigma,
    )
    state, history, inputs = som.train(data, params, np.random.default_rng(request.seed), initial)
    logger.info(
        "SOM trained: %dx%d grid, %d features, %d iterations",
        params.rows, params.cols, data.shape[1], params.iterations,
    )
    return {
        "final_weights": state.weight_grid().tolist(),
        "history": [w.tolist() for w in history],
        "bmu_history": [x.tolist() for x in inputs],
    }
