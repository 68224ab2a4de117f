"""
Regression API routes for the ML visualization gallery.

Linear regression (closed form and gradient-descent history) and logistic
regression (sample data and gradient-descent history).
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from .algorithms import regression

router = APIRouter(tags=["regression"])


class LinearRegressionRequest(BaseModel):
    X: List[List[float]]
    y: List[float]


class LinearRegressionHistoryRequest(BaseModel):
    X: List[List[float]]
    y: List[float]
    iterations: int = Field(..., ge=0, le=100000)
    learning_rate: float = Field(default=0.01, gt=0)


class LogisticRegressionTrainRequest(BaseModel):
    X: List[List[float]]
    y: List[int]
    learning_rate: float = Field(..., gt=0)
    iterations: int = Field(..., ge=0, le=100000)


@router.get("/logistic-regression/data")
def logistic_regression_data():
    return regression.logistic_sample()


@router.post("/logistic-regression/train-history")
def logistic_regression_history(request: LogisticRegressionTrainRequest):
    """Weights and loss after every gradient-descent iteration."""
    if any(label not in (0, 1) for label in request.y):
        raise HTTPException(status_code=400, detail="Labels must be 0 or 1")
    try:
        return regression.logistic_train_history(request.X, request.y, request.learning_rate, request.iterations)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/linear-regression")
def linear_regression(request: LinearRegressionRequest):
    try:
        return regression.linear_fit(request.X, request.y)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/linear-regression-history")
def linear_regression_history(request: LinearRegressionHistoryRequest):
    try:
        return regression.linear_history(request.X, request.y, request.iterations, request.learning_rate)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
