"""
Decision tree and random forest API routes for the ML visualization gallery.
"""

from __future__ import annotations

from typing import List, Literal, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from .algorithms import trees
from .algorithms.datasets import ToyDataset, UnknownDatasetError, load_dataset
from .shared.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["trees"])

# Checked by load_dataset (400 on unknown names)
DatasetName = str


# ============= Pydantic Models =============


class TreeParams(BaseModel):
    max_depth: Optional[int] = Field(default=3, ge=1)
    min_samples_split: int = Field(default=2, ge=2)
    criterion: Literal["gini", "entropy", "gain_ratio"] = "gini"


class TreeRequest(BaseModel):
    dataset: DatasetName
    params: TreeParams


class TreeSummaryRequest(BaseModel):
    dataset: DatasetName
    max_depth: Optional[int] = Field(default=3, ge=1)
    min_samples_split: int = Field(default=2, ge=2)
    criterion: Literal["gini", "entropy", "gain_ratio"] = "gini"
    split_ratio: float = Field(default=0.3, gt=0.0, lt=1.0)


class ForestParams(BaseModel):
    n_trees: int = Field(default=5, ge=1, le=200)
    subsample_ratio: float = Field(default=0.8, gt=0.0, le=1.0)
    feature_subset: float = Field(default=0.7, gt=0.0, le=1.0)
    max_depth: Optional[int] = Field(default=3, ge=1)
    min_samples_split: int = Field(default=2, ge=2)
    criterion: Literal["gini", "entropy"] = "gini"
    seed: Optional[int] = None


class ForestRequest(BaseModel):
    dataset: DatasetName
    params: ForestParams


class ForestPredictionRequest(BaseModel):
    dataset: DatasetName
    params: ForestParams
    record: List[float]


def get_dataset(name: str) -> ToyDataset:
    try:
        return load_dataset(name)
    except UnknownDatasetError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _forest_params(params: ForestParams) -> trees.ForestParams:
    return trees.ForestParams(**params.model_dump())


# ============= Routes =============


@router.post("/build_tree")
def build_tree(request: TreeRequest):
    """Fit one tree on the full dataset and return its node structure."""
    dataset = get_dataset(request.dataset)
    params = trees.TreeParams(**request.params.model_dump())
    try:
        tree = trees.build_tree(dataset, params)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"tree": tree, "feature_names": list(dataset.feature_names)}


@router.post("/decision-tree")
def decision_tree_summary(request: TreeSummaryRequest):
    """Train/test scores, depth and leaf count of a tree."""
    dataset = get_dataset(request.dataset)
    params = trees.TreeParams(
        max_depth=request.max_depth,
        min_samples_split=request.min_samples_split,
        criterion=request.criterion,
    )
    try:
        return trees.tree_summary(dataset, params, request.split_ratio)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/build_forest")
def build_forest(request: ForestRequest):
    dataset = get_dataset(request.dataset)
    try:
        forest = trees.build_forest(dataset, _forest_params(request.params))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info("Built forest of %d trees on %s", request.params.n_trees, request.dataset)
    return forest


@router.post("/predict_forest")
def predict_forest(request: ForestPredictionRequest):
    """Vote of every tree on ``record``; pass the build ``seed`` to query the same forest."""
    dataset = get_dataset(request.dataset)
    if len(request.record) != dataset.n_features:
        raise HTTPException(
            status_code=400,
            detail=f"Record has {len(request.record)} values, {request.dataset} has {dataset.n_features} features",
        )
    try:
        return trees.predict_forest(dataset, _forest_params(request.params), request.record)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
