"""
Neural network API routes for the ML visualization gallery.

The perceptron page keeps the network on the client: it asks for fresh
layers, sends them back with a training sample, and gets the updated layers
in return.
"""

from __future__ import annotations

from typing import List, Literal, Optional

import numpy as np
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from .algorithms import perceptron

router = APIRouter(tags=["perceptron"])

ActivationName = Literal["sigmoid", "relu", "identity", "softmax"]


# ============= Pydantic Models =============


class NetworkConfigModel(BaseModel):
    modelType: Literal["custom", "sklearn"] = "custom"
    inputSize: int = Field(default=2, ge=1, le=100)
    hiddenSize: int = Field(default=4, ge=0, le=100)
    outputNodes: int = Field(default=1, ge=1, le=100)
    hiddenLayers: int = Field(default=1, ge=0, le=10)
    activation: ActivationName = "sigmoid"
    outputActivation: ActivationName = "sigmoid"
    learningRate: float = Field(default=0.1, gt=0)

    def to_config(self) -> perceptron.NetworkConfig:
        return perceptron.NetworkConfig(
            model_type=self.modelType,
            input_size=self.inputSize,
            hidden_size=self.hiddenSize,
            output_nodes=self.outputNodes,
            hidden_layers=self.hiddenLayers,
            activation=self.activation,
            output_activation=self.outputActivation,
            learning_rate=self.learningRate,
        )


class LayerModel(BaseModel):
    weights: List[List[float]]
    biases: List[float]


class InitializeRequest(BaseModel):
    config: NetworkConfigModel
    seed: Optional[int] = None


class TrainRequest(BaseModel):
    config: NetworkConfigModel
    network: List[LayerModel]
    input: List[List[float]]
    target: List[List[float]]
    classes: Optional[List[int]] = None


class TrainResponse(BaseModel):
    network: List[LayerModel]
    error: float
    activations: List[List[float]]
    deltas: List[List[float]]


class PredictRequest(BaseModel):
    config: NetworkConfigModel
    network: List[LayerModel]
    input: List[float]


class PredictResponse(BaseModel):
    activations: List[List[float]]
    output: List[float]


def _config(model: NetworkConfigModel) -> perceptron.NetworkConfig:
    try:
        return model.to_config().validate()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ============= Routes =============


@router.post("/initialize", response_model=List[LayerModel])
def initialize(request: InitializeRequest):
    """Fresh layers with small random weights and zero biases."""
    config = _config(request.config)
    layers = perceptron.initialize_network(config, np.random.default_rng(request.seed))
    return [layer.to_dict() for layer in layers]


@router.post("/train", response_model=TrainResponse)
def train(request: TrainRequest):
    """One update per sample; ``classes`` is accepted for older clients and ignored."""
    config = _config(request.config)
    network = [layer.model_dump() for layer in request.network]
    try:
        return perceptron.train(config, network, request.input, request.target)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/predict", response_model=PredictResponse)
def predict(request: PredictRequest):
    config = _config(request.config)
    network = [layer.model_dump() for layer in request.network]
    try:
        return perceptron.predict(config, network, request.input)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
