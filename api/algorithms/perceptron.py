"""
Multi-layer perceptron stepped one sample at a time.

Layers are stored the way the network diagram draws them:
``weights[out][in]`` and ``biases[out]``. Two model types share that layout:

- ``custom``: plain numpy forward/backward pass with a configurable hidden
  and output activation;
- ``sklearn``: scikit-learn's ``MLPRegressor`` (plain SGD, no momentum, no
  L2 penalty) seeded from the given layers, stepped with ``partial_fit``.
  Its output layer is always linear.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np
from sklearn.neural_network import MLPRegressor

from ..shared.logger import get_logger

logger = get_logger(__name__)

INIT_SCALE = 0.01


def sigmoid(x):
    return 1.0 / (1.0 + np.exp(-x))


def relu(x):
    return np.maximum(0.0, x)


def identity(x):
    return x


def softmax(x):
    exp_x = np.exp(x - np.max(x, axis=-1, keepdims=True))
    return exp_x / np.sum(exp_x, axis=-1, keepdims=True)


# Derivatives are expressed in terms of the activation output y
ACTIVATIONS: Dict[str, Dict[str, Callable]] = {
    "sigmoid": {"func": sigmoid, "derivative": lambda y: y * (1.0 - y)},
    "relu": {"func": relu, "derivative": lambda y: (y > 0).astype(np.float64)},
    "identity": {"func": identity, "derivative": np.ones_like},
    "softmax": {"func": softmax, "derivative": np.ones_like},
}

SKLEARN_ACTIVATIONS = {"sigmoid": "logistic", "relu": "relu", "identity": "identity"}


@dataclass(frozen=True)
class NetworkConfig:
    model_type: str = "custom"
    input_size: int = 2
    hidden_size: int = 4
    output_nodes: int = 1
    hidden_layers: int = 1
    activation: str = "sigmoid"
    output_activation: str = "sigmoid"
    learning_rate: float = 0.1

    def validate(self) -> "NetworkConfig":
        if self.model_type not in ("custom", "sklearn"):
            raise ValueError(f"Unknown model type: {self.model_type}")
        for name in (self.activation, self.output_activation):
            if name not in ACTIVATIONS:
                raise ValueError(f"Unknown activation: {name}")
        if self.model_type == "sklearn" and self.activation not in SKLEARN_ACTIVATIONS:
            raise ValueError(f"Activation {self.activation} is not available for hidden layers in sklearn mode")
        if min(self.input_size, self.output_nodes) < 1:
            raise ValueError("input_size and output_nodes must be >= 1")
        if self.hidden_layers < 0 or (self.hidden_layers > 0 and self.hidden_size < 1):
            raise ValueError("Hidden layers need at least one node")
        return self

    @property
    def layer_sizes(self) -> List[int]:
        return [self.input_size] + [self.hidden_size] * self.hidden_layers + [self.output_nodes]


@dataclass
class Layer:
    weights: np.ndarray
    biases: np.ndarray

    def to_dict(self) -> Dict[str, list]:
        return {"weights": self.weights.tolist(), "biases": self.biases.tolist()}


def initialize_network(config: NetworkConfig, rng: Optional[np.random.Generator] = None) -> List[Layer]:
    """Weights ``N(0, 1) * 0.01``, zero biases."""
    config.validate()
    rng = rng or np.random.default_rng()
    sizes = config.layer_sizes
    return [
        Layer(weights=rng.standard_normal((n_out, n_in)) * INIT_SCALE, biases=np.zeros(n_out))
        for n_in, n_out in zip(sizes[:-1], sizes[1:])
    ]


def layers_from_dicts(config: NetworkConfig, network: Sequence[Dict[str, Sequence]]) -> List[Layer]:
    """Parse request layers and check that their shapes match ``config``."""
    sizes = config.layer_sizes
    if len(network) != len(sizes) - 1:
        raise ValueError(f"Expected {len(sizes) - 1} layers, got {len(network)}")
    layers = []
    for i, (raw, n_in, n_out) in enumerate(zip(network, sizes[:-1], sizes[1:])):
        weights = np.asarray(raw["weights"], dtype=np.float64)
        biases = np.asarray(raw["biases"], dtype=np.float64)
        if weights.shape != (n_out, n_in) or biases.shape != (n_out,):
            raise ValueError(
                f"Layer {i} has weights {weights.shape} and biases {biases.shape}, "
                f"expected ({n_out}, {n_in}) and ({n_out},)"
            )
        layers.append(Layer(weights=weights.copy(), biases=biases.copy()))
    return layers


def forward(layers: Sequence[Layer], x, activation: str, output_activation: str) -> List[np.ndarray]:
    """Activations of every layer, input first."""
    hidden = ACTIVATIONS[activation]["func"]
    output = ACTIVATIONS[output_activation]["func"]
    current = np.asarray(x, dtype=np.float64)
    activations = [current]
    for i, layer in enumerate(layers):
        net = layer.weights @ current + layer.biases
        current = output(net) if i == len(layers) - 1 else hidden(net)
        activations.append(current)
    return activations


class CustomPerceptron:
    """Numpy MLP updated by per-sample gradient descent."""

    def __init__(self, config: NetworkConfig, layers: List[Layer]):
        self.config = config
        self.layers = layers
        self._hidden_derivative = ACTIVATIONS[config.activation]["derivative"]
        self._output_derivative = ACTIVATIONS[config.output_activation]["derivative"]

    def forward(self, x) -> List[np.ndarray]:
        return forward(self.layers, x, self.config.activation, self.config.output_activation)

    def backward(self, activations: List[np.ndarray], target) -> List[np.ndarray]:
        """Apply one update from a forward pass and return the layer deltas."""
        error = activations[-1] - np.asarray(target, dtype=np.float64)
        if self.config.output_activation == "softmax":
            # Softmax paired with cross-entropy: the delta is the raw error
            delta = error
        else:
            delta = error * self._output_derivative(activations[-1])

        deltas = [delta]
        for i in reversed(range(len(self.layers) - 1)):
            propagated = self.layers[i + 1].weights.T @ deltas[0]
            deltas.insert(0, propagated * self._hidden_derivative(activations[i + 1]))

        lr = self.config.learning_rate
        for layer, delta, inputs in zip(self.layers, deltas, activations[:-1]):
            layer.weights -= lr * np.outer(delta, inputs)
            layer.biases -= lr * delta
        return deltas

    def train_step(self, x, target):
        activations = self.forward(x)
        deltas = self.backward(activations, target)
        return activations, deltas


class SklearnPerceptron:
    """``MLPRegressor`` wrapper that keeps the diagram's layer layout.

    scikit-learn stores ``coefs_[i]`` as ``(in, out)``, the transpose of the
    layout used here.
    """

    def __init__(self, config: NetworkConfig, layers: List[Layer], random_state: int = 0):
        self.config = config
        self.model = MLPRegressor(
            hidden_layer_sizes=tuple([config.hidden_size] * config.hidden_layers),
            activation=SKLEARN_ACTIVATIONS[config.activation],
            solver="sgd",
            learning_rate="constant",
            learning_rate_init=config.learning_rate,
            momentum=0.0,
            nesterovs_momentum=False,
            alpha=0.0,
            batch_size=1,
            shuffle=False,
            random_state=random_state,
        )
        self._layers = layers
        self._seeded = False

    def _seed(self, X: np.ndarray, y: np.ndarray) -> None:
        # First partial_fit only allocates coefs_ and the optimizer state
        self.model.partial_fit(X, y)
        self.model.coefs_ = [layer.weights.T.copy() for layer in self._layers]
        self.model.intercepts_ = [layer.biases.copy() for layer in self._layers]
        self._seeded = True

    @property
    def layers(self) -> List[Layer]:
        if not self._seeded:
            return self._layers
        return [
            Layer(weights=coef.T.copy(), biases=intercept.copy())
            for coef, intercept in zip(self.model.coefs_, self.model.intercepts_)
        ]

    def forward(self, x) -> List[np.ndarray]:
        return forward(self.layers, x, self.config.activation, "identity")

    def train_step(self, x, target):
        X = np.asarray(x, dtype=np.float64).reshape(1, -1)
        y = np.asarray(target, dtype=np.float64).reshape(1, -1)
        if y.shape[1] == 1:
            y = y.ravel()
        if not self._seeded:
            self._seed(X, y)
        activations = self.forward(x)
        self.model.partial_fit(X, y)
        return activations, []


def build_model(config: NetworkConfig, network: Sequence[Dict[str, Sequence]]):
    config.validate()
    layers = layers_from_dicts(config, network)
    if config.model_type == "sklearn":
        return SklearnPerceptron(config, layers)
    return CustomPerceptron(config, layers)


def train(
    config: NetworkConfig,
    network: Sequence[Dict[str, Sequence]],
    inputs: Sequence[Sequence[float]],
    targets: Sequence[Sequence[float]],
) -> Dict[str, object]:
    """One update per (input, target) pair, in order.

    ``error`` is the mean squared error of the network after the last
    update, averaged over all samples. ``activations`` and ``deltas`` are the
    ones of the last sample's step.
    """
    if len(inputs) != len(targets) or not inputs:
        raise ValueError("input and target must be non-empty and of equal length")
    model = build_model(config, network)
    for x, t in zip(inputs, targets):
        if len(x) != config.input_size or len(t) != config.output_nodes:
            raise ValueError(
                f"Samples need {config.input_size} inputs and {config.output_nodes} targets"
            )

    activations: List[np.ndarray] = []
    deltas: List[np.ndarray] = []
    for x, t in zip(inputs, targets):
        activations, deltas = model.train_step(x, t)

    outputs = np.array([model.forward(x)[-1] for x in inputs])
    error = float(np.mean((outputs - np.asarray(targets, dtype=np.float64)) ** 2))
    logger.debug("Trained %s network on %d samples, error %.6f", config.model_type, len(inputs), error)
    return {
        "network": [layer.to_dict() for layer in model.layers],
        "error": error,
        "activations": [a.tolist() for a in activations],
        "deltas": [d.tolist() for d in deltas],
    }


def predict(config: NetworkConfig, network: Sequence[Dict[str, Sequence]], x: Sequence[float]) -> Dict[str, object]:
    model = build_model(config, network)
    if len(x) != config.input_size:
        raise ValueError(f"Expected {config.input_size} inputs, got {len(x)}")
    activations = model.forward(x)
    return {
        "activations": [a.tolist() for a in activations],
        "output": activations[-1].tolist(),
    }
