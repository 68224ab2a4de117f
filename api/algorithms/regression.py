"""
Linear and logistic regression with recorded gradient-descent histories.
"""

from __future__ import annotations

from typing import Any, Dict

import numpy as np
from sklearn.datasets import make_classification
from sklearn.linear_model import LinearRegression
from sklearn.preprocessing import StandardScaler

LOGIT_CLIP = 500.0
LOG_EPSILON = 1e-10


def logistic_sample(n_samples: int = 200, random_state: int = 42) -> Dict[str, Any]:
    """Two standardised informative features, binary labels with 10% flipped."""
    X, y = make_classification(
        n_samples=n_samples,
        n_features=2,
        n_informative=2,
        n_redundant=0,
        n_repeated=0,
        n_classes=2,
        n_clusters_per_class=1,
        flip_y=0.1,
        random_state=random_state,
    )
    X = StandardScaler().fit_transform(X)
    return {
        "X": X.tolist(),
        "y": y.tolist(),
        "feature_names": ["Synthetic Feature 1", "Synthetic Feature 2"],
    }


def sigmoid(z: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-np.clip(z, -LOGIT_CLIP, LOGIT_CLIP)))


def binary_cross_entropy(y: np.ndarray, p: np.ndarray) -> float:
    return float(-np.mean(y * np.log(p + LOG_EPSILON) + (1 - y) * np.log(1 - p + LOG_EPSILON)))


def _check_xy(X, y):
    X = np.asarray(X, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if X.ndim == 1:
        X = X.reshape(-1, 1)
    if X.ndim != 2 or len(X) == 0:
        raise ValueError("X must be a non-empty 2D array")
    if y.shape != (len(X),):
        raise ValueError(f"Got {y.size} targets for {len(X)} samples")
    return X, y


def logistic_train_history(X, y, learning_rate: float, iterations: int) -> Dict[str, Any]:
    """Batch gradient descent from zero weights.

    Each history row is ``weights + [bias]`` after the update; the loss is
    computed from the predictions that drove that update.
    """
    X, y = _check_xy(X, y)
    if iterations < 0:
        raise ValueError("iterations must be >= 0")
    n, n_features = X.shape
    weights = np.zeros(n_features)
    bias = 0.0

    weights_history = []
    loss_history = []
    for _ in range(iterations):
        predictions = sigmoid(X @ weights + bias)
        error = predictions - y
        weights = weights - learning_rate * (X.T @ error) / n
        bias -= learning_rate * float(error.mean())
        weights_history.append(weights.tolist() + [bias])
        loss_history.append(binary_cross_entropy(y, predictions))

    final_probs = sigmoid(X @ weights + bias)
    return {
        "weights_history": weights_history,
        "loss_history": loss_history,
        "final_predictions": (final_probs > 0.5).astype(int).tolist(),
        "final_loss": binary_cross_entropy(y, final_probs),
    }


def linear_fit(X, y) -> Dict[str, Any]:
    """Ordinary least squares via scikit-learn."""
    X, y = _check_xy(X, y)
    model = LinearRegression().fit(X, y)
    predictions = model.predict(X)
    return {
        "coef": model.coef_.tolist(),
        "intercept": float(model.intercept_),
        "predictions": predictions.tolist(),
        "final_mse": float(np.mean((y - predictions) ** 2)),
    }


def linear_history(X, y, iterations: int, learning_rate: float = 0.01) -> Dict[str, Any]:
    """Single-feature gradient descent from ``w = b = 0``.

    The MSE of iteration i is measured with the parameters before its update.
    """
    X, y = _check_xy(X, y)
    if X.shape[1] != 1:
        raise ValueError("Gradient-descent history needs exactly one feature")
    if iterations < 0:
        raise ValueError("iterations must be >= 0")
    x = X[:, 0]
    w = b = 0.0

    mse_history, w_history, b_history = [], [], []
    for _ in range(iterations):
        error = w * x + b - y
        w -= learning_rate * float((x * error).mean())
        b -= learning_rate * float(error.mean())
        mse_history.append(float(np.mean(error ** 2)))
        w_history.append(w)
        b_history.append(b)

    return {"mse_history": mse_history, "w_history": w_history, "b_history": b_history}
