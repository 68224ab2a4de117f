"""
Binary decision tree split on information gain ratio (C4.5 style).

scikit-learn only offers gini and entropy criteria, so the ``gain_ratio``
option of the tree page is served by this small tree. Splits are binary
``x[feature] <= threshold`` tests with thresholds at midpoints between
consecutive distinct values. The node layout matches the dicts produced
from scikit-learn trees.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np


def entropy(counts: np.ndarray) -> np.ndarray:
    """Shannon entropy (bits) of class count vectors along the last axis."""
    counts = np.asarray(counts, dtype=np.float64)
    totals = counts.sum(axis=-1, keepdims=True)
    with np.errstate(divide="ignore", invalid="ignore"):
        p = np.where(totals > 0, counts / totals, 0.0)
        terms = np.where(p > 0, p * np.log2(p), 0.0)
    return -terms.sum(axis=-1)


@dataclass
class _Node:
    samples: int
    impurity: float
    value: int
    feature: Optional[int] = None
    threshold: Optional[float] = None
    gain_ratio: Optional[float] = None
    left: Optional["_Node"] = None
    right: Optional["_Node"] = None

    @property
    def is_leaf(self) -> bool:
        return self.feature is None


class GainRatioDecisionTree:
    """Decision tree classifier using the gain ratio split criterion."""

    def __init__(self, max_depth: Optional[int] = None, min_samples_split: int = 2):
        self.max_depth = max_depth
        self.min_samples_split = max(2, min_samples_split)
        self.root_: Optional[_Node] = None
        self.n_classes_ = 0

    def fit(self, X, y) -> "GainRatioDecisionTree":
        X = np.asarray(X, dtype=np.float64)
        y = np.asarray(y, dtype=np.int64)
        if X.ndim != 2 or len(X) != len(y) or len(y) == 0:
            raise ValueError("X must be 2D with one label per row")
        self.n_classes_ = int(y.max()) + 1
        self.root_ = self._grow(X, y, depth=0)
        return self

    def _grow(self, X: np.ndarray, y: np.ndarray, depth: int) -> _Node:
        counts = np.bincount(y, minlength=self.n_classes_)
        node = _Node(samples=len(y), impurity=float(entropy(counts)), value=int(np.argmax(counts)))

        if node.impurity == 0.0 or len(y) < self.min_samples_split:
            return node
        if self.max_depth is not None and depth >= self.max_depth:
            return node

        split = self._best_split(X, y, counts)
        if split is None:
            return node

        feature, threshold, ratio = split
        mask = X[:, feature] <= threshold
        node.feature = feature
        node.threshold = threshold
        node.gain_ratio = ratio
        node.left = self._grow(X[mask], y[mask], depth + 1)
        node.right = self._grow(X[~mask], y[~mask], depth + 1)
        return node

    def _best_split(self, X: np.ndarray, y: np.ndarray, parent_counts: np.ndarray):
        n = len(y)
        parent_entropy = entropy(parent_counts)
        one_hot = np.eye(self.n_classes_, dtype=np.float64)[y]
        best = None
        best_ratio = 0.0

        for feature in range(X.shape[1]):
            order = np.argsort(X[:, feature], kind="stable")
            values = X[order, feature]
            # Candidate cut after position i when the next value differs
            cuts = np.flatnonzero(values[:-1] < values[1:])
            if len(cuts) == 0:
                continue

            left_counts = np.cumsum(one_hot[order], axis=0)[cuts]
            right_counts = parent_counts - left_counts
            n_left = cuts + 1.0
            n_right = n - n_left

            child_entropy = (n_left * entropy(left_counts) + n_right * entropy(right_counts)) / n
            gain = parent_entropy - child_entropy
            split_info = entropy(np.column_stack([n_left, n_right]))
            with np.errstate(divide="ignore", invalid="ignore"):
                ratio = np.where(split_info > 0, gain / split_info, 0.0)
            ratio = np.where(gain > 1e-12, ratio, 0.0)

            i = int(np.argmax(ratio))
            if ratio[i] > best_ratio:
                best_ratio = float(ratio[i])
                threshold = float((values[cuts[i]] + values[cuts[i] + 1]) / 2)
                best = (feature, threshold, best_ratio)
        return best

    def _predict_one(self, x: np.ndarray) -> int:
        node = self.root_
        while node is not None and not node.is_leaf:
            node = node.left if x[node.feature] <= node.threshold else node.right
        return node.value

    def predict(self, X) -> np.ndarray:
        if self.root_ is None:
            raise ValueError("Tree is not fitted")
        X = np.atleast_2d(np.asarray(X, dtype=np.float64))
        return np.array([self._predict_one(x) for x in X], dtype=np.int64)

    def get_depth(self) -> int:
        def depth(node: Optional[_Node]) -> int:
            if node is None or node.is_leaf:
                return 0
            return 1 + max(depth(node.left), depth(node.right))
        return depth(self.root_)

    def get_n_leaves(self) -> int:
        def leaves(node: Optional[_Node]) -> int:
            if node is None:
                return 0
            if node.is_leaf:
                return 1
            return leaves(node.left) + leaves(node.right)
        return leaves(self.root_)

    def to_dict(self) -> Dict[str, Any]:
        if self.root_ is None:
            raise ValueError("Tree is not fitted")

        def convert(node: _Node) -> Dict[str, Any]:
            if node.is_leaf:
                return {
                    "feature": None,
                    "threshold": None,
                    "impurity": node.impurity,
                    "left": None,
                    "right": None,
                    "value": node.value,
                    "samples": node.samples,
                }
            return {
                "feature": node.feature,
                "threshold": node.threshold,
                "impurity": node.impurity,
                "gain_ratio": node.gain_ratio,
                "left": convert(node.left),
                "right": convert(node.right),
                "value": None,
                "samples": node.samples,
            }

        return convert(self.root_)
