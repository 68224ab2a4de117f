"""
Decision trees and bootstrap forests over the toy datasets.

Trees are returned as nested dicts::

    {feature, threshold, impurity, left, right, value, samples}

where leaves carry ``feature=None`` and ``value`` = majority class index.
Forests are built from seeded generators so that a prediction request with
the same parameters and seed rebuilds the same trees.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from sklearn.model_selection import train_test_split
from sklearn.tree import DecisionTreeClassifier

from ..shared.logger import get_logger
from .datasets import ToyDataset
from .gain_ratio import GainRatioDecisionTree

logger = get_logger(__name__)

TREE_CRITERIA = ("gini", "entropy", "gain_ratio")
FOREST_CRITERIA = ("gini", "entropy")

_LEAF = -2


@dataclass(frozen=True)
class TreeParams:
    max_depth: Optional[int] = 3
    min_samples_split: int = 2
    criterion: str = "gini"


@dataclass(frozen=True)
class ForestParams:
    n_trees: int = 5
    subsample_ratio: float = 0.8
    feature_subset: float = 0.7
    max_depth: Optional[int] = 3
    min_samples_split: int = 2
    criterion: str = "gini"
    seed: Optional[int] = None


def sklearn_tree_to_dict(clf: DecisionTreeClassifier, feature_names: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    """Convert a fitted scikit-learn tree into the nested node layout.

    Internal nodes report the feature index, or its name when
    ``feature_names`` is given.
    """
    tree_ = clf.tree_

    def recurse(node: int) -> Dict[str, Any]:
        impurity = float(tree_.impurity[node])
        samples = int(tree_.n_node_samples[node])
        if tree_.feature[node] == _LEAF:
            return {
                "feature": None,
                "threshold": None,
                "impurity": impurity,
                "left": None,
                "right": None,
                "value": int(clf.classes_[np.argmax(tree_.value[node])]),
                "samples": samples,
            }
        feature = int(tree_.feature[node])
        return {
            "feature": feature_names[feature] if feature_names is not None else feature,
            "threshold": float(tree_.threshold[node]),
            "impurity": impurity,
            "left": recurse(int(tree_.children_left[node])),
            "right": recurse(int(tree_.children_right[node])),
            "value": None,
            "samples": samples,
        }

    return recurse(0)


def _make_classifier(params: TreeParams, random_state=None):
    if params.criterion not in TREE_CRITERIA:
        raise ValueError(f"Unsupported criterion: {params.criterion}")
    if params.criterion == "gain_ratio":
        return GainRatioDecisionTree(max_depth=params.max_depth, min_samples_split=params.min_samples_split)
    return DecisionTreeClassifier(
        criterion=params.criterion,
        max_depth=params.max_depth,
        min_samples_split=params.min_samples_split,
        random_state=random_state,
    )


def build_tree(dataset: ToyDataset, params: TreeParams) -> Dict[str, Any]:
    """Fit one tree on the whole dataset and return it as a node dict."""
    clf = _make_classifier(params, random_state=0)
    clf.fit(dataset.data, dataset.target)
    if isinstance(clf, GainRatioDecisionTree):
        return clf.to_dict()
    return sklearn_tree_to_dict(clf)


def tree_summary(dataset: ToyDataset, params: TreeParams, test_size: float = 0.2) -> Dict[str, Any]:
    """Train/test split scores for the tree page's summary panel."""
    if not 0.0 < test_size < 1.0:
        raise ValueError("test_size must be in (0, 1)")
    X_train, X_test, y_train, y_test = train_test_split(
        dataset.data, dataset.target, test_size=test_size, random_state=42
    )
    clf = _make_classifier(params, random_state=0)
    clf.fit(X_train, y_train)
    return {
        "feature_names": list(dataset.feature_names),
        "classes": list(dataset.target_names),
        "tree_depth": int(clf.get_depth()),
        "n_leaves": int(clf.get_n_leaves()),
        "train_score": float(np.mean(clf.predict(X_train) == y_train)),
        "test_score": float(np.mean(clf.predict(X_test) == y_test)),
    }


@dataclass
class ForestMember:
    classifier: DecisionTreeClassifier
    feature_indices: List[int]


def bootstrap_indices(n_rows: int, ratio: float, rng: np.random.Generator) -> np.ndarray:
    """``int(n_rows * ratio)`` row indices drawn with replacement."""
    return rng.integers(0, n_rows, size=int(n_rows * ratio))


def feature_subset(n_features: int, ratio: float, rng: np.random.Generator) -> List[int]:
    """``max(1, int(n_features * ratio))`` distinct feature indices, sorted."""
    if n_features == 0:
        return []
    count = min(n_features, max(1, int(n_features * ratio)))
    return sorted(int(i) for i in rng.choice(n_features, size=count, replace=False))


def fit_forest(dataset: ToyDataset, params: ForestParams) -> List[ForestMember]:
    """Fit ``n_trees`` trees on bootstrap rows and random feature subsets."""
    if params.criterion not in FOREST_CRITERIA:
        raise ValueError(f"Unsupported forest criterion: {params.criterion}")
    if params.n_trees < 1:
        raise ValueError("n_trees must be >= 1")
    if not 0.0 < params.subsample_ratio <= 1.0 or not 0.0 < params.feature_subset <= 1.0:
        raise ValueError("subsample_ratio and feature_subset must be in (0, 1]")

    rng = np.random.default_rng(params.seed)
    X, y = dataset.data, dataset.target
    members = []
    for _ in range(params.n_trees):
        rows = bootstrap_indices(len(X), params.subsample_ratio, rng)
        if len(rows) == 0:
            raise ValueError("subsample_ratio leaves no rows to train on")
        features = feature_subset(X.shape[1], params.feature_subset, rng)
        clf = DecisionTreeClassifier(
            criterion=params.criterion,
            max_depth=params.max_depth,
            min_samples_split=params.min_samples_split,
            random_state=int(rng.integers(0, 2**31 - 1)),
        )
        clf.fit(X[rows][:, features], y[rows])
        members.append(ForestMember(classifier=clf, feature_indices=features))

    logger.debug("Fitted forest of %d trees on %s", len(members), dataset.name)
    return members


def build_forest(dataset: ToyDataset, params: ForestParams) -> Dict[str, Any]:
    members = fit_forest(dataset, params)
    trees = []
    for member in members:
        names = [dataset.feature_names[i] for i in member.feature_indices]
        trees.append({
            "tree": sklearn_tree_to_dict(member.classifier, names),
            "feature_indices": member.feature_indices,
        })
    return {"trees": trees, "target_names": list(dataset.target_names)}


def predict_forest(dataset: ToyDataset, params: ForestParams, record: Sequence[float]) -> Dict[str, Any]:
    """Majority vote of the forest on a single record.

    Ties go to the class voted first.
    """
    record = np.asarray(record, dtype=np.float64)
    if record.shape != (dataset.n_features,):
        raise ValueError(
            f"Record has {record.size} values, dataset {dataset.name} has {dataset.n_features} features"
        )

    votes = [
        int(member.classifier.predict(record[member.feature_indices].reshape(1, -1))[0])
        for member in fit_forest(dataset, params)
    ]
    majority = Counter(votes).most_common(1)[0][0]
    return {
        "majority_vote": int(majority),
        "individual_votes": votes,
        "class_names": list(dataset.target_names),
    }
