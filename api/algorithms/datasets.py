"""
Toy datasets served to the tree and forest pages.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import List

import numpy as np
from sklearn import datasets as sk_datasets

_LOADERS = {
    "iris": sk_datasets.load_iris,
    "wine": sk_datasets.load_wine,
    "digits": sk_datasets.load_digits,
}

DATASET_NAMES = tuple(_LOADERS)


class UnknownDatasetError(ValueError):
    """Raised for a dataset name outside ``DATASET_NAMES``."""


@dataclass(frozen=True)
class ToyDataset:
    name: str
    data: np.ndarray
    target: np.ndarray
    feature_names: List[str]
    target_names: List[str]

    @property
    def n_features(self) -> int:
        return self.data.shape[1]


@lru_cache(maxsize=None)
def load_dataset(name: str) -> ToyDataset:
    """Load (and cache) one of the scikit-learn toy datasets by name."""
    loader = _LOADERS.get(name)
    if loader is None:
        raise UnknownDatasetError(f"Unsupported dataset: {name}")
    bunch = loader()
    X = np.asarray(bunch.data, dtype=np.float64)
    X.setflags(write=False)
    feature_names = [str(f) for f in getattr(bunch, "feature_names", [f"feature_{i}" for i in range(X.shape[1])])]
    target_names = [str(t) for t in bunch.target_names]
    return ToyDataset(
        name=name,
        data=X,
        target=np.asarray(bunch.target, dtype=np.int64),
        feature_names=feature_names,
        target_names=target_names,
    )
