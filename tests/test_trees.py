"""
Tests for decision trees, the gain ratio tree and random forests.

Run tests:
    pytest tests/test_trees.py -v
"""

import numpy as np
import pytest

from api.algorithms import trees
from api.algorithms.datasets import UnknownDatasetError, load_dataset
from api.algorithms.gain_ratio import GainRatioDecisionTree, entropy


def _count_leaves(node):
    if node["left"] is None:
        return 1
    return _count_leaves(node["left"]) + _count_leaves(node["right"])


class TestDatasets:
    def test_iris(self):
        iris = load_dataset("iris")
        assert iris.data.shape == (150, 4)
        assert iris.target_names == ["setosa", "versicolor", "virginica"]

    def test_unknown_dataset(self):
        with pytest.raises(UnknownDatasetError):
            load_dataset("titanic")


class TestGainRatioTree:
    def test_entropy(self):
        assert entropy(np.array([5, 5])) == pytest.approx(1.0)
        assert entropy(np.array([4, 0])) == pytest.approx(0.0)

    def test_separable_data(self):
        X = np.array([[0.0], [1.0], [2.0], [10.0], [11.0], [12.0]])
        y = np.array([0, 0, 0, 1, 1, 1])
        tree = GainRatioDecisionTree().fit(X, y)
        assert tree.predict(X).tolist() == y.tolist()
        assert tree.get_depth() == 1
        assert tree.get_n_leaves() == 2
        root = tree.to_dict()
        assert root["feature"] == 0
        assert 2.0 < root["threshold"] < 10.0
        assert root["gain_ratio"] == pytest.approx(1.0)

    def test_max_depth_respected(self):
        iris = load_dataset("iris")
        tree = GainRatioDecisionTree(max_depth=2).fit(iris.data, iris.target)
        assert tree.get_depth() <= 2


class TestTreeBuilding:
    def test_build_tree_layout(self):
        tree = trees.build_tree(load_dataset("iris"), trees.TreeParams(max_depth=2))
        assert set(tree) == {"feature", "threshold", "impurity", "left", "right", "value", "samples"}
        assert tree["samples"] == 150
        assert isinstance(tree["feature"], int)
        assert _count_leaves(tree) <= 4

    def test_gain_ratio_criterion(self):
        tree = trees.build_tree(load_dataset("iris"), trees.TreeParams(max_depth=2, criterion="gain_ratio"))
        assert tree["samples"] == 150
        assert "gain_ratio" in tree

    def test_unknown_criterion(self):
        with pytest.raises(ValueError):
            trees.build_tree(load_dataset("iris"), trees.TreeParams(criterion="log_loss"))

    def test_summary(self):
        summary = trees.tree_summary(load_dataset("wine"), trees.TreeParams(max_depth=3), 0.3)
        assert summary["tree_depth"] <= 3
        assert 0.0 <= summary["test_score"] <= 1.0
        assert summary["classes"] == ["class_0", "class_1", "class_2"]


class TestForest:
    def test_bootstrap_and_feature_subset_sizes(self, rng):
        assert len(trees.bootstrap_indices(150, 0.8, rng)) == 120
        subset = trees.feature_subset(4, 0.7, rng)
        assert len(subset) == 2
        assert subset == sorted(set(subset))
        assert len(trees.feature_subset(4, 0.01, rng)) == 1

    def test_forest_uses_feature_names(self):
        params = trees.ForestParams(n_trees=3, seed=11)
        forest = trees.build_forest(load_dataset("iris"), params)
        assert len(forest["trees"]) == 3
        iris = load_dataset("iris")
        for member in forest["trees"]:
            root = member["tree"]
            if root["feature"] is not None:
                assert root["feature"] in [iris.feature_names[i] for i in member["feature_indices"]]

    def test_seeded_forest_predictions_are_stable(self):
        iris = load_dataset("iris")
        params = trees.ForestParams(n_trees=7, seed=5)
        first = trees.predict_forest(iris, params, iris.data[0])
        second = trees.predict_forest(iris, params, iris.data[0])
        assert first == second
        assert len(first["individual_votes"]) == 7
        votes = first["individual_votes"]
        assert votes.count(first["majority_vote"]) == max(votes.count(v) for v in votes)

    def test_record_length_checked(self):
        with pytest.raises(ValueError):
            trees.predict_forest(load_dataset("iris"), trees.ForestParams(), [1.0, 2.0])

    def test_forest_rejects_gain_ratio(self):
        with pytest.raises(ValueError):
            trees.fit_forest(load_dataset("iris"), trees.ForestParams(criterion="gain_ratio"))


class TestTreeRoutes:
    def test_build_tree(self, client):
        response = client.post(
            "/api/build_tree",
            json={"dataset": "iris", "params": {"max_depth": 3, "min_samples_split": 2, "criterion": "entropy"}},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["feature_names"][0] == "sepal length (cm)"
        assert data["tree"]["samples"] == 150

    def test_unknown_dataset_rejected(self, client):
        requests = [
            ("/api/build_tree", {"dataset": "titanic", "params": {}}),
            ("/api/decision-tree", {"dataset": "titanic"}),
            ("/api/build_forest", {"dataset": "titanic", "params": {}}),
            ("/api/predict_forest", {"dataset": "titanic", "params": {}, "record": [1.0]}),
        ]
        for path, body in requests:
            response = client.post(path, json=body)
            assert response.status_code == 400, path
            assert "titanic" in response.json()["detail"]

    def test_build_forest(self, client):
        response = client.post(
            "/api/build_forest",
            json={
                "dataset": "wine",
                "params": {
                    "n_trees": 4,
                    "subsample_ratio": 0.8,
                    "feature_subset": 0.5,
                    "max_depth": 2,
                    "min_samples_split": 2,
                    "criterion": "gini",
                },
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert len(data["trees"]) == 4
        assert data["target_names"] == ["class_0", "class_1", "class_2"]

    def test_predict_forest(self, client):
        record = load_dataset("iris").data[100].tolist()
        response = client.post(
            "/api/predict_forest",
            json={"dataset": "iris", "params": {"n_trees": 5, "seed": 3}, "record": record},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["majority_vote"] in (0, 1, 2)
        assert len(data["individual_votes"]) == 5

    def test_predict_forest_bad_record(self, client):
        response = client.post(
            "/api/predict_forest",
            json={"dataset": "iris", "params": {}, "record": [1.0]},
        )
        assert response.status_code == 400

    def test_decision_tree_summary(self, client):
        response = client.post("/api/decision-tree", json={"dataset": "iris", "max_depth": 2})
        assert response.status_code == 200
        assert response.json()["tree_depth"] <= 2
