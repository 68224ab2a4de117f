"""
Tests for the KNN and SVM pages.

Run tests:
    pytest tests/test_classifiers.py -v
"""

import numpy as np
import pytest

from api.algorithms import knn, svm


class TestKNNClassify:
    def test_majority_vote(self):
        points = np.array([[0, 0], [1, 0], [0, 1], [10, 10]], dtype=float)
        labels = np.array([1, 1, 0, 0])
        result = knn.classify(points, labels, (0.2, 0.2), 3)
        assert result.prediction == 1
        assert [n.index for n in result.neighbors] == [0, 1, 2]
        assert result.votes == {1: 2, 0: 1}

    def test_tie_goes_to_nearest_label_by_default(self):
        points = np.array([[3, 0], [1, 0]], dtype=float)
        labels = np.array([0, 1])
        result = knn.classify(points, labels, (0, 0), 2)
        assert result.tied_labels == [0, 1]
        assert result.prediction == 1

    def test_lowest_tie_break(self):
        points = np.array([[3, 0], [1, 0]], dtype=float)
        labels = np.array([4, 2])
        result = knn.classify(points, labels, (0, 0), 2, tie_break="lowest")
        assert result.prediction == 2

    def test_k_larger_than_points(self):
        result = knn.classify(np.array([[0.0, 0.0]]), np.array([3]), (1, 1), 5)
        assert result.prediction == 3
        assert len(result.neighbors) == 1
        assert result.neighbors[0].distance == pytest.approx(np.sqrt(2))

    def test_no_points(self):
        assert knn.classify(np.empty((0, 2)), np.empty(0), (0, 0), 3).prediction is None

    def test_generate_labeled_points(self, rng):
        points, labels = knn.generate_labeled_points(50, 4, rng=rng)
        assert points.shape == (50, 2)
        assert set(labels.tolist()) <= {0, 1, 2, 3}


class TestInstructionalSVM:
    def test_generate_data_labels_binary(self, rng):
        X, y = svm.generate_data(40, noise=0.0, kernel="linear", rng=rng)
        assert X.shape == (40, 2)
        np.testing.assert_array_equal(y, (X[:, 1] > 0.5 * X[:, 0]).astype(int))

    def test_unknown_kernel(self):
        with pytest.raises(ValueError):
            svm.kernel_matrix(np.zeros((1, 2)), np.zeros((1, 2)), "poly", 1.0)

    def test_c_must_be_positive(self):
        with pytest.raises(ValueError):
            svm.InstructionalSVM(np.zeros((1, 2)), np.zeros(1), svm.SVMParams(c=0))

    def test_decision_grid_classes(self, rng):
        X, y = svm.generate_data(25, rng=rng)
        model = svm.InstructionalSVM(X, y, svm.SVMParams())
        raw, classes = model.decision_grid(20)
        assert raw.shape == classes.shape == (20, 20)
        assert set(np.unique(classes)) <= {-1, 0, 1}
        np.testing.assert_array_equal(classes[np.abs(raw) < 1.0], 0)

    def test_empty_training_set(self):
        model = svm.InstructionalSVM(np.empty((0, 2)), np.empty(0), svm.SVMParams())
        assert model.errors() == 0
        assert model.support_vectors().tolist() == []
        assert model.predict(np.zeros((3, 2))).tolist() == [0, 0, 0]

    def test_linear_level_segments(self):
        X = np.array([[0.5, 0.0], [-0.5, 0.0]])
        model = svm.InstructionalSVM(X, np.array([1, 0]), svm.SVMParams(c=1.0, kernel="linear"))
        # alphas (1, -1) give w = (1, 0), so level lines are x = level
        np.testing.assert_allclose(model.linear_weights(), [1.0, 0.0])
        for level in (0.0, 1.0, -1.0):
            segment = model.level_segment(level)
            np.testing.assert_allclose(segment[:, 0], [level, level])
            np.testing.assert_allclose(sorted(segment[:, 1]), [-5.0, 5.0])
            np.testing.assert_allclose(model.decision_function(segment), [level, level])

    def test_linear_frame_draws_decision_and_margins(self):
        X = np.array([[0.5, 0.0], [-0.5, 0.0]])
        model = svm.InstructionalSVM(X, np.array([1, 0]), svm.SVMParams(c=1.0, kernel="linear"))
        strokes = [p.stroke for p in svm.render_frame(model, resolution=10).primitives if p.kind == "polyline"]
        assert strokes.count("#000") == 1
        assert strokes.count("#aaa") == 2

    def test_no_margin_lines_for_rbf_or_zero_weights(self, rng):
        X, y = svm.generate_data(25, rng=rng)
        rbf = svm.InstructionalSVM(X, y, svm.SVMParams(kernel="rbf"))
        flat = svm.InstructionalSVM(np.array([[1.0, 0.0], [-1.0, 0.0]]), np.array([1, 0]), svm.SVMParams(kernel="linear"))
        assert flat.level_segment(0.0) is None
        for model in (rbf, flat):
            strokes = [p.stroke for p in svm.render_frame(model, resolution=10).primitives if p.kind == "polyline"]
            assert "#000" not in strokes and "#aaa" not in strokes


class TestClassifierRoutes:
    def test_knn_reference_predictions(self, client):
        X = [[0, 0], [0, 1], [1, 0], [10, 10], [10, 11], [11, 10]]
        y = [0, 0, 0, 1, 1, 1]
        response = client.post("/api/knn", json={"X": X, "y": y})
        assert response.status_code == 200
        assert response.json()["predictions"] == y

    def test_knn_needs_three_samples(self, client):
        response = client.post("/api/knn", json={"X": [[0, 0], [1, 1]], "y": [0, 1]})
        assert response.status_code == 400

    def test_knn_classify_with_scene(self, client):
        points = [{"x": 0, "y": 0, "label": 2}, {"x": 5, "y": 5, "label": 1}, {"x": 1, "y": 1, "label": 2}]
        response = client.post("/api/knn/classify", json={"points": points, "query": [0.5, 0.5], "k": 2, "render": True})
        assert response.status_code == 200
        data = response.json()
        assert data["prediction"] == 2
        assert data["votes"] == {"2": 2}
        assert len(data["neighbors"]) == 2
        assert data["scene"]["background"] == "#000000"

    def test_knn_sample_coerces_params(self, client):
        response = client.post("/api/knn/sample", json={"params": {"points": 5000, "classes": 3}, "seed": 0})
        data = response.json()
        assert data["params"]["points"] == 300
        assert len(data["points"]) == 300

    def test_svm_reference_predictions(self, client):
        X = [[0, 0], [0, 1], [1, 0], [10, 10], [10, 11], [11, 10]]
        y = [0, 0, 0, 1, 1, 1]
        response = client.post("/api/svm", json={"X": X, "y": y})
        assert response.status_code == 200
        assert len(response.json()["predictions"]) == 6

    def test_svm_needs_two_classes(self, client):
        response = client.post("/api/svm", json={"X": [[0, 0], [1, 1]], "y": [1, 1]})
        assert response.status_code == 400

    def test_svm_decision(self, client):
        sample = client.post("/api/svm/sample", json={"seed": 3}).json()
        response = client.post(
            "/api/svm/decision",
            json={"X": sample["X"], "y": sample["y"], "resolution": 10, "params": {"kernel": "linear"}},
        )
        assert response.status_code == 200
        data = response.json()
        assert np.asarray(data["classes"]).shape == (10, 10)
        assert len(data["alphas"]) == 25
        assert "layers" not in data["scene"]

    def test_reference_routes_reject_ragged_samples(self, client):
        for path in ("/api/knn", "/api/svm"):
            response = client.post(path, json={"X": [[0, 0], [1], [2, 2]], "y": [0, 1, 1]})
            assert response.status_code == 400, path

    def test_svm_decision_rejects_non_planar_points(self, client):
        wide = client.post("/api/svm/decision", json={"X": [[1, 2, 3], [4, 5, 6]], "y": [0, 1]})
        assert wide.status_code == 400
        ragged = client.post("/api/svm/decision", json={"X": [[1, 2], [4]], "y": [0, 1]})
        assert ragged.status_code == 400

    def test_svm_decision_msgpack(self, client):
        import msgpack

        response = client.post(
            "/api/svm/decision",
            json={"X": [[0, 0], [1, 1]], "y": [0, 1], "resolution": 4},
            headers={"Accept": "application/x-msgpack"},
        )
        assert response.headers["content-type"].startswith("application/x-msgpack")
        data = msgpack.unpackb(response.content, raw=False)
        assert data["resolution"] == 4
        assert len(data["classes"]) == 4
