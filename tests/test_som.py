"""
Tests for the Self-Organizing Map state machine and its routes.

Run tests:
    pytest tests/test_som.py -v
"""

import numpy as np
import pytest

from api.algorithms import som


class TestNeighborhood:
    def test_influence_strictly_decreases_with_grid_distance(self):
        influence = som.neighborhood_influence(np.arange(0, 6), sigma=1.5)
        assert influence[0] == pytest.approx(1.0)
        assert (np.diff(influence) < 0).all()

    def test_sigma_must_be_positive(self):
        with pytest.raises(ValueError):
            som.neighborhood_influence([1.0], 0.0)

    def test_decay(self):
        assert som.decay(0.5, 0, 100) == pytest.approx(0.5)
        assert som.decay(0.5, 100, 100) == pytest.approx(0.5 / np.e)


class TestStep:
    def test_find_bmu_first_wins_ties(self):
        weights = np.array([[1.0, 0.0], [-1.0, 0.0], [5.0, 5.0]])
        assert som.find_bmu(weights, np.array([0.0, 0.0])) == 0

    def test_update_moves_bmu_toward_input(self, rng):
        state = som.initial_state(3, 3, 2, rng)
        x = np.array([0.9, 0.9])
        new = som.update(state, x, som.SOMParams(grid_size=3, learning_rate=0.5, iterations=10))
        bmu = new.bmu_index
        before = np.linalg.norm(state.weights[bmu] - x)
        after = np.linalg.norm(new.weights[bmu] - x)
        assert after < before
        assert new.iteration == 1
        # Previous state is untouched
        assert state.iteration == 0
        assert state.bmu_index is None

    def test_step_is_noop_after_iteration_cap(self, rng):
        params = som.SOMParams(grid_size=2, iterations=3)
        data = som.generate_ring(20, rng)
        state = som.initial_state(2, 2, 2, rng)
        for _ in range(5):
            state = som.step(state, data, params, rng)
        assert state.iteration == 3

    def test_stepping_equals_training(self):
        params = som.SOMParams(grid_size=4, iterations=15)
        data = som.generate_ring(50, np.random.default_rng(3))

        final, history, inputs = som.train(data, params, np.random.default_rng(9))

        rng = np.random.default_rng(9)
        state = som.initial_state(4, 4, 2, rng)
        while state.iteration < params.iterations:
            state = som.step(state, data, params, rng)

        np.testing.assert_allclose(final.weights, state.weights)
        assert len(history) == len(inputs) == 15


class TestTrain:
    def test_rectangular_grid(self, rng):
        params = som.SOMParams(grid_size=2, grid_size_y=5, iterations=4)
        final, history, _ = som.train(rng.random((10, 3)), params, rng)
        assert final.weight_grid().shape == (2, 5, 3)
        assert history[0].shape == (2, 5, 3)

    def test_initial_weights_feature_mismatch(self, rng):
        params = som.SOMParams(grid_size=2, iterations=1)
        with pytest.raises(ValueError):
            som.train(rng.random((5, 3)), params, rng, initial_weights=np.zeros((2, 2, 2)))

    def test_empty_data_rejected(self):
        with pytest.raises(ValueError):
            som.train(np.empty((0, 2)), som.SOMParams())


class TestSOMRoutes:
    def test_som_train(self, client):
        response = client.post(
            "/api/som_train",
            json={
                "data": [[0.0, 0.0, 1.0], [1.0, 1.0, 0.0], [0.5, 0.5, 0.5]],
                "grid_size_x": 2,
                "grid_size_y": 3,
                "learning_rate": 0.2,
                "iterations": 5,
                "sigma": 1.0,
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert np.asarray(data["final_weights"]).shape == (2, 3, 3)
        assert len(data["history"]) == 5
        assert len(data["bmu_history"]) == 5

    def test_som_train_bad_initial_weights(self, client):
        response = client.post(
            "/api/som_train",
            json={
                "data": [[0.0, 0.0]],
                "grid_size_x": 2,
                "grid_size_y": 2,
                "learning_rate": 0.1,
                "iterations": 1,
                "sigma": 1.0,
                "initial_weights": [[[0.0, 0.0]]],
            },
        )
        assert response.status_code == 400

    def test_som_simulate_one_frame_per_iteration(self, client):
        response = client.post("/api/som/simulate", json={"params": {"gridSize": 5, "iterations": 20}, "seed": 1})
        assert response.status_code == 200
        data = response.json()
        assert data["params"]["gridSize"] == 5
        assert [f["iteration"] for f in data["frames"]] == list(range(21))

    def test_som_render_rejects_bad_weights(self, client):
        response = client.post("/api/som/render", json={"data": [], "weights": [[[0.0, 0.0, 0.0]]]})
        assert response.status_code == 400

    def test_som_render_rejects_non_planar_data(self, client):
        weights = [[[0.0, 0.0], [0.5, 0.5]]]
        response = client.post("/api/som/render", json={"data": [[0, 0, 1], [1, 1, 1]], "weights": weights})
        assert response.status_code == 400
        ragged = client.post("/api/som/render", json={"data": [[0, 0], [1]], "weights": weights})
        assert ragged.status_code == 400

    def test_som_render_rejects_bad_bmu_input(self, client):
        body = {"data": [[0.1, 0.2]], "weights": [[[0.0, 0.0], [0.5, 0.5]]], "bmu_index": 1}
        assert client.post("/api/som/render", json=dict(body, bmu_input=[])).status_code == 400
        assert client.post("/api/som/render", json=dict(body, bmu_input=[0.1, 0.2, 0.3])).status_code == 400

        response = client.post("/api/som/render", json=dict(body, bmu_input=[0.1, 0.2]))
        assert response.status_code == 200
        primitives = response.json()["primitives"]
        # Gold input marker and its dashed link to the BMU
        assert sum(1 for p in primitives if p.get("fill") == "#FFD700") == 1
        assert any(p.get("dash") == [5, 5] for p in primitives)

    def test_som_simulate_rejects_non_planar_data(self, client):
        response = client.post("/api/som/simulate", json={"data": [[0, 0, 1], [1, 1, 1]]})
        assert response.status_code == 400

    def test_som_train_rejects_ragged_data(self, client):
        response = client.post(
            "/api/som_train",
            json={
                "data": [[0.0, 1.0], [1.0]],
                "grid_size_x": 2,
                "grid_size_y": 2,
                "learning_rate": 0.5,
                "iterations": 2,
                "sigma": 1.0,
            },
        )
        assert response.status_code == 400
