"""
Tests for DBSCAN labelling, sample data and the hull overlay.

Run tests:
    pytest tests/test_dbscan.py -v
"""

import numpy as np
import pytest

from api.algorithms import dbscan

from .geometry_utils import polygon_contains


def _two_blobs_and_noise():
    rng = np.random.default_rng(0)
    a = rng.normal([-0.5, -0.5], 0.03, size=(20, 2))
    b = rng.normal([0.5, 0.5], 0.03, size=(20, 2))
    noise = np.array([[0.9, -0.9], [-0.9, 0.9]])
    return np.vstack([a, b, noise])


class TestSampleData:
    def test_point_counts(self, rng):
        points = dbscan.generate_cluster_data(3, total=200, noise_ratio=0.1, rng=rng)
        # 180 cluster points split over 3 clusters, then 20 noise points
        assert points.shape == (200, 2)

    def test_remainder_dropped(self, rng):
        points = dbscan.generate_cluster_data(7, total=200, noise_ratio=0.1, rng=rng)
        assert len(points) == 7 * (180 // 7) + 20

    def test_inside_unit_square(self, rng):
        points = dbscan.generate_cluster_data(4, rng=rng)
        assert (np.abs(points) <= 1.0).all()

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            dbscan.generate_cluster_data(0)
        with pytest.raises(ValueError):
            dbscan.generate_cluster_data(2, noise_ratio=1.0)


class TestLabels:
    def test_two_clusters_and_noise(self):
        labels = dbscan.run_dbscan(_two_blobs_and_noise(), 0.2, 5)
        assert len(labels) == 42
        assert set(labels[:20]) == {labels[0]}
        assert set(labels[20:40]) == {labels[20]}
        assert labels[0] != labels[20]
        assert labels[-2:].tolist() == [-1, -1]

    def test_empty_input(self):
        assert dbscan.run_dbscan(np.empty((0, 2)), 0.2, 5).tolist() == []


class TestHulls:
    def test_noise_excluded_from_every_hull(self):
        points = _two_blobs_and_noise()
        labels = dbscan.run_dbscan(points, 0.2, 5)
        hulls = dbscan.cluster_hulls(points, labels)
        assert [h.label for h in hulls] == sorted(set(labels) - {-1})
        for hull in hulls:
            for noise_point in points[labels == -1]:
                assert tuple(noise_point) not in hull.hull
                assert not polygon_contains(hull.hull, noise_point)

    def test_small_cluster_not_drawable(self):
        hulls = dbscan.cluster_hulls(np.array([[0.0, 0.0], [1.0, 1.0]]), [0, 0])
        assert hulls[0].drawable is False

    def test_label_length_mismatch(self):
        with pytest.raises(ValueError):
            dbscan.group_by_label(np.zeros((3, 2)), [0, 1])

    def test_overlay_info(self):
        points = _two_blobs_and_noise()
        labels = dbscan.run_dbscan(points, 0.2, 5)
        scene = dbscan.render_overlay(points, labels)
        assert scene.info == {"clusters": 2, "noise": 2}

    def test_hull_bounds_cover_members(self):
        points = _two_blobs_and_noise()
        labels = dbscan.run_dbscan(points, 0.2, 5)
        for hull in dbscan.cluster_hulls(points, labels):
            members = points[labels == hull.label]
            assert hull.bounds == (
                members[:, 0].min(),
                members[:, 0].max(),
                members[:, 1].min(),
                members[:, 1].max(),
            )


class TestDBSCANRoutes:
    def test_labels_same_length_as_points(self, client):
        points = [{"x": float(x), "y": float(y)} for x, y in _two_blobs_and_noise()]
        response = client.post("/api/dbscan", json={"points": points, "epsilon": 0.2, "minPoints": 5})
        assert response.status_code == 200
        labels = response.json()["labels"]
        assert len(labels) == len(points)
        assert labels[-1] == -1

    def test_epsilon_must_be_positive(self, client):
        response = client.post("/api/dbscan", json={"points": [], "epsilon": 0, "minPoints": 5})
        assert response.status_code == 422

    def test_sample_is_reproducible(self, client):
        body = {"numClusters": 3, "seed": 5}
        first = client.post("/api/dbscan/sample", json=body).json()
        second = client.post("/api/dbscan/sample", json=body).json()
        assert first == second
        assert len(first["points"]) == 200

    def test_overlay_rejects_label_mismatch(self, client):
        response = client.post(
            "/api/dbscan/overlay",
            json={"points": [{"x": 0, "y": 0}], "labels": [0, 1]},
        )
        assert response.status_code == 400

    def test_overlay_lists_noise(self, client):
        points = [{"x": 0, "y": 0}, {"x": 0.1, "y": 0}, {"x": 0, "y": 0.1}, {"x": 0.9, "y": 0.9}]
        response = client.post("/api/dbscan/overlay", json={"points": points, "labels": [0, 0, 0, -1]})
        assert response.status_code == 200
        data = response.json()
        assert data["noise"] == [{"x": 0.9, "y": 0.9}]
        assert len(data["hulls"]) == 1
        assert data["hulls"][0]["drawable"] is True
        assert data["hulls"][0]["bounds"] == [0.0, 0.1, 0.0, 0.1]
