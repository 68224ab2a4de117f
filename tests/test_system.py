"""
Tests for settings, canvas controls and the system routes.

Run tests:
    pytest tests/test_system.py -v
"""

import pytest

from api import system
from api.app_config import AppSettings
from api.shared.canvas import CONTROL_SETS, KMEANS_CONTROLS, SOM_CONTROLS, ParamControl


class TestAppSettings:
    def test_defaults(self):
        settings = AppSettings.from_env({})
        assert settings.port == 8000
        assert settings.base_api_url == "http://127.0.0.1:8000/api"
        assert settings.allow_any_origin is False

    def test_from_env(self):
        settings = AppSettings.from_env(
            {
                "MLVIZ_PORT": "9001",
                "MLVIZ_LOG_LEVEL": "debug",
                "MLVIZ_CORS_ORIGINS": "*, http://example.org",
                "MLVIZ_API_URL": "https://gallery.example.org/api",
                "MLVIZ_SESSION_TTL_HOURS": "0.5",
            }
        )
        assert settings.port == 9001
        assert settings.log_level == "DEBUG"
        assert settings.cors_origins == ["*", "http://example.org"]
        assert settings.allow_any_origin is True
        assert settings.base_api_url == "https://gallery.example.org/api"
        assert settings.session_ttl_hours == 0.5

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            AppSettings.from_env({"MLVIZ_PORT": "eighty"})
        with pytest.raises(ValueError):
            AppSettings.from_env({"MLVIZ_MAX_SESSIONS": "0"})


class TestParamControls:
    def test_clamp_and_snap(self):
        control = ParamControl("lr", "Learning Rate", 0.01, 0.5, 0.01, 0.1)
        assert control.coerce(0.123) == pytest.approx(0.12)
        assert control.coerce(10) == pytest.approx(0.5)
        assert control.coerce("nonsense") == 0.1
        assert control.coerce(float("nan")) == 0.1

    def test_integer_controls_stay_integers(self):
        assert KMEANS_CONTROLS.coerce({"points": 42.6})["points"] == 43
        assert SOM_CONTROLS.coerce({"iterations": 44})["iterations"] == 40

    def test_options(self):
        assert KMEANS_CONTROLS.coerce({"initMode": "kmeans++"})["initMode"] == "kmeans++"
        assert KMEANS_CONTROLS.coerce({"initMode": "spectral"})["initMode"] == "random"

    def test_merge_over_base(self):
        base = KMEANS_CONTROLS.coerce({"clusters": 4})
        merged = KMEANS_CONTROLS.coerce({"iterations": 20}, base)
        assert merged["clusters"] == 4
        assert merged["iterations"] == 20

    def test_describe(self):
        described = CONTROL_SETS["dbscan"].describe()
        assert described[0]["name"] == "epsilon"
        assert described[0]["defaultValue"] == 0.2


class TestErrorLog:
    def test_log_and_clear(self):
        system.clear_errors()
        system.log_error("/api/x", "first")
        system.log_error("/api/y", "second", level="critical", exc=RuntimeError("boom"))
        errors = system.get_recent_errors()
        assert [e["endpoint"] for e in errors] == ["/api/y", "/api/x"]
        assert "RuntimeError: boom" in errors[0]["traceback"]
        assert system.clear_errors() == 2
        assert system.get_recent_errors() == []


class TestSystemRoutes:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_info_lists_packages(self, client):
        packages = client.get("/api/system/info").json()["packages"]
        assert "numpy" in packages
        assert "scikit-learn" in packages

    def test_config(self, client):
        data = client.get("/api/system/config").json()
        assert data["api_url"].endswith("/api")
        assert data["max_sessions"] >= 1

    def test_errors_endpoint(self, client):
        system.clear_errors()
        system.log_error("/api/z", "broken")
        data = client.get("/api/system/errors", params={"limit": 5}).json()
        assert data["total"] == 1
        assert client.delete("/api/system/errors").json() == {"cleared": 1}

    def test_canvas_controls(self, client):
        data = client.get("/api/canvas/controls").json()
        assert set(data) == {"kmeans", "som", "dbscan", "svm", "knn"}
