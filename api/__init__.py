"""
API package for the ML visualization gallery FastAPI backend.

This package provides the REST API endpoints for:
- System health, settings and recent errors (system.py)
- DBSCAN and K-Means clustering (clustering.py)
- Self-organizing maps (som.py)
- KNN and SVM classification (classifiers.py)
- Decision trees and random forests (trees.py)
- Logistic and linear regression (regression.py)
- Neural network playground (perceptron.py)
- Live simulation sessions (simulations.py, sessions/)

``client.py`` is the async HTTP client used by pages and scripts.
"""

from .app_config import AppSettings, settings
from .sessions import SessionKind, SessionStatus, SimulationSession, session_manager

__all__ = [
    "settings",
    "AppSettings",
    "session_manager",
    "SimulationSession",
    "SessionKind",
    "SessionStatus",
]
