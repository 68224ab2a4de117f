"""
Root conftest.py for ML gallery backend tests.

This file contains shared fixtures and pytest configuration
that applies to all test modules.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Ensure the project root is in the path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


# ============================================================================
# Pytest Hooks
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "websocket: mark test as involving WebSocket communication",
    )
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow running",
    )


def pytest_collection_modifyitems(config, items):
    """
    Automatically mark tests based on their name.

    - Tests with 'websocket' in name are marked with 'websocket'
    - Tests with 'digits' in name are marked with 'slow'
    """
    for item in items:
        if "websocket" in item.name.lower():
            item.add_marker(pytest.mark.websocket)
        if "digits" in item.name.lower():
            item.add_marker(pytest.mark.slow)


# ============================================================================
# Shared Fixtures
# ============================================================================


@pytest.fixture
def rng():
    """Seeded random generator so numeric tests are reproducible."""
    return np.random.default_rng(1234)


@pytest.fixture
def client():
    """TestClient over the full application, with startup and shutdown events."""
    from fastapi.testclient import TestClient

    from main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def fresh_sessions():
    """Empty the global session registry before and after a test."""
    from api.sessions import session_manager

    def _clear():
        for session in session_manager.list_sessions():
            session_manager.delete_session(session.id)

    _clear()
    yield session_manager
    _clear()


@pytest.fixture
def triangle_points():
    """Nine points forming three tight triangles around (0,0), (10,10), (-10,10)."""
    return np.array(
        [
            [0.0, 0.0], [1.0, 0.0], [0.5, 1.0],
            [10.0, 10.0], [11.0, 10.0], [10.5, 11.0],
            [-10.0, 10.0], [-9.0, 10.0], [-9.5, 11.0],
        ]
    )
