"""
Sessions package for server-held simulation state.

Provides the session manager that keeps K-Means and SOM simulations alive
between frames and animates them over WebSockets.
"""

from .manager import (
    SessionKind,
    SessionLimitError,
    SessionManager,
    SessionNotFoundError,
    SessionStatus,
    SimulationSession,
    session_manager,
)

__all__ = [
    "session_manager",
    "SessionManager",
    "SimulationSession",
    "SessionKind",
    "SessionStatus",
    "SessionNotFoundError",
    "SessionLimitError",
]
