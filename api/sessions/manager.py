"""
Simulation session manager for the ML visualization gallery.

A session owns the state of one animated canvas (K-Means or SOM). Frames
are produced by stepping the stored state forward, so frame ``n`` costs one
step instead of a replay from the start. Sessions can be stepped on demand
or animated by an asyncio task that pushes every frame to the session's
WebSocket channel.
"""

import asyncio
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from ..algorithms import kmeans, som
from ..shared.canvas import KMEANS_CONTROLS, SOM_CONTROLS, ControlSet
from ..shared.logger import get_logger
from ..shared.rendering import Scene

logger = get_logger(__name__)


class SessionStatus(str, Enum):
    """Lifecycle of a simulation session."""

    IDLE = "idle"
    ANIMATING = "animating"
    COMPLETED = "completed"


class SessionKind(str, Enum):
    KMEANS = "kmeans"
    SOM = "som"


class SessionNotFoundError(KeyError):
    """Raised for an unknown session id."""


class SessionLimitError(RuntimeError):
    """Raised when creating a session would exceed ``max_sessions``."""


@dataclass
class SimulationSession:
    """One live simulation and the bookkeeping around it."""

    id: str
    kind: SessionKind
    params: Dict[str, Any]
    state: Any
    rng: np.random.Generator
    seed: Optional[int] = None
    data: Optional[np.ndarray] = None
    frame: int = 0
    status: SessionStatus = SessionStatus.IDLE
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def iterations(self) -> int:
        return int(self.params["iterations"])

    @property
    def is_complete(self) -> bool:
        return self.state.iteration >= self.iterations

    def render(self, width: Optional[int] = None, height: Optional[int] = None) -> Scene:
        engine = ENGINES[self.kind]
        return engine.render(self, width, height)

    def to_dict(self, include_scene: bool = False) -> Dict[str, Any]:
        """Convert session to dictionary for JSON serialization."""
        data = {
            "id": self.id,
            "kind": self.kind.value,
            "status": self.status.value,
            "params": dict(self.params),
            "seed": self.seed,
            "frame": self.frame,
            "iteration": self.state.iteration,
            "iterations": self.iterations,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "state": self.state.to_dict(),
        }
        if self.data is not None:
            data["data"] = self.data.tolist()
        if include_scene:
            data["scene"] = self.render().to_dict()
        return data


# ============= Engines =============


@dataclass(frozen=True)
class SessionEngine:
    """How one kind of simulation is built, advanced and drawn."""

    controls: ControlSet
    build: Callable[[Dict[str, Any], np.random.Generator], tuple]
    advance: Callable[[SimulationSession], Any]
    render: Callable[[SimulationSession, Optional[int], Optional[int]], Scene]


def _kmeans_params(values: Dict[str, Any]) -> kmeans.KMeansParams:
    return kmeans.KMeansParams(
        points=values["points"],
        clusters=values["clusters"],
        iterations=values["iterations"],
        init_mode=values["initMode"],
    )


def _build_kmeans(values: Dict[str, Any], rng: np.random.Generator) -> tuple:
    params = _kmeans_params(values)
    points = kmeans.generate_points(params.points, params.bounds, rng)
    centroids = kmeans.initialize_centroids(points, params.clusters, params.init_mode, params.bounds, rng)
    return kmeans.initial_state(points, centroids), None


def _som_params(values: Dict[str, Any]) -> som.SOMParams:
    return som.SOMParams(
        grid_size=values["gridSize"],
        learning_rate=values["learningRate"],
        iterations=values["iterations"],
        sigma=values["sigma"],
    )


def _build_som(values: Dict[str, Any], rng: np.random.Generator) -> tuple:
    params = _som_params(values)
    data = som.generate_ring(rng=rng)
    return som.initial_state(params.rows, params.cols, 2, rng), data


ENGINES: Dict[SessionKind, SessionEngine] = {
    SessionKind.KMEANS: SessionEngine(
        controls=KMEANS_CONTROLS,
        build=_build_kmeans,
        advance=lambda s: kmeans.step(s.state, kmeans.DEFAULT_BOUNDS, s.rng),
        render=lambda s, w, h: kmeans.render_frame(s.state, w or 800, h or 600),
    ),
    SessionKind.SOM: SessionEngine(
        controls=SOM_CONTROLS,
        build=_build_som,
        advance=lambda s: som.step(s.state, s.data, _som_params(s.params), s.rng),
        render=lambda s, w, h: som.render_frame(s.state, s.data, w or 1000, h or 600, s.frame),
    ),
}


# ============= Manager =============


class SessionManager:
    """
    Registry of live simulation sessions.

    The registry and every state swap are guarded by a lock; session states
    themselves are immutable values.
    """

    def __init__(self, max_sessions: int = 32, frame_interval_ms: int = 50):
        self._sessions: Dict[str, SimulationSession] = {}
        self._lock = threading.Lock()
        self.max_sessions = max_sessions
        self.frame_interval_ms = frame_interval_ms

    def configure(self, max_sessions: Optional[int] = None, frame_interval_ms: Optional[int] = None) -> None:
        if max_sessions is not None:
            self.max_sessions = max_sessions
        if frame_interval_ms is not None:
            self.frame_interval_ms = frame_interval_ms

    def create_session(
        self,
        kind: SessionKind,
        params: Optional[Dict[str, Any]] = None,
        seed: Optional[int] = None,
    ) -> SimulationSession:
        """Create a session with ``params`` coerced over the defaults.

        Raises:
            SessionLimitError: if ``max_sessions`` sessions already exist.
        """
        kind = SessionKind(kind)
        engine = ENGINES[kind]
        values = engine.controls.coerce(params)
        rng = np.random.default_rng(seed)
        state, data = engine.build(values, rng)

        session = SimulationSession(
            id=f"{kind.value}_{uuid.uuid4().hex[:8]}",
            kind=kind,
            params=values,
            state=state,
            rng=rng,
            seed=seed,
            data=data,
        )

        with self._lock:
            if len(self._sessions) >= self.max_sessions:
                raise SessionLimitError(f"Session limit reached ({self.max_sessions})")
            self._sessions[session.id] = session

        logger.info("Created %s session %s", kind.value, session.id)
        return session

    def get_session(self, session_id: str) -> Optional[SimulationSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def _require(self, session_id: str) -> SimulationSession:
        session = self.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def list_sessions(self, kind: Optional[SessionKind] = None) -> List[SimulationSession]:
        """Sessions newest first, optionally filtered by kind."""
        with self._lock:
            sessions = list(self._sessions.values())
        if kind is not None:
            sessions = [s for s in sessions if s.kind == SessionKind(kind)]
        sessions.sort(key=lambda s: s.created_at, reverse=True)
        return sessions

    def step_session(self, session_id: str, count: int = 1) -> SimulationSession:
        """Advance up to ``count`` frames; stops at the iteration budget."""
        session = self._require(session_id)
        engine = ENGINES[session.kind]
        with self._lock:
            for _ in range(max(0, count)):
                if session.is_complete:
                    break
                session.state = engine.advance(session)
                session.frame += 1
            if session.is_complete:
                session.status = SessionStatus.COMPLETED
            session.updated_at = datetime.now()
        return session

    def reset_session(
        self,
        session_id: str,
        params: Optional[Dict[str, Any]] = None,
        seed: Optional[int] = None,
    ) -> SimulationSession:
        """Rebuild the session from scratch.

        ``params`` are merged over the current values; passing ``None``
        restores the defaults. Any running animation is cancelled.
        """
        session = self._require(session_id)
        self._cancel_task(session)
        engine = ENGINES[session.kind]
        values = engine.controls.coerce(params) if params is None else engine.controls.coerce(params, session.params)
        if seed is not None:
            session.seed = seed
        rng = np.random.default_rng(session.seed)
        state, data = engine.build(values, rng)

        with self._lock:
            session.params = values
            session.rng = rng
            session.state = state
            session.data = data
            session.frame = 0
            session.status = SessionStatus.IDLE
            session.updated_at = datetime.now()
        return session

    # ============= Animation =============

    def start_animation(self, session_id: str) -> SimulationSession:
        """Start stepping the session on the running event loop.

        A completed session is left as is; an animating one keeps its task.
        """
        session = self._require(session_id)
        if session.is_complete:
            session.status = SessionStatus.COMPLETED
            return session
        if session.task is not None and not session.task.done():
            return session

        session.status = SessionStatus.ANIMATING
        session.updated_at = datetime.now()
        session.task = asyncio.get_running_loop().create_task(self._animate(session))
        return session

    def pause_animation(self, session_id: str) -> SimulationSession:
        session = self._require(session_id)
        self._cancel_task(session)
        if session.status == SessionStatus.ANIMATING:
            session.status = SessionStatus.IDLE
        session.updated_at = datetime.now()
        return session

    async def _animate(self, session: SimulationSession) -> None:
        # Import here to avoid circular imports
        from websocket import notify_session_completed, notify_session_frame

        interval = self.frame_interval_ms / 1000.0
        try:
            while not session.is_complete:
                self.step_session(session.id)
                await notify_session_frame(session.id, session.to_dict(include_scene=True))
                await asyncio.sleep(interval)
            await notify_session_completed(session.id, session.to_dict())
        except SessionNotFoundError:
            # Deleted while animating
            return
        except Exception as e:
            logger.error("Animation of session %s failed: %s", session.id, e)
            session.status = SessionStatus.IDLE
        finally:
            if session.task is asyncio.current_task():
                session.task = None

    def _cancel_task(self, session: SimulationSession) -> None:
        task = session.task
        if task is not None and not task.done():
            task.cancel()
        session.task = None

    # ============= Teardown =============

    def delete_session(self, session_id: str) -> bool:
        """Remove a session, cancelling its animation.

        Returns:
            True if deleted, False if session not found
        """
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        self._cancel_task(session)
        logger.info("Deleted session %s", session_id)
        return True

    def cleanup_stale_sessions(self, max_age_hours: float = 1.0) -> int:
        """Remove sessions that have not changed for ``max_age_hours``.

        Animating sessions are kept.

        Returns:
            Number of sessions removed
        """
        now = datetime.now()
        with self._lock:
            stale = [
                session_id
                for session_id, session in self._sessions.items()
                if session.status != SessionStatus.ANIMATING
                and (now - session.updated_at).total_seconds() / 3600 > max_age_hours
            ]
        removed = sum(1 for session_id in stale if self.delete_session(session_id))
        if removed:
            logger.info("Removed %d stale sessions", removed)
        return removed

    def shutdown(self) -> None:
        """Cancel every running animation."""
        with self._lock:
            sessions = list(self._sessions.values())
        for session in sessions:
            self._cancel_task(session)
            if session.status == SessionStatus.ANIMATING:
                session.status = SessionStatus.IDLE


# Global session manager instance
session_manager = SessionManager()
