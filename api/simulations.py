"""
Simulation session API routes for the ML visualization gallery.

A session is created once per canvas and then stepped, reset, animated or
deleted. Every change of frame is also pushed to ``/ws/session/{id}``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from websocket import notify_session_deleted, notify_session_frame, notify_session_status

from .sessions import (
    SessionKind,
    SessionLimitError,
    SessionNotFoundError,
    SimulationSession,
    session_manager,
)
from .shared.canvas import CONTROL_SETS
from .shared.responses import negotiate_response

router = APIRouter(prefix="/sessions", tags=["sessions"])


class CreateSessionRequest(BaseModel):
    kind: SessionKind
    params: Dict[str, Any] = Field(default_factory=dict)
    seed: Optional[int] = None


class StepRequest(BaseModel):
    count: int = Field(default=1, ge=1, le=1000)


class ResetRequest(BaseModel):
    params: Optional[Dict[str, Any]] = Field(
        default=None, description="Merged over the current values; omit to restore defaults"
    )
    seed: Optional[int] = None


def _get_or_404(session_id: str) -> SimulationSession:
    session = session_manager.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return session


@router.post("")
def create_session(request: CreateSessionRequest):
    try:
        session = session_manager.create_session(request.kind, request.params, request.seed)
    except SessionLimitError as e:
        raise HTTPException(status_code=429, detail=str(e))
    return session.to_dict()


@router.get("")
def list_sessions(kind: Optional[SessionKind] = Query(default=None)):
    sessions = session_manager.list_sessions(kind)
    return {"sessions": [s.to_dict() for s in sessions], "total": len(sessions)}


@router.get("/controls/{kind}")
def session_controls(kind: SessionKind):
    """Slider definitions (range, step, default) for a session kind."""
    return {"kind": kind.value, "controls": CONTROL_SETS[kind.value].describe()}


@router.get("/{session_id}")
def get_session(session_id: str, http_request: Request, scene: bool = False):
    session = _get_or_404(session_id)
    return negotiate_response(session.to_dict(include_scene=scene), http_request)


@router.post("/{session_id}/step")
async def step_session(session_id: str, http_request: Request, request: StepRequest = StepRequest()):
    """Advance the session by ``count`` frames and return the new frame."""
    _get_or_404(session_id)
    try:
        session = session_manager.step_session(session_id, request.count)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    frame = session.to_dict(include_scene=True)
    await notify_session_frame(session_id, frame)
    return negotiate_response(frame, http_request)


@router.post("/{session_id}/reset")
async def reset_session(session_id: str, request: ResetRequest = ResetRequest()):
    _get_or_404(session_id)
    session = session_manager.reset_session(session_id, request.params, request.seed)
    frame = session.to_dict(include_scene=True)
    await notify_session_frame(session_id, frame)
    return session.to_dict()


@router.post("/{session_id}/play")
async def play_session(session_id: str):
    _get_or_404(session_id)
    session = session_manager.start_animation(session_id)
    await notify_session_status(session_id, session.status.value)
    return session.to_dict()


@router.post("/{session_id}/pause")
async def pause_session(session_id: str):
    _get_or_404(session_id)
    session = session_manager.pause_animation(session_id)
    await notify_session_status(session_id, session.status.value)
    return session.to_dict()


@router.delete("/{session_id}")
async def delete_session(session_id: str):
    if not session_manager.delete_session(session_id):
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    await notify_session_deleted(session_id)
    return {"success": True, "id": session_id}
