"""
WebSocket module for the ML visualization gallery.

Streams simulation session frames and status changes to subscribed
browser pages.
"""

from .manager import (
    MessageType,
    WebSocketManager,
    WebSocketMessage,
    notify_session_completed,
    notify_session_deleted,
    notify_session_frame,
    notify_session_status,
    session_channel,
    ws_manager,
)

__all__ = [
    "WebSocketManager",
    "WebSocketMessage",
    "MessageType",
    "ws_manager",
    "session_channel",
    "notify_session_frame",
    "notify_session_status",
    "notify_session_completed",
    "notify_session_deleted",
]
