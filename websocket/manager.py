"""
WebSocket connection manager for the ML visualization gallery.

Streams simulation session frames to the browser:
- WebSocket connection management
- Channel-based message broadcasting (``session:{id}`` per session)
- Frame, status and completion notifications
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Set

import orjson
from fastapi import WebSocket

from api.shared.logger import get_logger

logger = get_logger(__name__)


class MessageType(str, Enum):
    """Types of WebSocket messages."""

    # Session messages
    SESSION_FRAME = "session_frame"
    SESSION_STATUS = "session_status"
    SESSION_COMPLETED = "session_completed"
    SESSION_DELETED = "session_deleted"

    # Client requests
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"

    # System messages
    PING = "ping"
    PONG = "pong"
    ERROR = "error"
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"


def session_channel(session_id: str) -> str:
    return f"session:{session_id}"


@dataclass
class WebSocketMessage:
    """Represents a WebSocket message."""

    type: MessageType
    channel: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[str] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now().isoformat()

    def to_json(self) -> str:
        """Convert message to JSON string; numpy arrays are serialized natively."""
        return orjson.dumps(
            {
                "type": self.type.value,
                "channel": self.channel,
                "data": self.data,
                "timestamp": self.timestamp,
            },
            option=orjson.OPT_SERIALIZE_NUMPY,
        ).decode()

    @classmethod
    def from_json(cls, json_str: str) -> "WebSocketMessage":
        """Create message from JSON string."""
        data = orjson.loads(json_str)
        if not isinstance(data, dict):
            raise ValueError("message must be a JSON object")
        return cls(
            type=MessageType(data.get("type", "error")),
            channel=data.get("channel", ""),
            data=data.get("data") or {},
            timestamp=data.get("timestamp"),
        )


class WebSocketManager:
    """
    Manages WebSocket connections for real-time updates.

    Supports channel-based subscriptions for targeted message delivery.
    """

    def __init__(self):
        self._connections: Set[WebSocket] = set()

        # Channel subscriptions: channel -> set of WebSockets
        self._channels: Dict[str, Set[WebSocket]] = {}

        # Connection metadata: WebSocket -> subscription info
        self._connection_info: Dict[WebSocket, Dict[str, Any]] = {}

        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, client_id: Optional[str] = None) -> None:
        """
        Accept a new WebSocket connection.

        Args:
            websocket: The WebSocket connection
            client_id: Optional client identifier
        """
        await websocket.accept()

        async with self._lock:
            self._connections.add(websocket)
            self._connection_info[websocket] = {
                "client_id": client_id,
                "connected_at": datetime.now().isoformat(),
                "subscriptions": set(),
            }

        await self.send_to_connection(
            websocket,
            WebSocketMessage(
                type=MessageType.CONNECTED,
                channel="system",
                data={
                    "client_id": client_id,
                    "message": "Connected to ML gallery WebSocket server",
                },
            ),
        )

    async def disconnect(self, websocket: WebSocket) -> None:
        """Forget a connection and all of its subscriptions."""
        async with self._lock:
            subscriptions = self._connection_info.get(websocket, {}).get("subscriptions", set())
            for channel in subscriptions:
                if channel in self._channels:
                    self._channels[channel].discard(websocket)
                    if not self._channels[channel]:
                        del self._channels[channel]

            self._connections.discard(websocket)
            self._connection_info.pop(websocket, None)

    async def subscribe(self, websocket: WebSocket, channel: str) -> None:
        async with self._lock:
            self._channels.setdefault(channel, set()).add(websocket)
            if websocket in self._connection_info:
                self._connection_info[websocket]["subscriptions"].add(channel)

        await self.send_to_connection(
            websocket,
            WebSocketMessage(type=MessageType.SUBSCRIBED, channel=channel, data={"channel": channel}),
        )

    async def unsubscribe(self, websocket: WebSocket, channel: str) -> None:
        async with self._lock:
            if channel in self._channels:
                self._channels[channel].discard(websocket)
                if not self._channels[channel]:
                    del self._channels[channel]

            if websocket in self._connection_info:
                self._connection_info[websocket]["subscriptions"].discard(channel)

        await self.send_to_connection(
            websocket,
            WebSocketMessage(type=MessageType.UNSUBSCRIBED, channel=channel, data={"channel": channel}),
        )

    async def send_to_connection(
        self,
        websocket: WebSocket,
        message: WebSocketMessage,
    ) -> bool:
        """
        Send a message to a specific connection.

        Returns:
            True if sent successfully, False otherwise
        """
        try:
            await websocket.send_text(message.to_json())
            return True
        except Exception as e:
            logger.warning("Error sending WebSocket message: %s", e)
            await self.disconnect(websocket)
            return False

    async def broadcast_to_channel(
        self,
        channel: str,
        message: WebSocketMessage,
    ) -> int:
        """
        Broadcast a message to all subscribers of a channel.

        Returns:
            Number of connections that received the message
        """
        async with self._lock:
            subscribers = list(self._channels.get(channel, set()))

        if not subscribers:
            return 0

        payload = message.to_json()
        sent_count = 0
        disconnected = []

        for websocket in subscribers:
            try:
                await websocket.send_text(payload)
                sent_count += 1
            except Exception:
                disconnected.append(websocket)

        for ws in disconnected:
            await self.disconnect(ws)

        return sent_count

    def get_channel_subscribers(self, channel: str) -> int:
        return len(self._channels.get(channel, set()))

    def get_connection_count(self) -> int:
        """Get the total number of active connections."""
        return len(self._connections)

    async def handle_message(
        self,
        websocket: WebSocket,
        message_text: str,
    ) -> Optional[WebSocketMessage]:
        """
        Handle an incoming WebSocket message.

        Args:
            websocket: Source WebSocket connection
            message_text: Raw message text

        Returns:
            Response message or None
        """
        try:
            message = WebSocketMessage.from_json(message_text)
        except (orjson.JSONDecodeError, ValueError) as e:
            return WebSocketMessage(
                type=MessageType.ERROR,
                channel="system",
                data={"error": f"Invalid message format: {e}"},
            )

        if message.type == MessageType.PING:
            return WebSocketMessage(
                type=MessageType.PONG,
                channel="system",
                data={"timestamp": datetime.now().isoformat()},
            )

        if message.type == MessageType.SUBSCRIBE:
            channel = message.data.get("channel") or message.channel
            if channel:
                await self.subscribe(websocket, channel)
            return None

        if message.type == MessageType.UNSUBSCRIBE:
            channel = message.data.get("channel") or message.channel
            if channel:
                await self.unsubscribe(websocket, channel)
            return None

        return None


# Global WebSocket manager instance
ws_manager = WebSocketManager()


# ============= Helper Functions for Session Updates =============


async def notify_session_frame(session_id: str, frame: Dict[str, Any]) -> int:
    """
    Send the latest frame of a session to its subscribers.

    Args:
        session_id: Session identifier
        frame: Session snapshot (see ``SimulationSession.to_dict``)
    """
    channel = session_channel(session_id)
    message = WebSocketMessage(type=MessageType.SESSION_FRAME, channel=channel, data=frame)
    return await ws_manager.broadcast_to_channel(channel, message)


async def notify_session_status(session_id: str, status: str) -> int:
    channel = session_channel(session_id)
    message = WebSocketMessage(
        type=MessageType.SESSION_STATUS,
        channel=channel,
        data={"session_id": session_id, "status": status},
    )
    return await ws_manager.broadcast_to_channel(channel, message)


async def notify_session_completed(session_id: str, frame: Dict[str, Any]) -> int:
    """Tell subscribers the session reached its iteration budget."""
    channel = session_channel(session_id)
    message = WebSocketMessage(type=MessageType.SESSION_COMPLETED, channel=channel, data=frame)
    return await ws_manager.broadcast_to_channel(channel, message)


async def notify_session_deleted(session_id: str) -> int:
    channel = session_channel(session_id)
    message = WebSocketMessage(
        type=MessageType.SESSION_DELETED,
        channel=channel,
        data={"session_id": session_id},
    )
    return await ws_manager.broadcast_to_channel(channel, message)
