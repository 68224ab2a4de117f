"""
FastAPI backend for the ML visualization gallery.

This module provides the web API behind the gallery pages: clustering,
self-organizing maps, classifiers, decision trees and forests, regression,
the neural network playground, and live simulation sessions streamed over
WebSockets.
"""

import asyncio

import uvicorn
from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, ORJSONResponse

from api.app_config import settings
from api.shared.logger import get_logger, setup_logging

setup_logging(settings.log_level)
logger = get_logger(__name__)

from api.classifiers import router as classifiers_router
from api.clustering import router as clustering_router
from api.perceptron import router as perceptron_router
from api.regression import router as regression_router
from api.sessions import session_manager
from api.simulations import router as simulations_router
from api.som import router as som_router
from api.system import log_error
from api.system import router as system_router
from api.trees import router as trees_router
from websocket import session_channel, ws_manager

# Seconds between two sweeps of idle sessions
SESSION_CLEANUP_INTERVAL = 300

# Create FastAPI app
app = FastAPI(
    title="ML Gallery API",
    description="Backend for the interactive machine learning visualization gallery",
    version="1.0.0",
    default_response_class=ORJSONResponse,
)

_cleanup_task = None


# ============= Exception Handlers for Error Logging =============


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Log HTTP exceptions and return JSON response."""
    # Only log 5xx errors (server errors)
    if exc.status_code >= 500:
        log_error(
            endpoint=str(request.url.path),
            message=str(exc.detail),
            level="error",
            details=f"Status code: {exc.status_code}",
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Log unexpected exceptions and return JSON response."""
    log_error(
        endpoint=str(request.url.path),
        message=str(exc),
        level="critical",
        details=f"Unhandled exception: {type(exc).__name__}",
        exc=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=not settings.allow_any_origin,  # Must be False when using allow_origins=["*"]
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include API routes
app.include_router(system_router, prefix="/api", tags=["system"])
app.include_router(clustering_router, prefix="/api")
app.include_router(som_router, prefix="/api")
app.include_router(classifiers_router, prefix="/api")
app.include_router(trees_router, prefix="/api")
app.include_router(regression_router, prefix="/api")
app.include_router(perceptron_router, prefix="/api")
app.include_router(simulations_router, prefix="/api")


# ============= Startup Events =============


@app.on_event("startup")
async def startup_event():
    """Initialize services on application startup."""
    global _cleanup_task

    logger.info("ML gallery backend starting...")
    session_manager.configure(
        max_sessions=settings.max_sessions,
        frame_interval_ms=settings.frame_interval_ms,
    )
    _cleanup_task = asyncio.create_task(cleanup_sessions_background())
    logger.info("Startup complete (max %d sessions)", settings.max_sessions)


@app.on_event("shutdown")
async def shutdown_event():
    if _cleanup_task is not None:
        _cleanup_task.cancel()
    session_manager.shutdown()
    logger.info("ML gallery backend stopped")


async def cleanup_sessions_background():
    """Background task removing sessions nobody touched for a while."""
    while True:
        await asyncio.sleep(SESSION_CLEANUP_INTERVAL)
        try:
            session_manager.cleanup_stale_sessions(settings.session_ttl_hours)
        except Exception as e:
            logger.error("Session cleanup failed: %s", e)


# ============= WebSocket Endpoints =============


async def _serve_websocket(websocket: WebSocket) -> None:
    try:
        while True:
            message_text = await websocket.receive_text()
            response = await ws_manager.handle_message(websocket, message_text)
            if response:
                await ws_manager.send_to_connection(websocket, response)

    except WebSocketDisconnect:
        await ws_manager.disconnect(websocket)
    except Exception as e:
        logger.error("WebSocket error: %s", e)
        await ws_manager.disconnect(websocket)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, client_id: str = None):
    """
    Main WebSocket endpoint for real-time updates.

    Clients subscribe to ``session:{session_id}`` channels to receive the
    frames of an animated simulation.

    Message format (JSON):
    {
        "type": "subscribe" | "unsubscribe" | "ping",
        "channel": "channel_name",
        "data": {}
    }
    """
    await ws_manager.connect(websocket, client_id)
    await _serve_websocket(websocket)


@app.websocket("/ws/session/{session_id}")
async def session_websocket_endpoint(websocket: WebSocket, session_id: str):
    """
    WebSocket endpoint for one simulation session.

    Automatically subscribes to the session channel on connection.
    """
    await ws_manager.connect(websocket, f"session-{session_id}")
    await ws_manager.subscribe(websocket, session_channel(session_id))
    await _serve_websocket(websocket)


@app.get("/api/ws/stats")
async def get_websocket_stats():
    """Get WebSocket connection statistics."""
    return {
        "total_connections": ws_manager.get_connection_count(),
        "sessions": len(session_manager.list_sessions()),
    }


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="ML gallery backend server")
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help="Port to run the server on (default: 8000 or MLVIZ_PORT env var)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=settings.host,
        help="Host to bind to (default: 127.0.0.1 or MLVIZ_HOST env var)",
    )
    parser.add_argument(
        "--reload",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Enable auto-reload",
    )
    args = parser.parse_args()

    uvicorn.run(
        "main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
