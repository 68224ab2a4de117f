"""
System API routes for the ML visualization gallery.

This module provides FastAPI routes for system health and information, and
keeps an in-memory log of recent server errors.
"""

import platform
import sys
import threading
import traceback
from collections import deque
from datetime import datetime
from importlib import metadata
from typing import Any, Deque, Dict, List, Optional

from fastapi import APIRouter, Query

from .app_config import settings
from .shared.canvas import CONTROL_SETS
from .shared.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

MAX_ERROR_LOG = 200

_error_log: Deque[Dict[str, Any]] = deque(maxlen=MAX_ERROR_LOG)
_error_lock = threading.Lock()

_PACKAGES = [
    "numpy",
    "scipy",
    "scikit-learn",
    "fastapi",
    "uvicorn",
    "pydantic",
    "orjson",
    "msgpack",
    "httpx",
]


def log_error(
    endpoint: str,
    message: str,
    level: str = "error",
    details: Optional[str] = None,
    exc: Optional[BaseException] = None,
) -> Dict[str, Any]:
    """Record a server error and write it to the application log.

    Args:
        endpoint: Request path that failed
        message: Short error message
        level: ``error`` or ``critical``
        details: Extra context (status code, exception type)
        exc: Exception whose traceback should be kept

    Returns:
        The stored error entry
    """
    entry = {
        "timestamp": datetime.now().isoformat(),
        "endpoint": endpoint,
        "message": message,
        "level": level,
        "details": details,
        "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)) if exc else None,
    }
    with _error_lock:
        _error_log.append(entry)

    if level == "critical":
        logger.critical("%s: %s (%s)", endpoint, message, details, exc_info=exc)
    else:
        logger.error("%s: %s (%s)", endpoint, message, details)
    return entry


def get_recent_errors(limit: int = 50) -> List[Dict[str, Any]]:
    """Most recent errors first."""
    with _error_lock:
        entries = list(_error_log)
    return list(reversed(entries))[:limit]


def clear_errors() -> int:
    with _error_lock:
        count = len(_error_log)
        _error_log.clear()
    return count


def _get_package_versions() -> Dict[str, str]:
    """Get versions of key packages."""
    packages = {}
    for name in _PACKAGES:
        try:
            packages[name] = metadata.version(name)
        except metadata.PackageNotFoundError:
            pass
    return packages


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "message": "ML gallery backend is running",
    }


@router.get("/system/info")
async def system_info():
    """Get system and environment information."""
    return {
        "python": {
            "version": sys.version,
            "platform": sys.platform,
        },
        "system": {
            "os": platform.system(),
            "release": platform.release(),
            "machine": platform.machine(),
        },
        "packages": _get_package_versions(),
    }


@router.get("/system/config")
async def system_config():
    """Effective runtime settings."""
    return settings.to_dict()


@router.get("/system/errors")
async def system_errors(limit: int = Query(default=50, ge=1, le=MAX_ERROR_LOG)):
    errors = get_recent_errors(limit)
    return {"errors": errors, "total": len(errors)}


@router.delete("/system/errors")
async def system_errors_clear():
    return {"cleared": clear_errors()}


@router.get("/canvas/controls")
async def canvas_controls():
    """Slider definitions of every canvas, keyed by algorithm."""
    return {name: controls.describe() for name, controls in CONTROL_SETS.items()}
