"""
Centralized logging for the mlviz gallery backend.

Structured, level-based logging using Python's built-in logging module.
The level defaults to ``MLVIZ_LOG_LEVEL`` (or INFO when unset).

Usage:
    from api.shared.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Server starting on port %d", port)
    logger.warning("Session %s not found", session_id)
    logger.error("DBSCAN failed: %s", err)
"""

import logging
import os
import sys

_configured = False


def setup_logging(level: str | None = None) -> None:
    """Configure root logging for the gallery backend.

    Call once at startup (main.py). Subsequent calls are no-ops.
    """
    global _configured
    if _configured:
        return

    level = level or os.environ.get("MLVIZ_LOG_LEVEL", "INFO")
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger scoped to the gallery namespace.

    Args:
        name: Module name (typically ``__name__``).
    """
    return logging.getLogger(name)
