"""
Application settings for the ML visualization gallery backend.

Settings are read from environment variables once, at import time of
``main``. Every variable has a default so the server starts with no
configuration:

- MLVIZ_HOST / MLVIZ_PORT: bind address used by ``python main.py``
- MLVIZ_LOG_LEVEL: root log level (see ``api.shared.logger``)
- MLVIZ_CORS_ORIGINS: comma-separated allowed origins, ``*`` for any
- MLVIZ_API_URL: public base URL of the API, used by ``GalleryClient``
- MLVIZ_FRAME_INTERVAL_MS: delay between animated session frames
- MLVIZ_MAX_SESSIONS: cap on live simulation sessions
- MLVIZ_SESSION_TTL_HOURS: idle sessions older than this are removed
"""

import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional

_ENV_PREFIX = "MLVIZ_"

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(_ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{_ENV_PREFIX}{name} must be an integer, got {raw!r}")


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(_ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{_ENV_PREFIX}{name} must be a number, got {raw!r}")


def _env_list(env: Mapping[str, str], name: str, default: List[str]) -> List[str]:
    raw = env.get(_ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class AppSettings:
    """Runtime settings of the backend."""

    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    api_url: Optional[str] = None
    frame_interval_ms: int = 50
    max_sessions: int = 32
    session_ttl_hours: float = 1.0

    @property
    def base_api_url(self) -> str:
        return self.api_url or f"http://{self.host}:{self.port}/api"

    @property
    def allow_any_origin(self) -> bool:
        return "*" in self.cors_origins

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["api_url"] = self.base_api_url
        return data

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AppSettings":
        env = os.environ if env is None else env
        settings = cls(
            host=env.get(_ENV_PREFIX + "HOST", cls.host),
            port=_env_int(env, "PORT", cls.port),
            log_level=env.get(_ENV_PREFIX + "LOG_LEVEL", cls.log_level).upper(),
            cors_origins=_env_list(env, "CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
            api_url=env.get(_ENV_PREFIX + "API_URL") or None,
            frame_interval_ms=_env_int(env, "FRAME_INTERVAL_MS", cls.frame_interval_ms),
            max_sessions=_env_int(env, "MAX_SESSIONS", cls.max_sessions),
            session_ttl_hours=_env_float(env, "SESSION_TTL_HOURS", cls.session_ttl_hours),
        )
        if settings.frame_interval_ms < 1:
            raise ValueError(f"{_ENV_PREFIX}FRAME_INTERVAL_MS must be >= 1")
        if settings.max_sessions < 1:
            raise ValueError(f"{_ENV_PREFIX}MAX_SESSIONS must be >= 1")
        return settings


settings = AppSettings.from_env()
