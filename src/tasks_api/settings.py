from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - APP_MODE: 'full' (default, CRUD service) or 'demo' (stateless router)
    - PERSISTENCE_BACKEND: 'sqlite' (default) or 'memory'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/tasks.db'
    - SQLITE_WAL: 'true' (default) to switch the database to write-ahead logging
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - LOG_LEVEL: root log level, 'INFO' by default
    - SERVICE_NAME / SERVICE_VERSION: reported by /api/version
    - HOST / PORT: bind address for `python -m tasks_api`
    """

    app_mode: str = "full"
    persistence_backend: str = "sqlite"
    sqlite_db_path: str = "./data/tasks.db"
    sqlite_wal: bool = True
    cors_allow_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    service_name: str = "tasks-api"
    service_version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 5000


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int(value: str, default: int) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        # Star will be handled in main via allow_origins=["*"]
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    mode = _get_env("APP_MODE", "full").strip().lower()
    if mode not in {"full", "demo"}:
        mode = "full"

    backend = _get_env("PERSISTENCE_BACKEND", "sqlite").strip().lower()
    if backend not in {"memory", "sqlite"}:
        # Fallback to sqlite if unsupported
        backend = "sqlite"

    log_level = _get_env("LOG_LEVEL", "INFO").strip().upper()
    if log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        log_level = "INFO"

    return Settings(
        app_mode=mode,
        persistence_backend=backend,
        sqlite_db_path=_get_env("SQLITE_DB_PATH", "./data/tasks.db").strip(),
        sqlite_wal=_parse_bool(_get_env("SQLITE_WAL", "true"), True),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        log_level=log_level,
        service_name=_get_env("SERVICE_NAME", "tasks-api").strip(),
        service_version=_get_env("SERVICE_VERSION", "1.0.0").strip(),
        host=_get_env("HOST", "0.0.0.0").strip(),
        port=_parse_int(_get_env("PORT", "5000"), 5000),
    )
