from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .errors import register_error_handlers
from .middleware import AccessLogMiddleware
from .repositories import build_repository
from .routers import demo as demo_router
from .routers import meta as meta_router
from .routers import tasks as tasks_router
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and version endpoints."},
    {
        "name": "tasks",
        "description": "CRUD and bulk operations for tasks with filtering and sorting.",
    },
]


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    In 'full' mode the task store is opened on startup and the CRUD routes are
    mounted; in 'demo' mode only health, version and the catch-all fallback
    are served and nothing is persisted.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if settings.app_mode == "full":
            app.state.repository = build_repository(settings)
        logger.info("%s %s started in %s mode", settings.service_name, settings.service_version, settings.app_mode)
        yield

    # Demo mode answers every GET with the fallback, docs included
    docs_enabled = settings.app_mode != "demo"
    app = FastAPI(
        title="Tasks API",
        description="Backend API service for a minimal task manager.",
        version=settings.service_version,
        openapi_tags=openapi_tags,
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.state.settings = settings

    # Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(AccessLogMiddleware)

    register_error_handlers(app)

    app.include_router(meta_router.router)
    if settings.app_mode == "demo":
        # Must be last: the fallback matches every GET path
        app.include_router(demo_router.router)
    else:
        app.include_router(tasks_router.router)
    return app


app = create_app()
