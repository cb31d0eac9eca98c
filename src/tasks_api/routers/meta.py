from __future__ import annotations

from fastapi import APIRouter, Request

from ..schemas import HealthOut, VersionOut

router = APIRouter(prefix="/api", tags=["health"])


# PUBLIC_INTERFACE
@router.get("/health", response_model=HealthOut, summary="Health Check")
def health_check() -> HealthOut:
    """
    Health check endpoint. Always succeeds while the process is serving.
    """
    return HealthOut(status="ok")


# PUBLIC_INTERFACE
@router.get("/version", response_model=VersionOut, summary="Service version")
def version(request: Request) -> VersionOut:
    """Return the service name and version."""
    settings = request.app.state.settings
    return VersionOut(version=settings.service_version, service=settings.service_name)
