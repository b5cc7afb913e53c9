"""
Health Check Endpoints
======================
Provides health status for monitoring and observability.

Endpoints:
- GET /health - Simple health check (for load balancers)
- GET /health/detailed - Storage, cache and resource status
- GET /health/live, /health/ready - Kubernetes probes
"""

import time
from datetime import datetime, timezone
from typing import Dict, Any

import psutil
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from song_library.api.dependencies.services import get_library_service
from song_library.core.config import settings
from song_library.services.cache import redis_manager
from song_library.services.library.service import LibraryService


# ============================================================================
# RESPONSE MODELS
# ============================================================================

class HealthStatus(BaseModel):
    """Simple health status response"""
    status: str = Field(..., description="Overall system status")
    timestamp: str = Field(..., description="Current server timestamp")
    version: str = Field(..., description="API version")
    environment: str = Field(..., description="Current environment")


class DependencyHealth(BaseModel):
    """Health status of a single dependency"""
    name: str = Field(..., description="Dependency name")
    status: str = Field(..., description="Status: healthy, degraded, unhealthy, disabled, ...")
    message: str = Field(None, description="Additional information")
    details: Dict[str, Any] = Field(default_factory=dict, description="Extra details")


class SystemResources(BaseModel):
    """System resource utilization"""
    cpu_percent: float
    memory_percent: float
    memory_available_mb: float


class DetailedHealthStatus(BaseModel):
    """Detailed health status response"""
    status: str
    timestamp: str
    version: str
    environment: str
    uptime_seconds: float
    dependencies: list[DependencyHealth] = Field(default_factory=list)
    system_resources: SystemResources


# Track server start time for uptime calculation
SERVER_START_TIME = time.time()

router = APIRouter()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def check_storage_health(library: LibraryService) -> DependencyHealth:
    """
    Report storage configuration and credential state.

    Does not call the backend, so polling stays cheap.
    """
    config = library.settings.get_storage_config()
    if not config["configured"]:
        return DependencyHealth(
            name=f"storage:{library.backend.name}",
            status="not_configured",
            message="Storage backend settings are incomplete",
            details=config,
        )

    if library.issuer.last_error:
        return DependencyHealth(
            name=f"storage:{library.backend.name}",
            status="degraded",
            message=f"Last authorization failed: {library.issuer.last_error}",
            details={**config, "credential": library.issuer.state},
        )

    return DependencyHealth(
        name=f"storage:{library.backend.name}",
        status="healthy",
        message=f"Credential {library.issuer.state}",
        details={**config, "credential": library.issuer.state},
    )


async def check_redis_health() -> DependencyHealth:
    if not settings.REDIS_ENABLE:
        return DependencyHealth(
            name="redis",
            status="disabled",
            message="Listing cache is disabled",
            details={"enabled": False},
        )

    healthy = await redis_manager.health_check()
    return DependencyHealth(
        name="redis",
        status="healthy" if healthy else "degraded",
        message="Redis reachable" if healthy else "Redis unreachable, listings served uncached",
        details={"caching": settings.caching_enabled},
    )


def get_system_resources() -> SystemResources:
    memory = psutil.virtual_memory()
    return SystemResources(
        cpu_percent=round(psutil.cpu_percent(interval=None), 2),
        memory_percent=round(memory.percent, 2),
        memory_available_mb=round(memory.available / (1024 * 1024), 2),
    )


def determine_overall_status(dependencies: list[DependencyHealth]) -> str:
    statuses = [dep.status for dep in dependencies]

    if "unhealthy" in statuses:
        return "unhealthy"
    if "degraded" in statuses or "not_configured" in statuses:
        return "degraded"
    return "healthy"


# ============================================================================
# ENDPOINTS
# ============================================================================

@router.get(
    "/health",
    response_model=HealthStatus,
    status_code=status.HTTP_200_OK,
    summary="Simple health check",
    tags=["health"],
)
async def health_check():
    return HealthStatus(
        status="healthy",
        timestamp=_timestamp(),
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthStatus,
    status_code=status.HTTP_200_OK,
    summary="Detailed health check",
    tags=["health"],
)
async def detailed_health_check(library: LibraryService = Depends(get_library_service)):
    dependencies = [
        check_storage_health(library),
        await check_redis_health(),
    ]

    return DetailedHealthStatus(
        status=determine_overall_status(dependencies),
        timestamp=_timestamp(),
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        uptime_seconds=round(time.time() - SERVER_START_TIME, 2),
        dependencies=dependencies,
        system_resources=get_system_resources(),
    )


@router.get("/health/live", summary="Liveness probe", tags=["health"])
async def liveness_probe():
    return {"status": "alive"}


@router.get("/health/ready", summary="Readiness probe", tags=["health"])
async def readiness_probe():
    if not settings.storage_configured:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": "storage not configured"},
        )
    return {"status": "ready"}
