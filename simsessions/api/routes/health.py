"""
Health Check Routes
===================

Endpoints for health monitoring and service status.

Includes:
- Basic health check
- Readiness probe (simulator tooling on PATH)
- Detailed status information
"""

import shutil
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from simsessions.api.deps import get_services
from simsessions.api.dispatcher import available_operations
from simsessions.config import Settings, get_settings
from simsessions.services import Services
from simsessions.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get(
    "",
    summary="Basic health check",
    response_description="Service health status",
)
async def health_check() -> dict[str, str]:
    """
    Basic health check endpoint.

    Returns:
        Simple status message indicating service is running.
    """
    return {"status": "healthy", "timestamp": _now()}


@router.get(
    "/ready",
    summary="Readiness probe",
    response_description="Service readiness status",
)
async def readiness_check(services: Services = Depends(get_services)) -> dict[str, Any]:
    """
    Readiness probe.

    Checks that the simulator tooling is reachable:
    - xcrun (simctl, screenshots, recordings)
    - idb (UI automation)

    Raises:
        HTTPException: If a tool is missing.
    """
    checks = {
        "xcrun_available": shutil.which(services.simctl.xcrun_path) is not None,
        "idb_available": shutil.which(services.idb.idb_path) is not None,
    }

    for name, ok in checks.items():
        if not ok:
            logger.warning("Readiness check failed", check=name)

    if not all(checks.values()):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "not_ready", "checks": checks},
        )

    return {"status": "ready", "checks": checks, "timestamp": _now()}


@router.get(
    "/live",
    summary="Liveness probe",
    response_description="Service liveness status",
)
async def liveness_check() -> dict[str, str]:
    """Liveness probe; returns quickly while the process is up."""
    return {"status": "alive"}


@router.get(
    "/info",
    summary="Service information",
    response_description="Detailed service information",
)
async def service_info(
    settings: Settings = Depends(get_settings),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """
    Get detailed service information.

    Returns:
        Service version, enabled operations and active session count.
    """
    from simsessions import __version__

    return {
        "service": "simsessions",
        "version": __version__,
        "environment": settings.server.environment,
        "config": {
            "default_device_type": settings.simulator.default_device_type,
            "map_input_coordinates": settings.simulator.map_input_coordinates,
            "teardown_timeout": settings.lifecycle.teardown_timeout,
            "debug_mode": settings.server.debug,
        },
        "operations": available_operations(services.filtered),
        "active_sessions": len(services.registry),
        "timestamp": _now(),
    }
