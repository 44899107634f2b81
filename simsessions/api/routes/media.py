"""
Media and App Routes
====================

Screenshots, screen recordings and app install/launch for a session's
simulator. Relative output paths land in the configured output directory.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, status

from simsessions.api.deps import get_services
from simsessions.api.dispatcher import (
    InstallAppParams,
    LaunchAppParams,
    RecordVideoParams,
    ScreenshotParams,
    run_operation,
)
from simsessions.services import Services

router = APIRouter(prefix="/sessions/{session_id}", tags=["Media"])


@router.post("/screenshot", summary="Save a screenshot")
async def screenshot(
    session_id: str,
    request: ScreenshotParams,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return await run_operation(services, "screenshot", session_id, request.model_dump(exclude_none=True))


@router.post(
    "/recording",
    status_code=status.HTTP_201_CREATED,
    summary="Start recording the screen",
)
async def record_video(
    session_id: str,
    request: Optional[RecordVideoParams] = Body(default=None),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    params = request.model_dump(exclude_none=True) if request else {}
    return await run_operation(services, "record_video", session_id, params)


@router.delete("/recording", summary="Stop recording the screen")
async def stop_recording(session_id: str, services: Services = Depends(get_services)) -> dict[str, Any]:
    return await run_operation(services, "stop_recording", session_id)


@router.post("/apps/install", summary="Install an app bundle")
async def install_app(
    session_id: str,
    request: InstallAppParams,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return await run_operation(services, "install_app", session_id, request.model_dump())


@router.post("/apps/launch", summary="Launch an installed app")
async def launch_app(
    session_id: str,
    request: LaunchAppParams,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return await run_operation(services, "launch_app", session_id, request.model_dump())
