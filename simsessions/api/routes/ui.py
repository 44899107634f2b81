"""
UI Routes
=========

Accessibility queries and input for a session's simulator.

Frames in responses are in the canonical portrait frame for the session's
effective orientation.
"""

from typing import Any

from fastapi import APIRouter, Depends

from simsessions.api.deps import get_services
from simsessions.api.dispatcher import SwipeParams, TapParams, TypeParams, run_operation
from simsessions.services import Services

router = APIRouter(prefix="/sessions/{session_id}/ui", tags=["UI"])


@router.get("", summary="Describe the whole screen")
async def describe_all(session_id: str, services: Services = Depends(get_services)) -> dict[str, Any]:
    return await run_operation(services, "ui_describe_all", session_id)


@router.get("/point", summary="Describe the element at a point")
async def describe_point(
    session_id: str,
    x: float,
    y: float,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return await run_operation(services, "ui_describe_point", session_id, {"x": x, "y": y})


@router.post("/tap", summary="Tap on the screen")
async def tap(session_id: str, request: TapParams, services: Services = Depends(get_services)) -> dict[str, Any]:
    return await run_operation(services, "ui_tap", session_id, request.model_dump(exclude_none=True))


@router.post("/type", summary="Type text")
async def type_text(session_id: str, request: TypeParams, services: Services = Depends(get_services)) -> dict[str, Any]:
    return await run_operation(services, "ui_type", session_id, request.model_dump())


@router.post("/swipe", summary="Swipe on the screen")
async def swipe(session_id: str, request: SwipeParams, services: Services = Depends(get_services)) -> dict[str, Any]:
    return await run_operation(services, "ui_swipe", session_id, request.model_dump(exclude_none=True))


@router.get("/view", summary="Compressed screenshot of the current screen")
async def view(session_id: str, services: Services = Depends(get_services)) -> dict[str, Any]:
    return await run_operation(services, "ui_view", session_id)
