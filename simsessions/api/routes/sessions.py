"""
Session Management Routes
=========================

Endpoints for the session lifecycle.

A session id is chosen by the client and owns at most one simulator:
- ``POST /sessions/{id}`` creates and boots a new simulator
- ``POST /sessions/{id}/attach`` binds an already-booted one
- ``DELETE /sessions/{id}`` releases it (deleting it only if created here)

Errors are raised as ``SessionError`` and mapped to status codes by the
application's exception handlers.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, status

from simsessions.api.deps import get_services
from simsessions.api.dispatcher import (
    AttachSessionParams,
    OrientationParams,
    StartSessionParams,
    run_operation,
)
from simsessions.services import Services

router = APIRouter(prefix="/sessions", tags=["Sessions"])
simulator_router = APIRouter(tags=["Simulators"])


@router.get("", summary="List active sessions")
async def list_sessions(services: Services = Depends(get_services)) -> dict[str, Any]:
    return await run_operation(services, "list_sessions")


@router.post(
    "/{session_id}",
    status_code=status.HTTP_201_CREATED,
    summary="Start a new simulator for a session",
)
async def start_session(
    session_id: str,
    request: Optional[StartSessionParams] = Body(default=None),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """
    Create, boot and register a simulator for the session.

    Booting can take minutes on a cold runtime; other sessions are served
    meanwhile.
    """
    params = request.model_dump(exclude_none=True) if request else {}
    return await run_operation(services, "start_session", session_id, params)


@router.post(
    "/{session_id}/attach",
    status_code=status.HTTP_201_CREATED,
    summary="Attach a session to a booted simulator",
)
async def attach_session(
    session_id: str,
    request: AttachSessionParams,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return await run_operation(services, "attach_session", session_id, request.model_dump())


@router.get("/{session_id}", summary="Get session information")
async def get_session(session_id: str, services: Services = Depends(get_services)) -> dict[str, Any]:
    return await run_operation(services, "get_session", session_id)


@router.delete("/{session_id}", summary="Destroy a session")
async def destroy_session(session_id: str, services: Services = Depends(get_services)) -> dict[str, Any]:
    """
    Release the session's simulator.

    Teardown failures do not fail the request; they are reported in the
    ``shutdown_error`` / ``delete_error`` fields.
    """
    return await run_operation(services, "destroy_session", session_id)


@router.put("/{session_id}/orientation", summary="Set the session's orientation")
async def set_orientation(
    session_id: str,
    request: OrientationParams,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return await run_operation(services, "set_orientation", session_id, request.model_dump())


@simulator_router.get("/instances", summary="List booted simulators")
async def list_instances(services: Services = Depends(get_services)) -> dict[str, Any]:
    return await run_operation(services, "list_instances")


@simulator_router.post("/simulator/open", summary="Bring Simulator.app to the foreground")
async def open_simulator(
    session_id: Optional[str] = None,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return await run_operation(services, "open_simulator", session_id)
