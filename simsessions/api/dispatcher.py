"""
Operation Dispatcher
====================

The named operations every transport exposes.

Each operation has a pydantic parameter model, a flag saying whether it is
keyed by a session id, and an optional prefix used when a collaborator
fails ("Error tapping on the screen: ..."). HTTP routes call
``run_operation`` and let errors propagate to the exception handlers; the
line transports call ``handle_line``, which never raises.
"""

import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from simsessions.core.errors import (
    CollaboratorError,
    InvalidParameter,
    InvalidRequest,
    InvalidSessionId,
    OperationUnavailable,
    SessionError,
    describe_failure,
)
from simsessions.services import Services
from simsessions.utils.logger import LogContext, get_logger

logger = get_logger(__name__)

UDID_REGEX = r"^[0-9A-Fa-f]{8}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{12}$"
DURATION_REGEX = r"^\d+(\.\d+)?$"
PRINTABLE_ASCII_REGEX = r"^[\x20-\x7E]+$"

MAX_PATH_LENGTH = 1024
MAX_BUNDLE_ID_LENGTH = 256
MAX_TEXT_LENGTH = 500


# ---------------------------------------------------------------------------
# Parameter models
# ---------------------------------------------------------------------------


class EmptyParams(BaseModel):
    """Operations that take no parameters."""


class StartSessionParams(BaseModel):
    device_type: Optional[str] = Field(
        default=None,
        max_length=256,
        description="Device type keyword, e.g. 'iPhone 15' (case-insensitive substring)",
    )


class AttachSessionParams(BaseModel):
    instance_id: str = Field(pattern=UDID_REGEX, description="UDID of a booted simulator")


class OrientationParams(BaseModel):
    orientation: str = Field(
        description="auto, portrait, landscape_right, upside_down or landscape_left",
    )


class PointParams(BaseModel):
    x: float = Field(description="The x-coordinate")
    y: float = Field(description="The y-coordinate")


class TapParams(PointParams):
    duration: Optional[str] = Field(
        default=None,
        pattern=DURATION_REGEX,
        description="Press duration in seconds",
    )


class TypeParams(BaseModel):
    text: str = Field(
        min_length=1,
        max_length=MAX_TEXT_LENGTH,
        pattern=PRINTABLE_ASCII_REGEX,
        description="Text to type (printable ASCII)",
    )


class SwipeParams(BaseModel):
    x_start: float
    y_start: float
    x_end: float
    y_end: float
    duration: Optional[str] = Field(default=None, pattern=DURATION_REGEX)
    delta: Optional[float] = Field(default=None, gt=0, description="Step size in points")


class ScreenshotParams(BaseModel):
    output_path: str = Field(min_length=1, max_length=MAX_PATH_LENGTH)
    type: Optional[Literal["png", "tiff", "bmp", "gif", "jpeg"]] = None
    display: Optional[Literal["internal", "external"]] = None
    mask: Optional[Literal["ignored", "alpha", "black"]] = None


class RecordVideoParams(BaseModel):
    output_path: Optional[str] = Field(default=None, min_length=1, max_length=MAX_PATH_LENGTH)
    codec: Optional[Literal["h264", "hevc"]] = None
    display: Optional[Literal["internal", "external"]] = None
    mask: Optional[Literal["ignored", "alpha", "black"]] = None
    force: bool = False


class InstallAppParams(BaseModel):
    app_path: str = Field(min_length=1, max_length=MAX_PATH_LENGTH, description="Path to a .app bundle")


class LaunchAppParams(BaseModel):
    bundle_id: str = Field(min_length=1, max_length=MAX_BUNDLE_ID_LENGTH)
    terminate_running: bool = False


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

Handler = Callable[[Services, Optional[str], Any], Awaitable[Any]]


async def _start_session(services: Services, session_id: str, params: StartSessionParams) -> dict:
    handle = await services.lifecycle.start(session_id, params.device_type)
    return handle.to_dict()


async def _attach_session(services: Services, session_id: str, params: AttachSessionParams) -> dict:
    handle = await services.lifecycle.attach(session_id, params.instance_id)
    return handle.to_dict()


async def _destroy_session(services: Services, session_id: str, params: EmptyParams) -> dict:
    await services.actions.release(session_id)
    outcome = await services.lifecycle.destroy(session_id)
    return outcome.to_dict()


async def _get_session(services: Services, session_id: str, params: EmptyParams) -> dict:
    return services.lifecycle.get(session_id).to_dict()


async def _list_sessions(services: Services, session_id: Optional[str], params: EmptyParams) -> dict:
    sessions = [handle.to_dict() for handle in services.lifecycle.list_sessions()]
    return {"sessions": sessions, "total": len(sessions)}


async def _set_orientation(services: Services, session_id: str, params: OrientationParams) -> dict:
    return services.lifecycle.set_orientation(session_id, params.orientation).to_dict()


async def _list_instances(services: Services, session_id: Optional[str], params: EmptyParams) -> dict:
    instances = await services.simctl.list_instances()
    return {"instances": [i.to_dict() for i in instances if i.is_booted]}


async def _open_simulator(services: Services, session_id: Optional[str], params: EmptyParams) -> dict:
    udid = services.lifecycle.get(session_id).instance_id if session_id else None
    await services.simctl.open_simulator(udid)
    return {"message": "Simulator.app opened successfully"}


async def _ui_describe_all(services: Services, session_id: str, params: EmptyParams) -> dict:
    return await services.actions.describe_all(session_id)


async def _ui_describe_point(services: Services, session_id: str, params: PointParams) -> dict:
    return await services.actions.describe_point(session_id, params.x, params.y)


async def _ui_tap(services: Services, session_id: str, params: TapParams) -> dict:
    await services.actions.tap(session_id, params.x, params.y, duration=params.duration)
    return {"message": "Tapped successfully"}


async def _ui_type(services: Services, session_id: str, params: TypeParams) -> dict:
    await services.actions.type_text(session_id, params.text)
    return {"message": "Typed successfully"}


async def _ui_swipe(services: Services, session_id: str, params: SwipeParams) -> dict:
    await services.actions.swipe(
        session_id,
        params.x_start,
        params.y_start,
        params.x_end,
        params.y_end,
        duration=params.duration,
        delta=params.delta,
    )
    return {"message": "Swiped successfully"}


async def _ui_view(services: Services, session_id: str, params: EmptyParams) -> dict:
    return await services.actions.view(session_id)


async def _screenshot(services: Services, session_id: str, params: ScreenshotParams) -> dict:
    return await services.actions.screenshot(
        session_id,
        params.output_path,
        image_type=params.type,
        display=params.display,
        mask=params.mask,
    )


async def _record_video(services: Services, session_id: str, params: RecordVideoParams) -> dict:
    path = await services.actions.record_video(
        session_id,
        params.output_path,
        codec=params.codec,
        display=params.display,
        mask=params.mask,
        force=params.force,
    )
    return {"message": f"Recording started: {path}", "path": path}


async def _stop_recording(services: Services, session_id: str, params: EmptyParams) -> dict:
    path = await services.actions.stop_recording(session_id)
    return {"message": f"Recording stopped successfully. Video saved to: {path}", "path": path}


async def _install_app(services: Services, session_id: str, params: InstallAppParams) -> dict:
    path = await services.actions.install_app(session_id, params.app_path)
    return {"message": f"App installed successfully from: {path}", "path": path}


async def _launch_app(services: Services, session_id: str, params: LaunchAppParams) -> dict:
    pid = await services.actions.launch_app(
        session_id, params.bundle_id, terminate_running=params.terminate_running
    )
    message = f'App {params.bundle_id} launched successfully'
    if pid:
        message += f" with PID: {pid}"
    return {"message": message, "pid": pid}


# ---------------------------------------------------------------------------
# Registry of operations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Operation:
    """A named operation exposed on every transport."""

    name: str
    handler: Handler
    params: type[BaseModel] = EmptyParams
    requires_session: bool = True
    error_prefix: Optional[str] = None


OPERATIONS: dict[str, Operation] = {
    op.name: op
    for op in (
        Operation("start_session", _start_session, StartSessionParams, error_prefix="Error starting simulator"),
        Operation("attach_session", _attach_session, AttachSessionParams),
        Operation("destroy_session", _destroy_session),
        Operation("get_session", _get_session),
        Operation("list_sessions", _list_sessions, requires_session=False),
        Operation("set_orientation", _set_orientation, OrientationParams),
        Operation("list_instances", _list_instances, requires_session=False, error_prefix="Error listing simulators"),
        Operation("open_simulator", _open_simulator, requires_session=False, error_prefix="Error opening simulator"),
        Operation("ui_describe_all", _ui_describe_all, error_prefix="Error describing entire screen"),
        Operation("ui_describe_point", _ui_describe_point, PointParams, error_prefix="Error describing point"),
        Operation("ui_tap", _ui_tap, TapParams, error_prefix="Error tapping on the screen"),
        Operation("ui_type", _ui_type, TypeParams, error_prefix="Error typing text into the iOS Simulator"),
        Operation("ui_swipe", _ui_swipe, SwipeParams, error_prefix="Error swiping on the screen"),
        Operation("ui_view", _ui_view, error_prefix="Error capturing screen view"),
        Operation("screenshot", _screenshot, ScreenshotParams, error_prefix="Error taking screenshot"),
        Operation("record_video", _record_video, RecordVideoParams, error_prefix="Error starting recording"),
        Operation("stop_recording", _stop_recording, error_prefix="Error stopping recording"),
        Operation("install_app", _install_app, InstallAppParams, error_prefix="Error installing app"),
        Operation("launch_app", _launch_app, LaunchAppParams, error_prefix="Error launching app"),
    )
}


def available_operations(filtered: set[str]) -> list[str]:
    """Operation names not disabled by configuration."""
    return [name for name in OPERATIONS if name not in filtered]


def _validation_message(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "params"
        parts.append(f"{location}: {item['msg']}")
    return "Invalid parameters: " + "; ".join(parts)


async def run_operation(
    services: Services,
    name: str,
    session_id: Optional[str] = None,
    params: Optional[dict[str, Any]] = None,
) -> Any:
    """
    Validate and execute one operation.

    Raises:
        SessionError: Any failure, already categorized.
    """
    operation = OPERATIONS.get(name)
    if operation is None:
        raise OperationUnavailable(f'Unknown operation "{name}"')
    if name in services.filtered:
        raise OperationUnavailable(f'Operation "{name}" is disabled on this server')
    if operation.requires_session and not session_id:
        raise InvalidSessionId("session_id is required")

    try:
        parsed = operation.params.model_validate(params or {})
    except ValidationError as e:
        raise InvalidParameter(_validation_message(e)) from e

    with LogContext(session_id=session_id, operation=name):
        logger.debug("Running operation")
        try:
            return await operation.handler(services, session_id, parsed)
        except CollaboratorError as e:
            if operation.error_prefix:
                raise describe_failure(operation.error_prefix, e)
            raise


def failure_payload(error: Exception) -> dict[str, Any]:
    """Structured failure for any exception."""
    if isinstance(error, SessionError):
        return error.to_dict()
    return {
        "type": "InternalError",
        "category": "internal_invariant_error",
        "message": f"Unexpected error: {error}",
        "troubleshooting": None,
    }


async def dispatch(services: Services, request: dict[str, Any]) -> dict[str, Any]:
    """
    Execute a line-protocol request object.

    Never raises; failures come back as ``{"id", "ok": False, "error"}``.
    """
    request_id = request.get("id")
    try:
        params = request.get("params")
        if params is not None and not isinstance(params, dict):
            raise InvalidRequest('"params" must be an object')
        operation = request.get("operation")
        if not isinstance(operation, str):
            raise InvalidRequest('"operation" is required')
        result = await run_operation(services, operation, request.get("session_id"), params)
        return {"id": request_id, "ok": True, "result": result}
    except SessionError as e:
        logger.warning(
            "Operation failed",
            operation=request.get("operation"),
            session_id=request.get("session_id"),
            category=e.category,
            error=e.message,
        )
        return {"id": request_id, "ok": False, "error": e.to_dict()}
    except Exception as e:
        logger.exception("Unhandled operation error", operation=request.get("operation"), error=str(e))
        return {"id": request_id, "ok": False, "error": failure_payload(e)}


async def handle_line(services: Services, line: str) -> str:
    """Parse one JSON request line and return the JSON response line."""
    try:
        request = json.loads(line)
    except json.JSONDecodeError as e:
        error = InvalidRequest(f"Malformed JSON: {e.msg}")
        return json.dumps({"id": None, "ok": False, "error": error.to_dict()})

    if not isinstance(request, dict):
        error = InvalidRequest("Request must be a JSON object")
        return json.dumps({"id": None, "ok": False, "error": error.to_dict()})

    response = await dispatch(services, request)
    return json.dumps(response, default=str)
