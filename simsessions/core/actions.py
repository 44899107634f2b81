"""
Action Facade
=============

Session-keyed UI and media operations.

Every call resolves the session id to its device handle, delegates the I/O
to the matching collaborator and, when geometry is involved, converts the
result into the canonical portrait frame before returning it.

Usage:
    facade = ActionFacade(registry, idb, simctl, capture, output_dir="~/Downloads")
    tree = await facade.describe_all("session-1")
"""

from pathlib import Path
from typing import Any, Optional, Union

from simsessions.core.errors import CollaboratorError, InvalidParameter
from simsessions.core.geometry import (
    Orientation,
    Rect,
    resolve_orientation,
    root_frame,
    to_device_point,
    transform_node,
    transform_tree,
)
from simsessions.core.registry import DeviceHandle, DeviceRegistry, validate_session_id
from simsessions.device.capture import CaptureClient, default_recording_name
from simsessions.device.idb import IdbClient
from simsessions.device.simctl import SimctlClient
from simsessions.utils.logger import get_logger
from simsessions.utils.paths import ensure_absolute_path, resolve_app_bundle

logger = get_logger(__name__)

Number = Union[int, float]


class ActionFacade:
    """Thin session-aware layer over the idb, simctl and capture clients."""

    def __init__(
        self,
        registry: DeviceRegistry,
        idb: IdbClient,
        simctl: SimctlClient,
        capture: CaptureClient,
        output_dir: str,
        session_id_max_length: int = 128,
        map_input_coordinates: bool = False,
    ) -> None:
        """
        Initialize the facade.

        Args:
            registry: Shared session registry.
            idb: UI-automation collaborator.
            simctl: Device-management collaborator (apps).
            capture: Screenshot/video collaborator.
            output_dir: Directory for relative capture paths.
            session_id_max_length: Upper bound for session id length.
            map_input_coordinates: Convert canonical tap/swipe/point
                coordinates into the rotated device frame before sending
                them to idb.
        """
        self.registry = registry
        self.idb = idb
        self.simctl = simctl
        self.capture = capture
        self.output_dir = output_dir
        self.session_id_max_length = session_id_max_length
        self.map_input_coordinates = map_input_coordinates

    def _handle(self, session_id: str) -> DeviceHandle:
        validate_session_id(session_id, self.session_id_max_length)
        return self.registry.get(session_id)

    async def _screen(self, handle: DeviceHandle) -> tuple[list[Any], Optional[Rect], Orientation]:
        """Fresh snapshot, its root frame and the effective orientation."""
        snapshot = await self.idb.describe_all(handle.instance_id)
        frame = root_frame(snapshot)
        if frame is None:
            return snapshot, None, Orientation.PORTRAIT
        return snapshot, frame, resolve_orientation(handle.orientation, frame.width, frame.height)

    async def _device_point(self, handle: DeviceHandle, x: Number, y: Number) -> tuple[Number, Number]:
        if not self.map_input_coordinates:
            return x, y
        _, frame, orientation = await self._screen(handle)
        if frame is None or orientation is Orientation.PORTRAIT:
            return x, y
        return to_device_point(x, y, frame.width, frame.height, orientation)

    # ------------------------------------------------------------------
    # Accessibility
    # ------------------------------------------------------------------

    async def describe_all(self, session_id: str) -> dict[str, Any]:
        """Whole-screen accessibility tree in the canonical frame."""
        handle = self._handle(session_id)
        snapshot, frame, orientation = await self._screen(handle)
        if frame is not None:
            snapshot = transform_tree(snapshot, frame.width, frame.height, orientation)
        return {"orientation": orientation.value, "elements": snapshot}

    async def describe_point(self, session_id: str, x: Number, y: Number) -> dict[str, Any]:
        """
        Accessibility element at a point, with its frame in the canonical frame.

        The root frame is fetched fresh on every call; a point response does
        not carry screen dimensions.
        """
        handle = self._handle(session_id)
        _, frame, orientation = await self._screen(handle)

        device_x, device_y = x, y
        if self.map_input_coordinates and frame is not None:
            device_x, device_y = to_device_point(x, y, frame.width, frame.height, orientation)

        node = await self.idb.describe_point(handle.instance_id, device_x, device_y)
        if frame is not None and isinstance(node, dict):
            node = transform_node(node, frame.width, frame.height, orientation)
        return {"orientation": orientation.value, "element": node}

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    async def tap(self, session_id: str, x: Number, y: Number, duration: Optional[str] = None) -> None:
        handle = self._handle(session_id)
        device_x, device_y = await self._device_point(handle, x, y)
        await self.idb.tap(handle.instance_id, device_x, device_y, duration=duration)

    async def type_text(self, session_id: str, text: str) -> None:
        handle = self._handle(session_id)
        await self.idb.type_text(handle.instance_id, text)

    async def swipe(
        self,
        session_id: str,
        x_start: Number,
        y_start: Number,
        x_end: Number,
        y_end: Number,
        duration: Optional[str] = None,
        delta: Optional[Number] = None,
    ) -> None:
        handle = self._handle(session_id)
        start = await self._device_point(handle, x_start, y_start)
        end = await self._device_point(handle, x_end, y_end)
        await self.idb.swipe(
            handle.instance_id, start[0], start[1], end[0], end[1], duration=duration, delta=delta
        )

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    async def view(self, session_id: str) -> dict[str, Any]:
        """Compressed JPEG of the screen, sized in points."""
        handle = self._handle(session_id)
        _, frame, orientation = await self._screen(handle)
        if frame is None:
            raise CollaboratorError("Could not determine screen dimensions")

        image = await self.capture.view(handle.instance_id, frame.width, frame.height)
        return {
            "image": image,
            "mime_type": "image/jpeg",
            "width": frame.width,
            "height": frame.height,
            "orientation": orientation.value,
        }

    async def screenshot(
        self,
        session_id: str,
        output_path: str,
        image_type: Optional[str] = None,
        display: Optional[str] = None,
        mask: Optional[str] = None,
    ) -> dict[str, str]:
        handle = self._handle(session_id)
        path = ensure_absolute_path(output_path, self.output_dir)
        message = await self.capture.screenshot(
            handle.instance_id, path, image_type=image_type, display=display, mask=mask
        )
        return {"path": path, "message": message}

    async def record_video(
        self,
        session_id: str,
        output_path: Optional[str] = None,
        codec: Optional[str] = None,
        display: Optional[str] = None,
        mask: Optional[str] = None,
        force: bool = False,
    ) -> str:
        handle = self._handle(session_id)
        path = ensure_absolute_path(output_path or default_recording_name(), self.output_dir)
        return await self.capture.start_recording(
            session_id,
            handle.instance_id,
            path,
            codec=codec,
            display=display,
            mask=mask,
            force=force,
        )

    async def stop_recording(self, session_id: str) -> str:
        self._handle(session_id)
        return await self.capture.stop_recording(session_id)

    async def release(self, session_id: str) -> None:
        """Stop per-session activity before the session's device goes away."""
        if self.capture.is_recording(session_id):
            await self.capture.stop_recording(session_id)

    # ------------------------------------------------------------------
    # Apps
    # ------------------------------------------------------------------

    async def install_app(self, session_id: str, app_path: str) -> str:
        handle = self._handle(session_id)
        bundle: Path = resolve_app_bundle(app_path)
        if not bundle.exists():
            raise InvalidParameter(f"App bundle not found at: {bundle}")
        await self.simctl.install_app(handle.instance_id, str(bundle))
        return str(bundle)

    async def launch_app(
        self,
        session_id: str,
        bundle_id: str,
        terminate_running: bool = False,
    ) -> Optional[str]:
        handle = self._handle(session_id)
        return await self.simctl.launch(handle.instance_id, bundle_id, terminate_running=terminate_running)
