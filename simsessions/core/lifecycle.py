"""
Session Lifecycle Manager
=========================

Orchestrates start / attach / destroy for sessions and enforces the
one-device-per-session rule.

Each session id moves between two states:

    Absent --start/attach--> Active --destroy--> Absent

Transitions for the same id are serialized by a per-id ``asyncio.Lock`` so
two concurrent ``start`` calls cannot both provision a simulator. Distinct
ids never wait on each other.
"""

import asyncio
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Union

from simsessions.core.errors import (
    AlreadyActive,
    CommandError,
    InstanceNotBooted,
    InstanceNotFound,
    InvalidParameter,
    NotActive,
    SessionError,
)
from simsessions.core.geometry import Orientation
from simsessions.core.provisioner import DeviceProvisioner
from simsessions.core.registry import DeviceHandle, DeviceRegistry, validate_session_id
from simsessions.device.simctl import SimctlClient
from simsessions.utils.logger import get_logger

logger = get_logger(__name__)

# 8-4-4-4-12 hexadecimal, e.g. 37A360EC-75F9-4AEC-8EFA-10F4A58D8CCA
UDID_PATTERN = re.compile(
    r"^[0-9A-Fa-f]{8}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{12}$"
)

_NAME_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def display_name_for(session_id: str, device_type: str) -> str:
    """Deterministic simulator name for a session's device."""
    session_part = _NAME_UNSAFE.sub("-", session_id).strip("-") or "session"
    type_part = _NAME_UNSAFE.sub("-", device_type).strip("-") or "device"
    return f"simsessions-{session_part}-{type_part}"


def parse_orientation(value: Union[str, Orientation]) -> Orientation:
    """
    Parse a wire orientation value.

    Raises:
        InvalidParameter: If ``value`` is not a known orientation.
    """
    if isinstance(value, Orientation):
        return value
    try:
        return Orientation(value.strip().lower())
    except ValueError:
        options = ", ".join(o.value for o in Orientation)
        raise InvalidParameter(f'Unknown orientation "{value}". Valid values: {options}') from None


@dataclass
class TeardownOutcome:
    """
    Result of releasing one session's device.

    Attributes:
        session_id: The released session.
        instance_id: Simulator UDID.
        owned: Whether a shutdown/delete was attempted.
        shutdown_error: simctl output if shutdown failed.
        delete_error: simctl output if delete failed.
    """

    session_id: str
    instance_id: str
    owned: bool
    shutdown_error: Optional[str] = None
    delete_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.shutdown_error is None and self.delete_error is None

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "udid": self.instance_id,
            "owned": self.owned,
            "deleted": self.owned and self.delete_error is None,
            "shutdown_error": self.shutdown_error,
            "delete_error": self.delete_error,
        }


class SessionLifecycleManager:
    """
    Start, attach, destroy and orient session devices.

    Args:
        registry: Shared session registry.
        provisioner: Catalog resolver.
        simctl: Device-management collaborator.
        default_device_type: Keyword used when ``start`` gets none.
        session_id_max_length: Upper bound for session id length.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        provisioner: DeviceProvisioner,
        simctl: SimctlClient,
        default_device_type: str = "iPhone",
        session_id_max_length: int = 128,
    ) -> None:
        self.registry = registry
        self.provisioner = provisioner
        self.simctl = simctl
        self.default_device_type = default_device_type
        self.session_id_max_length = session_id_max_length
        # Entries live only while someone holds or waits on the id's lock
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def _locked(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._waiters[session_id] = self._waiters.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[session_id] -= 1
            if not self._waiters[session_id]:
                del self._waiters[session_id]
                del self._locks[session_id]

    def _check_id(self, session_id: str) -> str:
        return validate_session_id(session_id, self.session_id_max_length)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def start(self, session_id: str, device_type: Optional[str] = None) -> DeviceHandle:
        """
        Create, boot and register a new simulator for the session.

        Raises:
            AlreadyActive: If the session already has a device.
            NoMatchingDeviceType / NoAvailableRuntime: Catalog lookup failed.
            CommandError: create or boot failed. Nothing is registered.
        """
        self._check_id(session_id)
        keyword = (device_type or "").strip() or self.default_device_type

        async with self._locked(session_id):
            existing = self.registry.find(session_id)
            if existing is not None:
                raise AlreadyActive(session_id, existing.display_name, existing.instance_id)

            resolved_type = await self.provisioner.resolve_device_type(keyword)
            runtime = await self.provisioner.resolve_latest_runtime()
            name = display_name_for(session_id, keyword)

            logger.info(
                "Starting simulator",
                session_id=session_id,
                device_type=resolved_type.name,
                runtime=runtime.name,
            )

            udid = await self.simctl.create(name, resolved_type.identifier, runtime.identifier)
            try:
                await self.simctl.boot(udid)
            except CommandError:
                # Don't leak the instance we just created
                await self.teardown_instance(session_id, udid)
                raise

            await self._bring_to_foreground(session_id, udid)

            handle = DeviceHandle(instance_id=udid, display_name=name, owned=True)
            try:
                self.registry.put(session_id, handle)
            except SessionError:
                await self.teardown_instance(session_id, udid)
                raise

        logger.info("Session started", session_id=session_id, udid=udid, name=name)
        return handle

    async def attach(self, session_id: str, instance_id: str) -> DeviceHandle:
        """
        Bind the session to an already-booted simulator it does not own.

        Raises:
            AlreadyActive: If the session already has a device.
            InstanceNotFound: If simctl does not know ``instance_id``.
            InstanceNotBooted: If the simulator exists but is not booted.
            DuplicateInstance: If another session holds the simulator.
        """
        self._check_id(session_id)
        if not UDID_PATTERN.match(instance_id or ""):
            raise InvalidParameter(f'"{instance_id}" is not a valid simulator UDID')
        # simctl reports UDIDs in uppercase
        instance_id = instance_id.upper()

        async with self._locked(session_id):
            existing = self.registry.find(session_id)
            if existing is not None:
                raise AlreadyActive(session_id, existing.display_name, existing.instance_id)

            instances = await self.simctl.list_instances()
            instance = next((i for i in instances if i.udid.upper() == instance_id), None)
            if instance is None:
                raise InstanceNotFound(instance_id)
            if not instance.is_booted:
                raise InstanceNotBooted(instance_id, instance.state)

            handle = DeviceHandle(instance_id=instance.udid, display_name=instance.name, owned=False)
            self.registry.put(session_id, handle)

        logger.info("Session attached", session_id=session_id, udid=handle.instance_id, name=instance.name)
        return handle

    async def destroy(self, session_id: str) -> TeardownOutcome:
        """
        Release the session's device.

        Owned simulators are shut down and deleted; attached ones are only
        forgotten. The registry entry is removed even when teardown fails;
        failures are reported in the returned outcome.

        Raises:
            NotActive: If the session has no device.
        """
        self._check_id(session_id)

        async with self._locked(session_id):
            handle = self.registry.find(session_id)
            if handle is None:
                raise NotActive(session_id)

            outcome = TeardownOutcome(session_id, handle.instance_id, handle.owned)
            try:
                if handle.owned:
                    outcome = await self.teardown_instance(session_id, handle.instance_id)
            finally:
                self.registry.remove(session_id)

        if outcome.ok:
            logger.info("Session destroyed", session_id=session_id, udid=handle.instance_id, owned=handle.owned)
        else:
            logger.warning(
                "Session released with teardown errors",
                session_id=session_id,
                udid=handle.instance_id,
                shutdown_error=outcome.shutdown_error,
                delete_error=outcome.delete_error,
            )
        return outcome

    def set_orientation(self, session_id: str, value: Union[str, Orientation]) -> DeviceHandle:
        """
        Override (or reset to auto) the session's orientation.

        Raises:
            NotActive: If the session has no device.
        """
        self._check_id(session_id)
        orientation = parse_orientation(value)

        handle = self.registry.find(session_id)
        if handle is None:
            raise NotActive(session_id)

        handle.orientation = orientation
        logger.info("Orientation set", session_id=session_id, orientation=orientation.value)
        return handle

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, session_id: str) -> DeviceHandle:
        self._check_id(session_id)
        return self.registry.get(session_id)

    def list_sessions(self) -> list[DeviceHandle]:
        return [handle for _, handle in self.registry.snapshot()]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def teardown_instance(self, session_id: str, udid: str) -> TeardownOutcome:
        """
        Shut down then delete a simulator, collecting failures.

        The delete is attempted even if the shutdown failed; the simulator
        may already have been shut down.
        """
        outcome = TeardownOutcome(session_id, udid, owned=True)
        try:
            await self.simctl.shutdown(udid)
        except CommandError as e:
            outcome.shutdown_error = e.message
        try:
            await self.simctl.delete(udid)
        except CommandError as e:
            outcome.delete_error = e.message
        return outcome

    async def _bring_to_foreground(self, session_id: str, udid: str) -> None:
        try:
            await self.simctl.open_simulator(udid)
        except CommandError as e:
            logger.warning(
                "Could not bring Simulator.app to the foreground",
                session_id=session_id,
                udid=udid,
                error=e.message,
            )
