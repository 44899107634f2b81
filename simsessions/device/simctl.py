"""
simctl Device Management Client
===============================

Device-management collaborator backed by ``xcrun simctl``.

Covers the catalog (device types, runtimes), the live instance list and the
instance lifecycle (create, boot, shutdown, delete) plus app install/launch.
Catalog and instance queries use simctl's JSON output (``-j``).

Usage:
    from simsessions.device import SimctlClient

    simctl = SimctlClient()
    udid = await simctl.create("my-sim", type_id, runtime_id)
    await simctl.boot(udid)
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Optional

from simsessions.core.errors import CommandError
from simsessions.device.commands import run_command
from simsessions.utils.logger import get_logger

logger = get_logger(__name__)

BOOTED = "Booted"


@dataclass
class DeviceType:
    """A simulator hardware model from the device type catalog."""

    name: str
    identifier: str


@dataclass
class Runtime:
    """An OS image from the runtime catalog."""

    name: str
    identifier: str
    available: bool
    platform: str
    version: str = ""


@dataclass
class SimulatorInstance:
    """A simulator instance known to CoreSimulator."""

    udid: str
    name: str
    state: str
    runtime: str = ""

    @property
    def is_booted(self) -> bool:
        return self.state == BOOTED

    def to_dict(self) -> dict[str, Any]:
        return {"udid": self.udid, "name": self.name, "state": self.state, "runtime": self.runtime}


class SimctlClient:
    """
    Thin async wrapper over ``xcrun simctl``.

    Every method raises ``CommandError`` with simctl's raw output when the
    command fails.
    """

    def __init__(
        self,
        xcrun_path: str = "xcrun",
        timeout: float = 120.0,
        boot_timeout: float = 300.0,
    ) -> None:
        """
        Initialize the simctl client.

        Args:
            xcrun_path: Path to the xcrun executable.
            timeout: Timeout for ordinary simctl commands in seconds.
            boot_timeout: Timeout for boot in seconds.
        """
        self.xcrun_path = xcrun_path
        self.timeout = timeout
        self.boot_timeout = boot_timeout

    async def _simctl(self, *args: str, timeout: Optional[float] = None) -> str:
        result = await run_command(
            self.xcrun_path, "simctl", *args, timeout=timeout or self.timeout
        )
        return result.stdout

    async def _list_json(self, kind: str) -> dict[str, Any]:
        args = ["list", kind, "-j"]
        stdout = await self._simctl(*args)
        try:
            return json.loads(stdout)
        except json.JSONDecodeError as e:
            raise CommandError(
                [self.xcrun_path, "simctl", *args],
                f"Could not parse simctl {kind} output: {e}",
            ) from e

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def list_device_types(self) -> list[DeviceType]:
        """Device type catalog in simctl's native order."""
        data = await self._list_json("devicetypes")
        return [
            DeviceType(name=entry.get("name", ""), identifier=entry.get("identifier", ""))
            for entry in data.get("devicetypes", [])
        ]

    async def list_runtimes(self) -> list[Runtime]:
        """Runtime catalog in simctl's native order."""
        data = await self._list_json("runtimes")
        runtimes = []
        for entry in data.get("runtimes", []):
            name = entry.get("name", "")
            # Older Xcode releases omit "platform"; the name starts with it.
            platform = entry.get("platform") or (name.split(" ")[0] if name else "")
            runtimes.append(
                Runtime(
                    name=name,
                    identifier=entry.get("identifier", ""),
                    available=bool(entry.get("isAvailable", False)),
                    platform=platform,
                    version=entry.get("version", ""),
                )
            )
        return runtimes

    async def list_instances(self) -> list[SimulatorInstance]:
        """Every simulator instance across all runtimes."""
        data = await self._list_json("devices")
        instances = []
        for runtime_id, devices in data.get("devices", {}).items():
            for device in devices:
                instances.append(
                    SimulatorInstance(
                        udid=device.get("udid", ""),
                        name=device.get("name", ""),
                        state=device.get("state", ""),
                        runtime=runtime_id,
                    )
                )
        return instances

    # ------------------------------------------------------------------
    # Instance lifecycle
    # ------------------------------------------------------------------

    async def create(self, name: str, type_id: str, runtime_id: str) -> str:
        """Create a simulator and return its UDID."""
        udid = await self._simctl("create", name, type_id, runtime_id)
        if not udid:
            raise CommandError(
                [self.xcrun_path, "simctl", "create", name, type_id, runtime_id],
                "simctl create did not return a UDID",
            )
        logger.info("Simulator created", udid=udid, name=name)
        return udid

    async def boot(self, udid: str) -> None:
        """Boot a simulator and wait until it reports booted."""
        await self._simctl("boot", udid, timeout=self.boot_timeout)
        await self._simctl("bootstatus", udid, timeout=self.boot_timeout)
        logger.info("Simulator booted", udid=udid)

    async def shutdown(self, udid: str) -> None:
        await self._simctl("shutdown", udid)
        logger.info("Simulator shut down", udid=udid)

    async def delete(self, udid: str) -> None:
        await self._simctl("delete", udid)
        logger.info("Simulator deleted", udid=udid)

    async def open_simulator(self, udid: Optional[str] = None) -> None:
        """Bring Simulator.app to the foreground, optionally showing ``udid``."""
        args = ["open", "-a", "Simulator.app"]
        if udid:
            args.extend(["--args", "-CurrentDeviceUDID", udid])
        await run_command(*args, timeout=self.timeout)

    # ------------------------------------------------------------------
    # Apps
    # ------------------------------------------------------------------

    async def install_app(self, udid: str, app_path: str) -> None:
        await self._simctl("install", udid, app_path)
        logger.info("App installed", udid=udid, path=app_path)

    async def launch(
        self,
        udid: str,
        bundle_id: str,
        terminate_running: bool = False,
    ) -> Optional[str]:
        """
        Launch an app by bundle identifier.

        Returns:
            The process id if simctl reported one.
        """
        args = ["launch"]
        if terminate_running:
            args.append("--terminate-running-process")
        args.extend([udid, bundle_id])

        stdout = await self._simctl(*args)

        # simctl prints "<bundle_id>: <pid>"; older releases print the pid first.
        match = re.match(r"^(\d+)", stdout) or re.search(r":\s*(\d+)\s*$", stdout)
        pid = match.group(1) if match else None
        logger.info("App launched", udid=udid, bundle_id=bundle_id, pid=pid)
        return pid
