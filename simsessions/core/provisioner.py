"""
Device Provisioner
==================

Resolves a human device-type keyword and the newest available OS image to
concrete simctl identifiers.

Catalog ordering assumptions differ between the two lookups: device types
are taken *first match* (simctl lists newer models first within a family),
runtimes are taken *last* (simctl lists runtimes oldest first).
"""

from simsessions.core.errors import NoAvailableRuntime, NoMatchingDeviceType
from simsessions.device.simctl import DeviceType, Runtime, SimctlClient
from simsessions.utils.logger import get_logger

logger = get_logger(__name__)

RUNTIME_PLATFORM = "iOS"


class DeviceProvisioner:
    """Catalog lookups on top of the device-management collaborator."""

    def __init__(self, simctl: SimctlClient) -> None:
        self.simctl = simctl

    async def resolve_device_type(self, keyword: str) -> DeviceType:
        """
        Find the first catalog entry whose name contains ``keyword``.

        Matching is a case-insensitive substring test.

        Raises:
            NoMatchingDeviceType: If nothing matches; the message lists
                every catalog name.
        """
        catalog = await self.simctl.list_device_types()
        needle = keyword.lower()

        for device_type in catalog:
            if needle in device_type.name.lower():
                logger.debug("Resolved device type", keyword=keyword, name=device_type.name)
                return device_type

        raise NoMatchingDeviceType(keyword, [entry.name for entry in catalog])

    async def resolve_latest_runtime(self) -> Runtime:
        """
        Pick the newest available iOS runtime.

        Raises:
            NoAvailableRuntime: If no available iOS runtime is installed.
        """
        runtimes = [
            runtime
            for runtime in await self.simctl.list_runtimes()
            if runtime.available and runtime.platform == RUNTIME_PLATFORM
        ]
        if not runtimes:
            raise NoAvailableRuntime(RUNTIME_PLATFORM)

        runtime = runtimes[-1]
        logger.debug("Resolved runtime", name=runtime.name, identifier=runtime.identifier)
        return runtime
