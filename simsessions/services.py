"""
Service Container
=================

Builds the registry, collaborators and core components once per process
and tears them down again on exit.

Usage:
    services = Services.from_settings(get_settings())
    ...
    await services.shutdown()
"""

import shutil
import tempfile
from dataclasses import dataclass, field
from typing import Optional

from simsessions.config import Settings
from simsessions.core.actions import ActionFacade
from simsessions.core.lifecycle import SessionLifecycleManager
from simsessions.core.provisioner import DeviceProvisioner
from simsessions.core.registry import DeviceRegistry
from simsessions.core.sweeper import ShutdownSweeper, SweepReport
from simsessions.device.capture import CaptureClient
from simsessions.device.idb import IdbClient
from simsessions.device.simctl import SimctlClient
from simsessions.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Services:
    """Everything an operation needs, wired together."""

    registry: DeviceRegistry
    simctl: SimctlClient
    idb: IdbClient
    capture: CaptureClient
    provisioner: DeviceProvisioner
    lifecycle: SessionLifecycleManager
    sweeper: ShutdownSweeper
    actions: ActionFacade
    tmp_dir: Optional[str] = None
    filtered: set[str] = field(default_factory=set)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Services":
        """
        Construct the service graph from configuration.

        Raises:
            ValueError: If a configured idb path does not exist.
        """
        sim = settings.simulator
        tmp_dir = tempfile.mkdtemp(prefix="simsessions-")

        registry = DeviceRegistry()
        simctl = SimctlClient(
            xcrun_path=sim.xcrun_path,
            timeout=sim.command_timeout,
            boot_timeout=sim.boot_timeout,
        )
        idb = IdbClient(idb_path=sim.resolve_idb_path(), timeout=sim.command_timeout)
        capture = CaptureClient(
            tmp_dir=tmp_dir,
            xcrun_path=sim.xcrun_path,
            timeout=sim.command_timeout,
            recording_start_timeout=sim.recording_start_timeout,
        )
        provisioner = DeviceProvisioner(simctl)
        lifecycle = SessionLifecycleManager(
            registry,
            provisioner,
            simctl,
            default_device_type=sim.default_device_type,
            session_id_max_length=settings.lifecycle.session_id_max_length,
        )
        sweeper = ShutdownSweeper(registry, lifecycle, teardown_timeout=settings.lifecycle.teardown_timeout)
        actions = ActionFacade(
            registry,
            idb,
            simctl,
            capture,
            output_dir=sim.resolve_output_dir(),
            session_id_max_length=settings.lifecycle.session_id_max_length,
            map_input_coordinates=sim.map_input_coordinates,
        )

        logger.info("Services initialized", tmp_dir=tmp_dir, filtered=sorted(sim.get_filtered_tools()))
        return cls(
            registry=registry,
            simctl=simctl,
            idb=idb,
            capture=capture,
            provisioner=provisioner,
            lifecycle=lifecycle,
            sweeper=sweeper,
            actions=actions,
            tmp_dir=tmp_dir,
            filtered=sim.get_filtered_tools(),
        )

    async def shutdown(self) -> SweepReport:
        """Stop recordings, release every session and remove scratch files."""
        await self.capture.stop_all()
        report = await self.sweeper.sweep()
        if self.tmp_dir:
            shutil.rmtree(self.tmp_dir, ignore_errors=True)
            logger.debug("Temporary directory removed", tmp_dir=self.tmp_dir)
        return report
