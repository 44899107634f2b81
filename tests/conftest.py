"""
Shared Test Fixtures
====================

Pytest fixtures used across all test modules.
Provides correctly-typed mocks of the simctl, idb and capture collaborators
so lifecycle and facade code can run without Xcode.
"""

import copy
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from simsessions.core.actions import ActionFacade
from simsessions.core.lifecycle import SessionLifecycleManager
from simsessions.core.provisioner import DeviceProvisioner
from simsessions.core.registry import DeviceRegistry
from simsessions.core.sweeper import ShutdownSweeper
from simsessions.device.capture import CaptureClient
from simsessions.device.idb import IdbClient
from simsessions.device.simctl import DeviceType, Runtime, SimctlClient, SimulatorInstance
from simsessions.services import Services

NEW_UDID = "11111111-2222-3333-4444-555555555555"
BOOTED_UDID = "AAAAAAAA-BBBB-CCCC-DDDD-EEEEEEEEEEEE"
SHUTDOWN_UDID = "99999999-8888-7777-6666-555555555555"


def _node(label: str, x: float, y: float, width: float, height: float, **extra: Any) -> dict[str, Any]:
    """Helper to create an accessibility node in idb's describe-all shape."""
    return {
        "AXLabel": label,
        "type": extra.pop("type", "Button"),
        "frame": {"x": x, "y": y, "width": width, "height": height},
        "AXFrame": f"{{{{{x}, {y}}}, {{{width}, {height}}}}}",
        **extra,
    }


PORTRAIT_TREE: list[dict[str, Any]] = [
    {
        **_node("App", 0, 0, 390, 844, type="Application"),
        "children": [
            _node("Settings", 20, 100, 120, 44),
            _node("Hidden", 0, 0, 0, 0, type="Other"),
        ],
    }
]

LANDSCAPE_TREE: list[dict[str, Any]] = [
    {
        **_node("App", 0, 0, 844, 390, type="Application"),
        "children": [
            _node("Settings", 100, 20, 44, 120),
            {"AXLabel": "No frame", "type": "StaticText"},
        ],
    }
]


# ---------------------------------------------------------------------------
# Catalogs
# ---------------------------------------------------------------------------


@pytest.fixture
def device_types() -> list[DeviceType]:
    return [
        DeviceType(name="iPhone SE (3rd generation)", identifier="com.apple.CoreSimulator.SimDeviceType.iPhone-SE-3rd-generation"),
        DeviceType(name="iPhone 15", identifier="com.apple.CoreSimulator.SimDeviceType.iPhone-15"),
        DeviceType(name="iPhone 15 Pro", identifier="com.apple.CoreSimulator.SimDeviceType.iPhone-15-Pro"),
        DeviceType(name="iPad Air (5th generation)", identifier="com.apple.CoreSimulator.SimDeviceType.iPad-Air-5th-generation"),
    ]


@pytest.fixture
def runtimes() -> list[Runtime]:
    return [
        Runtime(name="iOS 16.4", identifier="com.apple.CoreSimulator.SimRuntime.iOS-16-4", available=True, platform="iOS", version="16.4"),
        Runtime(name="iOS 17.2", identifier="com.apple.CoreSimulator.SimRuntime.iOS-17-2", available=True, platform="iOS", version="17.2"),
        Runtime(name="iOS 17.5", identifier="com.apple.CoreSimulator.SimRuntime.iOS-17-5", available=False, platform="iOS", version="17.5"),
        Runtime(name="watchOS 10.2", identifier="com.apple.CoreSimulator.SimRuntime.watchOS-10-2", available=True, platform="watchOS", version="10.2"),
    ]


@pytest.fixture
def instances() -> list[SimulatorInstance]:
    return [
        SimulatorInstance(udid=BOOTED_UDID, name="Shared iPhone", state="Booted", runtime="iOS-17-2"),
        SimulatorInstance(udid=SHUTDOWN_UDID, name="Idle iPhone", state="Shutdown", runtime="iOS-17-2"),
    ]


# ---------------------------------------------------------------------------
# Collaborator mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_simctl(device_types, runtimes, instances) -> MagicMock:
    """Create a mock SimctlClient with every command mocked."""
    simctl = MagicMock(spec=SimctlClient)
    simctl.xcrun_path = "xcrun"

    simctl.list_device_types = AsyncMock(return_value=device_types)
    simctl.list_runtimes = AsyncMock(return_value=runtimes)
    simctl.list_instances = AsyncMock(return_value=instances)

    simctl.create = AsyncMock(return_value=NEW_UDID)
    simctl.boot = AsyncMock(return_value=None)
    simctl.shutdown = AsyncMock(return_value=None)
    simctl.delete = AsyncMock(return_value=None)
    simctl.open_simulator = AsyncMock(return_value=None)

    simctl.install_app = AsyncMock(return_value=None)
    simctl.launch = AsyncMock(return_value="4242")
    return simctl


@pytest.fixture
def mock_idb() -> MagicMock:
    """Create a mock IdbClient returning a portrait snapshot."""
    idb = MagicMock(spec=IdbClient)
    idb.idb_path = "idb"

    idb.describe_all = AsyncMock(return_value=copy.deepcopy(PORTRAIT_TREE))
    idb.describe_point = AsyncMock(return_value=_node("Settings", 20, 100, 120, 44))
    idb.tap = AsyncMock(return_value=None)
    idb.type_text = AsyncMock(return_value=None)
    idb.swipe = AsyncMock(return_value=None)
    return idb


@pytest.fixture
def mock_capture() -> MagicMock:
    """Create a mock CaptureClient with per-session recording state."""
    capture = MagicMock(spec=CaptureClient)
    recording: set[str] = set()

    async def start_recording(session_id, udid, output_path, **kwargs):
        recording.add(session_id)
        return output_path

    async def stop_recording(session_id, finalize_timeout=10.0):
        recording.discard(session_id)
        return "/tmp/out.mp4"

    capture.screenshot = AsyncMock(return_value="Wrote screenshot to: /tmp/shot.png")
    capture.view = AsyncMock(return_value="/9j/4AAQSkZJRg==")
    capture.start_recording = AsyncMock(side_effect=start_recording)
    capture.stop_recording = AsyncMock(side_effect=stop_recording)
    capture.stop_all = AsyncMock(return_value=[])
    capture.is_recording = MagicMock(side_effect=lambda session_id: session_id in recording)
    return capture


# ---------------------------------------------------------------------------
# Core components
# ---------------------------------------------------------------------------


@pytest.fixture
def registry() -> DeviceRegistry:
    return DeviceRegistry()


@pytest.fixture
def provisioner(mock_simctl) -> DeviceProvisioner:
    return DeviceProvisioner(mock_simctl)


@pytest.fixture
def lifecycle(registry, provisioner, mock_simctl) -> SessionLifecycleManager:
    return SessionLifecycleManager(registry, provisioner, mock_simctl)


@pytest.fixture
def facade(registry, mock_idb, mock_simctl, mock_capture, tmp_path) -> ActionFacade:
    return ActionFacade(registry, mock_idb, mock_simctl, mock_capture, output_dir=str(tmp_path))


@pytest.fixture
def services(registry, mock_simctl, mock_idb, mock_capture, provisioner, lifecycle, facade) -> Services:
    """Service container wired to the collaborator mocks."""
    return Services(
        registry=registry,
        simctl=mock_simctl,
        idb=mock_idb,
        capture=mock_capture,
        provisioner=provisioner,
        lifecycle=lifecycle,
        sweeper=ShutdownSweeper(registry, lifecycle, teardown_timeout=1.0),
        actions=facade,
    )
