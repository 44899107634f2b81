"""
Device Integration Module
=========================

External collaborators for iOS Simulator control.

This package contains:
    - commands: subprocess runner shared by every collaborator
    - simctl: device management (catalog, create/boot/shutdown/delete, apps)
    - idb: UI automation (tap, type, swipe, accessibility snapshots)
    - capture: screenshots, compressed views and video recording
"""

from simsessions.device.capture import CaptureClient
from simsessions.device.commands import CommandResult, run_command
from simsessions.device.idb import IdbClient
from simsessions.device.simctl import DeviceType, Runtime, SimctlClient, SimulatorInstance

__all__ = [
    "CaptureClient",
    "CommandResult",
    "run_command",
    "IdbClient",
    "DeviceType",
    "Runtime",
    "SimctlClient",
    "SimulatorInstance",
]
