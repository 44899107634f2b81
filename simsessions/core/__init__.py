"""
Core Module
===========

Session registry, lifecycle, provisioning and coordinate geometry.

Only dependency-free pieces are re-exported here; import the lifecycle,
provisioner, sweeper and action facade from their own modules.
"""

from simsessions.core.errors import SessionError
from simsessions.core.geometry import Orientation, Rect, resolve_orientation, transform_rect, transform_tree
from simsessions.core.registry import DeviceHandle, DeviceRegistry

__all__ = [
    "SessionError",
    "Orientation",
    "Rect",
    "resolve_orientation",
    "transform_rect",
    "transform_tree",
    "DeviceHandle",
    "DeviceRegistry",
]
