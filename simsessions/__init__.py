"""
Simulator Sessions
==================

Session-scoped iOS Simulator server.

Each client session owns at most one simulator instance, drives it through
coordinate-addressed UI actions, and has it reclaimed deterministically on
teardown or process exit.

Modules:
    - core: session registry, lifecycle, provisioning, geometry, actions
    - device: xcrun simctl / idb / capture collaborators
    - api: FastAPI routes, WebSocket and stdio line protocols
    - utils: logging and path helpers
"""

__version__ = "1.0.0"
__author__ = "Simulator Sessions Team"
