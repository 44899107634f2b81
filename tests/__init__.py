"""
Test Package
============

Unit and integration tests for the simulator session service.

Test organization:
    - test_geometry.py: Orientation-aware frame transforms
    - test_registry.py / test_lifecycle.py / test_sweeper.py: Session state
    - test_actions.py: Session-keyed UI and media operations
    - test_dispatcher.py / test_stdio.py / test_api.py: Transports
    - test_device.py: simctl, idb and capture collaborators

Run tests with:
    pytest tests/ -v
    pytest tests/ -v --cov=simsessions --cov-report=html
"""
