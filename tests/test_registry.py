"""
Tests for the Device Registry
=============================

Tests for:
- Insert / lookup / removal
- Duplicate session and duplicate instance rejection
- Snapshot iteration of owned handles
- Thread safety under concurrent inserts
"""

import threading

import pytest

from simsessions.core.errors import (
    AlreadyExists,
    DuplicateInstance,
    InvalidSessionId,
    SessionNotFound,
)
from simsessions.core.geometry import Orientation
from simsessions.core.registry import DeviceHandle, DeviceRegistry, validate_session_id


def _handle(udid: str, owned: bool = True) -> DeviceHandle:
    return DeviceHandle(instance_id=udid, display_name=f"sim-{udid}", owned=owned)


class TestValidateSessionId:
    def test_accepts_opaque_ids(self):
        assert validate_session_id("agent 7 / tab:3") == "agent 7 / tab:3"

    def test_rejects_empty(self):
        with pytest.raises(InvalidSessionId):
            validate_session_id("")

    def test_rejects_too_long(self):
        validate_session_id("x" * 128)
        with pytest.raises(InvalidSessionId):
            validate_session_id("x" * 129)

    def test_custom_limit(self):
        with pytest.raises(InvalidSessionId):
            validate_session_id("abcd", max_length=3)


class TestDeviceRegistry:
    """Tests for DeviceRegistry."""

    def test_put_and_get(self):
        registry = DeviceRegistry()
        handle = _handle("udid-1")
        registry.put("s1", handle)

        assert registry.get("s1") is handle
        assert handle.session_id == "s1"
        assert handle.orientation is Orientation.AUTO
        assert len(registry) == 1

    def test_get_missing_raises(self):
        registry = DeviceRegistry()
        with pytest.raises(SessionNotFound) as exc_info:
            registry.get("ghost")
        assert "no device for session" in exc_info.value.message.lower()

    def test_put_existing_session_raises(self):
        registry = DeviceRegistry()
        registry.put("s1", _handle("udid-1"))
        with pytest.raises(AlreadyExists):
            registry.put("s1", _handle("udid-2"))
        assert registry.get("s1").instance_id == "udid-1"

    def test_put_duplicate_instance_raises(self):
        registry = DeviceRegistry()
        registry.put("s1", _handle("udid-1"))
        with pytest.raises(DuplicateInstance) as exc_info:
            registry.put("s2", _handle("udid-1", owned=False))

        assert exc_info.value.category == "internal_invariant_error"
        assert not registry.contains("s2")

    def test_duplicate_instance_ignores_udid_case(self):
        registry = DeviceRegistry()
        registry.put("s1", _handle("AAAA-BBBB"))
        with pytest.raises(DuplicateInstance):
            registry.put("s2", _handle("aaaa-bbbb", owned=False))

    def test_remove_is_idempotent(self):
        registry = DeviceRegistry()
        handle = _handle("udid-1")
        registry.put("s1", handle)

        assert registry.remove("s1") is handle
        assert registry.remove("s1") is None
        with pytest.raises(SessionNotFound):
            registry.get("s1")

    def test_removed_instance_can_be_reused(self):
        registry = DeviceRegistry()
        registry.put("s1", _handle("udid-1"))
        registry.remove("s1")
        registry.put("s2", _handle("udid-1"))
        assert registry.get("s2").instance_id == "udid-1"

    def test_for_each_owned_skips_attached(self):
        registry = DeviceRegistry()
        registry.put("owned", _handle("udid-1", owned=True))
        registry.put("attached", _handle("udid-2", owned=False))

        visited = registry.for_each_owned(lambda session_id, handle: session_id)
        assert visited == ["owned"]

    def test_for_each_owned_allows_removal(self):
        registry = DeviceRegistry()
        for i in range(3):
            registry.put(f"s{i}", _handle(f"udid-{i}"))

        registry.for_each_owned(lambda session_id, handle: registry.remove(session_id))
        assert len(registry) == 0

    def test_snapshot_is_a_copy(self):
        registry = DeviceRegistry()
        registry.put("s1", _handle("udid-1"))
        snapshot = registry.snapshot()
        registry.clear()
        assert [session_id for session_id, _ in snapshot] == ["s1"]
        assert len(registry) == 0

    def test_to_dict(self):
        registry = DeviceRegistry()
        handle = _handle("udid-1", owned=False)
        registry.put("s1", handle)

        data = handle.to_dict()
        assert data["session_id"] == "s1"
        assert data["udid"] == "udid-1"
        assert data["owned"] is False
        assert data["orientation"] == "auto"
        assert "created_at" in data

    def test_concurrent_inserts_of_same_instance(self):
        registry = DeviceRegistry()
        errors: list[Exception] = []
        barrier = threading.Barrier(8)

        def insert(i: int) -> None:
            barrier.wait()
            try:
                registry.put(f"s{i}", _handle("shared-udid"))
            except DuplicateInstance as e:
                errors.append(e)

        threads = [threading.Thread(target=insert, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(registry) == 1
        assert len(errors) == 7
