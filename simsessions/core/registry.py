"""
Device Registry
===============

In-process table from session identifier to device handle.

The registry is constructed once at startup and injected wherever it is
needed. It owns its own lock, so operations on distinct session ids are
safe from any thread or task.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from simsessions.core.errors import AlreadyExists, DuplicateInstance, InvalidSessionId, SessionNotFound
from simsessions.core.geometry import Orientation


def validate_session_id(session_id: str, max_length: int = 128) -> str:
    """
    Check a caller-supplied session id.

    Only the length is checked; the id is otherwise opaque.

    Raises:
        InvalidSessionId: If the id is empty or longer than ``max_length``.
    """
    if not isinstance(session_id, str) or not session_id:
        raise InvalidSessionId("session_id is required")
    if len(session_id) > max_length:
        raise InvalidSessionId(f"session_id must be at most {max_length} characters")
    return session_id


@dataclass
class DeviceHandle:
    """
    A session's view of one simulator instance.

    Attributes:
        instance_id: Simulator UDID (owned by simctl, cached here).
        display_name: Simulator name.
        owned: True if this process created the simulator and must
            delete it on teardown; False for attached simulators.
        orientation: Stored orientation setting.
        session_id: Session the handle is registered under.
        created_at: When the handle was registered.
    """

    instance_id: str
    display_name: str
    owned: bool
    orientation: Orientation = Orientation.AUTO
    session_id: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "session_id": self.session_id,
            "udid": self.instance_id,
            "name": self.display_name,
            "owned": self.owned,
            "orientation": self.orientation.value,
            "created_at": self.created_at.isoformat(),
        }


class DeviceRegistry:
    """Thread-safe session id -> DeviceHandle table."""

    def __init__(self) -> None:
        self._handles: dict[str, DeviceHandle] = {}
        self._lock = threading.Lock()

    def put(self, session_id: str, handle: DeviceHandle) -> None:
        """
        Register a handle.

        Raises:
            AlreadyExists: If ``session_id`` is already registered.
            DuplicateInstance: If another session holds the same instance id.
        """
        with self._lock:
            if session_id in self._handles:
                raise AlreadyExists(session_id)
            for owner, existing in self._handles.items():
                if existing.instance_id.upper() == handle.instance_id.upper():
                    raise DuplicateInstance(handle.instance_id, owner)
            handle.session_id = session_id
            self._handles[session_id] = handle

    def get(self, session_id: str) -> DeviceHandle:
        """
        Look up a session's handle.

        Raises:
            SessionNotFound: If the session has no device.
        """
        with self._lock:
            handle = self._handles.get(session_id)
        if handle is None:
            raise SessionNotFound(session_id)
        return handle

    def find(self, session_id: str) -> Optional[DeviceHandle]:
        with self._lock:
            return self._handles.get(session_id)

    def remove(self, session_id: str) -> Optional[DeviceHandle]:
        """Forget a session. Idempotent; returns the removed handle if any."""
        with self._lock:
            return self._handles.pop(session_id, None)

    def contains(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._handles

    def snapshot(self) -> list[tuple[str, DeviceHandle]]:
        """Stable copy of the current entries."""
        with self._lock:
            return list(self._handles.items())

    def for_each_owned(self, fn: Callable[[str, DeviceHandle], Any]) -> list[Any]:
        """
        Call ``fn(session_id, handle)`` for every owned handle.

        Iterates a snapshot, so ``fn`` may remove entries.
        """
        return [fn(session_id, handle) for session_id, handle in self.snapshot() if handle.owned]

    def clear(self) -> None:
        with self._lock:
            self._handles.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)
