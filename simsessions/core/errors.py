"""
Session Errors
==============

Exception taxonomy for session and device operations.

Every error carries a ``category`` used by the session-facing surface to
build a structured failure:

- ``input_error``: user-correctable input (bad id, unknown device type)
- ``state_error``: session used out of protocol order
- ``collaborator_error``: an external command failed or returned garbage
- ``internal_invariant_error``: registry state would have been corrupted
"""

from typing import Any, Iterable, Optional

TROUBLESHOOTING_GUIDE = "TROUBLESHOOTING.md"


def troubleshooting_link() -> str:
    """Markdown link to the troubleshooting guide."""
    return f"[Troubleshooting Guide]({TROUBLESHOOTING_GUIDE})"


def with_troubleshooting(message: str) -> str:
    """Append the troubleshooting pointer to a message."""
    return f"{message}\n\nFor help, see the {troubleshooting_link()}"


class SessionError(Exception):
    """Base class for all errors surfaced to session clients."""

    category = "internal_invariant_error"

    def __init__(self, message: str, troubleshooting: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.troubleshooting = troubleshooting

    @property
    def type(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        """Structured failure payload."""
        message = with_troubleshooting(self.message) if self.troubleshooting else self.message
        return {
            "type": self.type,
            "category": self.category,
            "message": message,
            "troubleshooting": troubleshooting_link() if self.troubleshooting else None,
        }


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------


class InputError(SessionError):
    category = "input_error"


class InvalidSessionId(InputError):
    pass


class InvalidParameter(InputError):
    pass


class InvalidRequest(InputError):
    """A protocol line that is not a JSON request object."""


class OperationUnavailable(InputError):
    """The operation is unknown or disabled by configuration."""


class NoMatchingDeviceType(InputError):
    def __init__(self, keyword: str, available: Iterable[str]) -> None:
        names = ", ".join(available) or "(none)"
        super().__init__(
            f'No device type matches "{keyword}". Available device types: {names}'
        )
        self.keyword = keyword


class NoAvailableRuntime(InputError):
    def __init__(self, platform: str = "iOS") -> None:
        super().__init__(f"No available {platform} runtime found", troubleshooting=True)


# ---------------------------------------------------------------------------
# State errors
# ---------------------------------------------------------------------------


class StateError(SessionError):
    category = "state_error"


class SessionNotFound(StateError):
    def __init__(self, session_id: str) -> None:
        super().__init__(
            f'No device for session "{session_id}". '
            "Call start_session or attach_session first."
        )
        self.session_id = session_id


class AlreadyExists(StateError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f'Session "{session_id}" is already registered')
        self.session_id = session_id


class AlreadyActive(StateError):
    def __init__(self, session_id: str, display_name: str, instance_id: str) -> None:
        super().__init__(
            f'Session "{session_id}" already has a device: "{display_name}" '
            f'(UDID: {instance_id}). Destroy the session first to start a new one.'
        )
        self.session_id = session_id
        self.display_name = display_name
        self.instance_id = instance_id


class NotActive(StateError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f'Session "{session_id}" has no active device')
        self.session_id = session_id


class InstanceNotFound(StateError):
    def __init__(self, instance_id: str) -> None:
        super().__init__(f"Simulator {instance_id} was not found", troubleshooting=True)
        self.instance_id = instance_id


class InstanceNotBooted(StateError):
    def __init__(self, instance_id: str, state: str) -> None:
        super().__init__(
            f"Simulator {instance_id} is not booted (current state: {state})",
            troubleshooting=True,
        )
        self.instance_id = instance_id
        self.state = state


# ---------------------------------------------------------------------------
# Collaborator errors
# ---------------------------------------------------------------------------


class CollaboratorError(SessionError):
    category = "collaborator_error"

    def __init__(self, message: str, troubleshooting: bool = True) -> None:
        super().__init__(message, troubleshooting=troubleshooting)


class CommandError(CollaboratorError):
    """An external command exited non-zero or produced unusable output."""

    def __init__(
        self,
        cmd: list[str],
        output: str,
        returncode: Optional[int] = None,
    ) -> None:
        super().__init__(output or f"{cmd[0]} exited with code {returncode}")
        self.cmd = cmd
        self.output = output
        self.returncode = returncode


# ---------------------------------------------------------------------------
# Internal invariant errors
# ---------------------------------------------------------------------------


class InternalInvariantError(SessionError):
    category = "internal_invariant_error"


class DuplicateInstance(InternalInvariantError):
    def __init__(self, instance_id: str, owner: str) -> None:
        super().__init__(
            f"Simulator {instance_id} is already bound to session \"{owner}\""
        )
        self.instance_id = instance_id
        self.owner = owner


def describe_failure(prefix: str, error: SessionError) -> SessionError:
    """
    Prefix an error message with the failing operation.

    The original error type and category are kept.
    """
    error.message = f"{prefix}: {error.message}"
    error.args = (error.message,)
    return error
