"""
idb UI Automation Client
========================

UI-automation collaborator backed by Facebook's ``idb`` CLI.

All coordinates passed here are in the device's currently reported frame.
User-provided values are always placed after ``--`` so they can never be
read as options.

See https://fbidb.io/docs/commands for the command reference.
"""

import json
from typing import Any, Optional, Union

from simsessions.core.errors import CommandError
from simsessions.device.commands import format_arg, run_command
from simsessions.utils.logger import get_logger

logger = get_logger(__name__)

Number = Union[int, float]


class IdbClient:
    """Async wrapper over ``idb ui ...`` commands."""

    def __init__(self, idb_path: str = "idb", timeout: float = 120.0) -> None:
        """
        Initialize the idb client.

        Args:
            idb_path: Path to the idb executable.
            timeout: Command timeout in seconds.
        """
        self.idb_path = idb_path
        self.timeout = timeout

    async def _ui(self, *args: str, fail_on_stderr: bool = True) -> str:
        argv = [self.idb_path, "ui", *args]
        result = await run_command(*argv, timeout=self.timeout)
        if fail_on_stderr and result.stderr:
            raise CommandError(argv, result.stderr, result.returncode)
        return result.stdout

    def _parse_json(self, stdout: str, what: str) -> Any:
        try:
            return json.loads(stdout)
        except json.JSONDecodeError as e:
            raise CommandError(
                [self.idb_path, "ui", what],
                f"Could not parse idb {what} output: {e}",
            ) from e

    async def tap(
        self,
        udid: str,
        x: Number,
        y: Number,
        duration: Optional[str] = None,
    ) -> None:
        args = ["tap", "--udid", udid]
        if duration:
            args.extend(["--duration", duration])
        args.extend(["--json", "--", format_arg(x), format_arg(y)])
        await self._ui(*args)
        logger.debug("Tap performed", udid=udid, x=x, y=y)

    async def type_text(self, udid: str, text: str) -> None:
        await self._ui("text", "--udid", udid, "--", text)
        logger.debug("Text typed", udid=udid, length=len(text))

    async def swipe(
        self,
        udid: str,
        x_start: Number,
        y_start: Number,
        x_end: Number,
        y_end: Number,
        duration: Optional[str] = None,
        delta: Optional[Number] = None,
    ) -> None:
        args = ["swipe", "--udid", udid]
        if duration:
            args.extend(["--duration", duration])
        if delta:
            args.extend(["--delta", format_arg(delta)])
        args.extend(
            [
                "--json",
                "--",
                format_arg(x_start),
                format_arg(y_start),
                format_arg(x_end),
                format_arg(y_end),
            ]
        )
        await self._ui(*args)
        logger.debug("Swipe performed", udid=udid, start=(x_start, y_start), end=(x_end, y_end))

    async def describe_all(self, udid: str) -> list[dict[str, Any]]:
        """Nested accessibility snapshot of the whole screen."""
        stdout = await self._ui(
            "describe-all", "--udid", udid, "--json", "--nested", fail_on_stderr=False
        )
        snapshot = self._parse_json(stdout, "describe-all")
        if isinstance(snapshot, dict):
            snapshot = [snapshot]
        return snapshot

    async def describe_point(self, udid: str, x: Number, y: Number) -> dict[str, Any]:
        """Accessibility element at a point in the reported device frame."""
        stdout = await self._ui(
            "describe-point", "--udid", udid, "--json", "--", format_arg(x), format_arg(y)
        )
        return self._parse_json(stdout, "describe-point")
