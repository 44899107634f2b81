"""
Capture Client
==============

Screenshot and video capture via ``xcrun simctl io``.

Provides:
- Screenshots written to a caller-chosen file
- Compressed point-sized JPEG views for clients that want image content
- Per-session screen recordings, each stopped independently
"""

import asyncio
import base64
import io
import os
import signal
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from PIL import Image

from simsessions.core.errors import CommandError, StateError
from simsessions.device.commands import run_command
from simsessions.utils.logger import get_logger

logger = get_logger(__name__)

Number = Union[int, float]

SCREENSHOT_SUCCESS_MARKER = "Wrote screenshot to"
RECORDING_STARTED_MARKER = "Recording started"


def compress_to_jpeg(
    png_bytes: bytes,
    width: Number,
    height: Number,
    quality: int = 80,
) -> bytes:
    """
    Resize a PNG screenshot to point dimensions and encode it as JPEG.

    Args:
        png_bytes: Raw PNG screenshot (pixel dimensions).
        width: Target width in points.
        height: Target height in points.
        quality: JPEG quality (1-100).

    Returns:
        JPEG bytes.
    """
    image = Image.open(io.BytesIO(png_bytes))
    target = (max(1, int(round(width))), max(1, int(round(height))))
    if image.size != target:
        image = image.resize(target, Image.Resampling.LANCZOS)

    # JPEG doesn't support alpha
    if image.mode in ("RGBA", "P", "LA"):
        image = image.convert("RGB")

    output = io.BytesIO()
    image.save(output, format="JPEG", quality=quality, optimize=True)

    logger.debug(
        "Screenshot compressed",
        original_kb=len(png_bytes) // 1024,
        compressed_kb=len(output.getvalue()) // 1024,
        size=f"{target[0]}x{target[1]}",
    )
    return output.getvalue()


@dataclass
class Recording:
    """An in-flight ``simctl io recordVideo`` process."""

    session_id: str
    udid: str
    output_path: str
    process: asyncio.subprocess.Process
    stderr_drain: Optional[asyncio.Task] = None


class CaptureClient:
    """
    Screenshot/video collaborator.

    Recordings are tracked per session so one session stopping its
    recording never interrupts another's.
    """

    def __init__(
        self,
        tmp_dir: str,
        xcrun_path: str = "xcrun",
        timeout: float = 120.0,
        recording_start_timeout: float = 3.0,
    ) -> None:
        """
        Initialize the capture client.

        Args:
            tmp_dir: Scratch directory for intermediate screenshots.
            xcrun_path: Path to the xcrun executable.
            timeout: Command timeout in seconds.
            recording_start_timeout: Seconds to wait for the recorder to
                confirm that recording started.
        """
        self.tmp_dir = tmp_dir
        self.xcrun_path = xcrun_path
        self.timeout = timeout
        self.recording_start_timeout = recording_start_timeout
        self._recordings: dict[str, Recording] = {}

    async def screenshot(
        self,
        udid: str,
        output_path: str,
        image_type: Optional[str] = None,
        display: Optional[str] = None,
        mask: Optional[str] = None,
    ) -> str:
        """
        Write a screenshot to ``output_path``.

        Returns:
            simctl's confirmation message.
        """
        argv = [self.xcrun_path, "simctl", "io", udid, "screenshot"]
        if image_type:
            argv.append(f"--type={image_type}")
        if display:
            argv.append(f"--display={display}")
        if mask:
            argv.append(f"--mask={mask}")
        argv.extend(["--", output_path])
        ensure_parent_dir(output_path)

        result = await run_command(*argv, timeout=self.timeout)

        # simctl reports success on stderr and leaves stdout blank
        message = result.stderr
        if message and SCREENSHOT_SUCCESS_MARKER not in message:
            raise CommandError(argv, message)

        logger.info("Screenshot written", udid=udid, path=output_path)
        return message or f"{SCREENSHOT_SUCCESS_MARKER} {output_path}"

    async def view(self, udid: str, width: Number, height: Number) -> str:
        """
        Capture a compressed view of the screen.

        Args:
            udid: Simulator UDID.
            width: Screen width in points.
            height: Screen height in points.

        Returns:
            Base64-encoded JPEG.
        """
        ts = int(time.time() * 1000)
        raw_png = Path(self.tmp_dir) / f"ui-view-{udid}-{ts}-raw.png"

        await run_command(
            self.xcrun_path,
            "simctl",
            "io",
            udid,
            "screenshot",
            "--type=png",
            "--",
            str(raw_png),
            timeout=self.timeout,
        )

        try:
            png_bytes = await asyncio.to_thread(raw_png.read_bytes)
        except OSError as e:
            raise CommandError(["simctl", "io", udid, "screenshot"], f"Screenshot not written: {e}") from e
        finally:
            raw_png.unlink(missing_ok=True)

        jpeg = await asyncio.to_thread(compress_to_jpeg, png_bytes, width, height)
        return base64.b64encode(jpeg).decode("utf-8")

    # ------------------------------------------------------------------
    # Video
    # ------------------------------------------------------------------

    def is_recording(self, session_id: str) -> bool:
        return session_id in self._recordings

    async def start_recording(
        self,
        session_id: str,
        udid: str,
        output_path: str,
        codec: Optional[str] = None,
        display: Optional[str] = None,
        mask: Optional[str] = None,
        force: bool = False,
    ) -> str:
        """
        Start recording the session's simulator.

        Waits up to ``recording_start_timeout`` for the recorder to confirm;
        a recorder that is still running after that is assumed to be fine.

        Returns:
            The output file path.

        Raises:
            StateError: If the session is already recording.
            CommandError: If the recorder exits before recording starts.
        """
        if session_id in self._recordings:
            raise StateError(
                f'Session "{session_id}" is already recording to '
                f"{self._recordings[session_id].output_path}"
            )

        argv = [self.xcrun_path, "simctl", "io", udid, "recordVideo"]
        if codec:
            argv.append(f"--codec={codec}")
        if display:
            argv.append(f"--display={display}")
        if mask:
            argv.append(f"--mask={mask}")
        if force:
            argv.append("--force")
        argv.extend(["--", output_path])
        ensure_parent_dir(output_path)

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise CommandError(argv, f"Executable not found: {argv[0]}") from e

        error_output = await self._wait_for_start(process)
        if process.returncode is not None:
            raise CommandError(
                argv,
                error_output or "Recording process terminated unexpectedly",
                process.returncode,
            )

        self._recordings[session_id] = Recording(
            session_id=session_id,
            udid=udid,
            output_path=output_path,
            process=process,
            stderr_drain=asyncio.create_task(self._drain_stderr(session_id, process)),
        )
        logger.info("Recording started", session_id=session_id, udid=udid, path=output_path)
        return output_path

    async def _wait_for_start(self, process: asyncio.subprocess.Process) -> str:
        """Read recorder stderr until it confirms start, exits, or times out."""
        collected: list[str] = []
        deadline = time.monotonic() + self.recording_start_timeout

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                line = await asyncio.wait_for(process.stderr.readline(), timeout=remaining)
            except asyncio.TimeoutError:
                break
            if not line:
                # EOF: the recorder exited
                await process.wait()
                break
            message = line.decode("utf-8", errors="replace")
            if RECORDING_STARTED_MARKER in message:
                break
            collected.append(message)

        return "".join(collected).strip()

    async def _drain_stderr(self, session_id: str, process: asyncio.subprocess.Process) -> None:
        """Keep reading recorder diagnostics so a full pipe never blocks it."""
        while True:
            line = await process.stderr.readline()
            if not line:
                return
            logger.debug(
                "Recorder output",
                session_id=session_id,
                line=line.decode("utf-8", errors="replace").rstrip(),
            )

    async def stop_recording(self, session_id: str, finalize_timeout: float = 10.0) -> str:
        """
        Stop the session's recording and wait for the file to be finalized.

        Returns:
            The output file path.

        Raises:
            StateError: If the session is not recording.
        """
        recording = self._recordings.pop(session_id, None)
        if recording is None:
            raise StateError(f'Session "{session_id}" has no active recording')

        process = recording.process
        if process.returncode is None:
            process.send_signal(signal.SIGINT)
            try:
                await asyncio.wait_for(process.wait(), timeout=finalize_timeout)
            except asyncio.TimeoutError:
                logger.warning("Recorder did not exit after SIGINT, killing", session_id=session_id)
                process.kill()
                await process.wait()
        if recording.stderr_drain is not None:
            try:
                await asyncio.wait_for(recording.stderr_drain, timeout=finalize_timeout)
            except asyncio.TimeoutError:
                logger.warning("Recorder stderr still open after exit", session_id=session_id)

        logger.info("Recording stopped", session_id=session_id, path=recording.output_path)
        return recording.output_path

    async def stop_all(self) -> list[str]:
        """Stop every active recording. Returns the finalized paths."""
        stopped = []
        for session_id in list(self._recordings):
            try:
                stopped.append(await self.stop_recording(session_id))
            except (StateError, ProcessLookupError) as e:
                logger.warning("Failed to stop recording", session_id=session_id, error=str(e))
        return stopped


def default_recording_name() -> str:
    """File name used when record_video is given no output path."""
    return f"simulator_recording_{int(time.time() * 1000)}.mp4"


def ensure_parent_dir(path: str) -> None:
    """Create the parent directory of an output file if needed."""
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
