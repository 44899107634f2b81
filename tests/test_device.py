"""
Tests for Device Collaborators
==============================

Tests for:
- Command runner error mapping
- simctl JSON parsing and argument construction
- idb argument construction and stderr handling
- Screenshot compression with Pillow
- Per-session recording bookkeeping
"""

import asyncio
import base64
import io
import json
import subprocess
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from PIL import Image

from simsessions.core.errors import CommandError, StateError
from simsessions.device.capture import CaptureClient, Recording, compress_to_jpeg
from simsessions.device.commands import CommandResult, format_arg, run_command
from simsessions.device.idb import IdbClient
from simsessions.device.simctl import SimctlClient


def _png(width: int, height: int, mode: str = "RGBA") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, (width, height), color=(255, 0, 0, 255) if mode == "RGBA" else (255, 0, 0)).save(
        buffer, format="PNG"
    )
    return buffer.getvalue()


class TestRunCommand:
    """Tests for run_command."""

    @pytest.mark.asyncio
    async def test_success_trims_output(self):
        completed = subprocess.CompletedProcess(["x"], 0, stdout="  out\n", stderr="")
        with patch("simsessions.device.commands.subprocess.run", return_value=completed):
            result = await run_command("x")
        assert result == CommandResult(stdout="out", stderr="", returncode=0)

    @pytest.mark.asyncio
    async def test_non_zero_exit_raises_with_raw_output(self):
        completed = subprocess.CompletedProcess(["x"], 1, stdout="", stderr="Invalid device: foo\n")
        with patch("simsessions.device.commands.subprocess.run", return_value=completed):
            with pytest.raises(CommandError) as exc_info:
                await run_command("xcrun", "simctl", "boot", "foo")

        assert exc_info.value.output == "Invalid device: foo"
        assert exc_info.value.returncode == 1

    @pytest.mark.asyncio
    async def test_missing_executable(self):
        with patch("simsessions.device.commands.subprocess.run", side_effect=FileNotFoundError()):
            with pytest.raises(CommandError) as exc_info:
                await run_command("idb", "ui", "tap")
        assert "idb" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_timeout(self):
        with patch(
            "simsessions.device.commands.subprocess.run",
            side_effect=subprocess.TimeoutExpired("xcrun", 1),
        ):
            with pytest.raises(CommandError):
                await run_command("xcrun", timeout=1)

    def test_format_arg(self):
        assert format_arg(10.0) == "10"
        assert format_arg(10.5) == "10.5"
        assert format_arg(3) == "3"


class TestSimctlClient:
    """Tests for SimctlClient parsing."""

    @pytest.fixture
    def simctl(self):
        return SimctlClient()

    @pytest.mark.asyncio
    async def test_list_runtimes_derives_platform(self, simctl):
        payload = {
            "runtimes": [
                {"name": "iOS 17.2", "identifier": "ios-17-2", "isAvailable": True, "version": "17.2"},
                {"name": "watchOS 10.2", "identifier": "watch", "isAvailable": True, "platform": "watchOS"},
            ]
        }
        with patch.object(simctl, "_simctl", AsyncMock(return_value=json.dumps(payload))):
            runtimes = await simctl.list_runtimes()

        assert [r.platform for r in runtimes] == ["iOS", "watchOS"]
        assert runtimes[0].available is True

    @pytest.mark.asyncio
    async def test_list_instances(self, simctl):
        payload = {
            "devices": {
                "com.apple.CoreSimulator.SimRuntime.iOS-17-2": [
                    {"udid": "U1", "name": "A", "state": "Booted"},
                    {"udid": "U2", "name": "B", "state": "Shutdown"},
                ]
            }
        }
        with patch.object(simctl, "_simctl", AsyncMock(return_value=json.dumps(payload))):
            instances = await simctl.list_instances()

        assert [(i.udid, i.is_booted) for i in instances] == [("U1", True), ("U2", False)]

    @pytest.mark.asyncio
    async def test_unparseable_json(self, simctl):
        with patch.object(simctl, "_simctl", AsyncMock(return_value="garbage")):
            with pytest.raises(CommandError):
                await simctl.list_device_types()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "stdout, pid",
        [
            ("com.example.demo: 4242", "4242"),
            ("4242", "4242"),
            ("", None),
        ],
    )
    async def test_launch_pid(self, simctl, stdout, pid):
        mock = AsyncMock(return_value=stdout)
        with patch.object(simctl, "_simctl", mock):
            assert await simctl.launch("U1", "com.example.demo", terminate_running=True) == pid

        mock.assert_awaited_once_with("launch", "--terminate-running-process", "U1", "com.example.demo")

    @pytest.mark.asyncio
    async def test_open_simulator_args(self, simctl):
        with patch("simsessions.device.simctl.run_command", AsyncMock()) as mock_run:
            await simctl.open_simulator("U1")
        assert mock_run.await_args.args == ("open", "-a", "Simulator.app", "--args", "-CurrentDeviceUDID", "U1")


class TestIdbClient:
    """Tests for IdbClient."""

    @pytest.fixture
    def idb(self):
        return IdbClient(idb_path="/opt/idb")

    @pytest.mark.asyncio
    async def test_tap_args(self, idb):
        with patch("simsessions.device.idb.run_command", AsyncMock(return_value=CommandResult("", "", 0))) as mock_run:
            await idb.tap("U1", 10.0, 20.5, duration="0.2")

        assert mock_run.await_args.args == (
            "/opt/idb", "ui", "tap", "--udid", "U1", "--duration", "0.2", "--json", "--", "10", "20.5",
        )

    @pytest.mark.asyncio
    async def test_text_after_separator(self, idb):
        with patch("simsessions.device.idb.run_command", AsyncMock(return_value=CommandResult("", "", 0))) as mock_run:
            await idb.type_text("U1", "--help")
        assert mock_run.await_args.args[-2:] == ("--", "--help")

    @pytest.mark.asyncio
    async def test_stderr_is_failure(self, idb):
        result = CommandResult("", "No companion connected", 0)
        with patch("simsessions.device.idb.run_command", AsyncMock(return_value=result)):
            with pytest.raises(CommandError) as exc_info:
                await idb.swipe("U1", 0, 0, 10, 10)
        assert exc_info.value.message == "No companion connected"

    @pytest.mark.asyncio
    async def test_describe_all_tolerates_stderr_and_wraps_dict(self, idb):
        result = CommandResult(json.dumps({"type": "Application"}), "warning: slow", 0)
        with patch("simsessions.device.idb.run_command", AsyncMock(return_value=result)):
            snapshot = await idb.describe_all("U1")
        assert snapshot == [{"type": "Application"}]


class TestCompression:
    def test_resizes_to_points(self):
        jpeg = compress_to_jpeg(_png(1170, 2532), 390, 844)
        image = Image.open(io.BytesIO(jpeg))

        assert image.format == "JPEG"
        assert image.size == (390, 844)
        assert image.mode == "RGB"

    def test_same_size_rgb(self):
        jpeg = compress_to_jpeg(_png(40, 80, mode="RGB"), 40, 80)
        assert Image.open(io.BytesIO(jpeg)).size == (40, 80)


class TestCaptureClient:
    """Tests for CaptureClient."""

    @pytest.fixture
    def capture(self, tmp_path):
        return CaptureClient(tmp_dir=str(tmp_path))

    @pytest.mark.asyncio
    async def test_screenshot_requires_marker(self, capture):
        result = CommandResult("", "Something odd happened", 0)
        with patch("simsessions.device.capture.run_command", AsyncMock(return_value=result)):
            with pytest.raises(CommandError):
                await capture.screenshot("U1", "/tmp/a.png")

    @pytest.mark.asyncio
    async def test_screenshot_args(self, capture):
        result = CommandResult("", "Wrote screenshot to: /tmp/a.png", 0)
        with patch("simsessions.device.capture.run_command", AsyncMock(return_value=result)) as mock_run:
            message = await capture.screenshot("U1", "/tmp/a.png", image_type="jpeg", mask="black")

        assert "Wrote screenshot to" in message
        assert mock_run.await_args.args[-4:] == ("--type=jpeg", "--mask=black", "--", "/tmp/a.png")

    @pytest.mark.asyncio
    async def test_view_returns_base64_jpeg(self, capture, tmp_path):
        png = _png(60, 120)

        async def fake_screenshot(*args, **kwargs):
            (tmp_path / args[-1].split("/")[-1]).write_bytes(png)
            return CommandResult("", "Wrote screenshot to", 0)

        with patch("simsessions.device.capture.run_command", AsyncMock(side_effect=fake_screenshot)):
            encoded = await capture.view("U1", 20, 40)

        image = Image.open(io.BytesIO(base64.b64decode(encoded)))
        assert image.size == (20, 40)
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_stop_without_recording(self, capture):
        with pytest.raises(StateError):
            await capture.stop_recording("s1")

    @pytest.mark.asyncio
    async def test_second_recording_for_session_rejected(self, capture):
        capture._recordings["s1"] = Recording("s1", "U1", "/tmp/a.mp4", MagicMock())
        with pytest.raises(StateError):
            await capture.start_recording("s1", "U1", "/tmp/b.mp4")

    @pytest.mark.asyncio
    async def test_stop_signals_only_that_session(self, capture):
        first = MagicMock(returncode=None)
        first.wait = AsyncMock(return_value=0)
        second = MagicMock(returncode=None)
        capture._recordings["s1"] = Recording("s1", "U1", "/tmp/a.mp4", first)
        capture._recordings["s2"] = Recording("s2", "U2", "/tmp/b.mp4", second)

        path = await capture.stop_recording("s1")

        assert path == "/tmp/a.mp4"
        first.send_signal.assert_called_once()
        second.send_signal.assert_not_called()
        assert capture.is_recording("s2")
        assert not capture.is_recording("s1")

    @pytest.mark.asyncio
    async def test_recorder_stderr_is_drained_after_start(self, capture, tmp_path):
        stderr = asyncio.StreamReader()
        stderr.feed_data(b"Recording started\n")
        process = MagicMock(returncode=None, stderr=stderr)
        process.wait = AsyncMock(return_value=0)

        create = AsyncMock(return_value=process)
        with patch("simsessions.device.capture.asyncio.create_subprocess_exec", create):
            await capture.start_recording("s1", "U1", str(tmp_path / "out.mp4"))

        # Diagnostics written after start are consumed in the background
        stderr.feed_data(b"frame dropped\n" * 1000)
        stderr.feed_eof()
        recording = capture._recordings["s1"]
        await asyncio.wait_for(recording.stderr_drain, timeout=1)
        assert stderr.at_eof()

        await capture.stop_recording("s1")
        process.send_signal.assert_called_once()
