"""
Tests for the Device Provisioner
================================
"""

import pytest

from simsessions.core.errors import NoAvailableRuntime, NoMatchingDeviceType
from simsessions.device.simctl import DeviceType, Runtime


class TestResolveDeviceType:
    @pytest.mark.asyncio
    async def test_case_insensitive_substring(self, provisioner):
        result = await provisioner.resolve_device_type("ipad")
        assert result.name == "iPad Air (5th generation)"

    @pytest.mark.asyncio
    async def test_lowercase_keyword_returns_first_entry(self, provisioner, mock_simctl):
        mock_simctl.list_device_types.return_value = [
            DeviceType(name="iPhone 16 Pro", identifier="iphone-16-pro"),
            DeviceType(name="iPhone SE", identifier="iphone-se"),
            DeviceType(name="iPad Air", identifier="ipad-air"),
        ]
        result = await provisioner.resolve_device_type("iphone")
        assert result.name == "iPhone 16 Pro"

    @pytest.mark.asyncio
    async def test_first_match_in_catalog_order(self, provisioner):
        # "iPhone 15" and "iPhone 15 Pro" both match; catalog order wins
        result = await provisioner.resolve_device_type("iPhone 15")
        assert result.name == "iPhone 15"
        assert result.identifier.endswith("iPhone-15")

    @pytest.mark.asyncio
    async def test_no_match_lists_catalog(self, provisioner):
        with pytest.raises(NoMatchingDeviceType) as exc_info:
            await provisioner.resolve_device_type("Pixel")

        message = exc_info.value.message
        assert exc_info.value.category == "input_error"
        assert "Pixel" in message
        for name in ("iPhone SE (3rd generation)", "iPhone 15 Pro", "iPad Air (5th generation)"):
            assert name in message


class TestResolveLatestRuntime:
    @pytest.mark.asyncio
    async def test_last_available_ios_runtime(self, provisioner):
        # 17.5 is unavailable and watchOS is the wrong platform
        result = await provisioner.resolve_latest_runtime()
        assert result.name == "iOS 17.2"

    @pytest.mark.asyncio
    async def test_no_runtime(self, provisioner, mock_simctl):
        mock_simctl.list_runtimes.return_value = [
            Runtime(name="iOS 17.0", identifier="ios-17", available=False, platform="iOS"),
            Runtime(name="tvOS 17.0", identifier="tvos-17", available=True, platform="tvOS"),
        ]
        with pytest.raises(NoAvailableRuntime):
            await provisioner.resolve_latest_runtime()
