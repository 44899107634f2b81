"""
Tests for Configuration and Path Helpers
========================================
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from simsessions.config import LifecycleSettings, ServerSettings, Settings, SimulatorSettings, expand_home
from simsessions.utils.paths import ensure_absolute_path, resolve_app_bundle


class TestSimulatorSettings:
    def test_defaults(self, monkeypatch):
        for var in ("SIMSESSIONS_IDB_PATH", "SIMSESSIONS_FILTERED_TOOLS", "SIMSESSIONS_DEFAULT_OUTPUT_DIR"):
            monkeypatch.delenv(var, raising=False)
        settings = SimulatorSettings()

        assert settings.default_device_type == "iPhone"
        assert settings.recording_start_timeout == 3.0
        assert settings.map_input_coordinates is False
        assert settings.resolve_idb_path() == "idb"
        assert settings.resolve_output_dir() == str(Path.home() / "Downloads")

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("SIMSESSIONS_FILTERED_TOOLS", "ui_tap, record_video,,")
        monkeypatch.setenv("SIMSESSIONS_DEFAULT_DEVICE_TYPE", "iPad")

        settings = SimulatorSettings()

        assert settings.get_filtered_tools() == {"ui_tap", "record_video"}
        assert settings.default_device_type == "iPad"

    def test_custom_idb_path_must_exist(self, tmp_path):
        missing = SimulatorSettings(idb_path=str(tmp_path / "idb"))
        with pytest.raises(ValueError):
            missing.resolve_idb_path()

        binary = tmp_path / "idb"
        binary.touch()
        assert SimulatorSettings(idb_path=str(binary)).resolve_idb_path() == str(binary)

    def test_output_dir_expands_home(self):
        settings = SimulatorSettings(default_output_dir="~/captures")
        assert settings.resolve_output_dir() == str(Path.home() / "captures")


class TestOtherSettings:
    def test_cors_origins(self):
        assert ServerSettings(cors_origins="*").get_cors_origins_list() == ["*"]
        assert ServerSettings(cors_origins="http://a, http://b").get_cors_origins_list() == ["http://a", "http://b"]

    def test_session_id_max_length_validated(self):
        with pytest.raises(ValidationError):
            LifecycleSettings(session_id_max_length=0)

    def test_nested_sections(self):
        settings = Settings(lifecycle=LifecycleSettings(teardown_timeout=5))
        assert settings.lifecycle.teardown_timeout == 5
        assert isinstance(settings.simulator, SimulatorSettings)


class TestPaths:
    def test_expand_home(self):
        assert expand_home("~/x") == str(Path.home() / "x")
        assert expand_home("/abs/x") == "/abs/x"

    def test_ensure_absolute_path(self):
        assert ensure_absolute_path("/abs/a.png", "/out") == "/abs/a.png"
        assert ensure_absolute_path("a.png", "/out") == "/out/a.png"
        assert ensure_absolute_path("~/a.png", "/out") == str(Path.home() / "a.png")

    def test_resolve_app_bundle_relative(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert resolve_app_bundle("Demo.app") == tmp_path.resolve() / "Demo.app"
