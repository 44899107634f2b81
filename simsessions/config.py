"""
Configuration Management
========================

Centralized configuration using Pydantic Settings.
Loads from environment variables and .env file.

Configuration is read once at process start (``get_settings`` is cached)
and treated as immutable afterwards.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Shared config that all settings classes use to load .env
_shared_config = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    env_prefix="",
    extra="ignore",
)


def expand_home(path: str) -> str:
    """Expand a leading ``~/`` to the current user's home directory."""
    if path.startswith("~/"):
        return str(Path.home() / path[2:])
    return path


class SimulatorSettings(BaseSettings):
    """Simulator tooling configuration (xcrun simctl, idb, capture)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SIMSESSIONS_",
        extra="ignore",
    )

    idb_path: str = Field(
        default="",
        description="Path to the idb executable (leave empty to use 'idb' from PATH)",
    )
    xcrun_path: str = Field(default="xcrun", description="Path to the xcrun executable")
    default_output_dir: str = Field(
        default="",
        description="Directory for relative screenshot/video paths (defaults to ~/Downloads)",
    )
    filtered_tools: str = Field(
        default="",
        description="Comma-separated list of operation names to disable",
    )
    default_device_type: str = Field(
        default="iPhone",
        description="Device type keyword used when start_session gives none",
    )
    command_timeout: float = Field(default=120.0, description="Timeout for simctl/idb commands in seconds")
    boot_timeout: float = Field(default=300.0, description="Timeout for simulator boot in seconds")
    recording_start_timeout: float = Field(
        default=3.0,
        description="Seconds to wait for the recorder to report that recording started",
    )
    map_input_coordinates: bool = Field(
        default=False,
        description="Map canonical tap/swipe coordinates back into the rotated device frame",
    )

    def get_filtered_tools(self) -> set[str]:
        """Return the disabled operation names as a set."""
        return {tool.strip() for tool in self.filtered_tools.split(",") if tool.strip()}

    def resolve_idb_path(self) -> str:
        """
        Resolve the idb executable path.

        Returns:
            The configured path with ``~`` expanded, or ``"idb"``.

        Raises:
            ValueError: If a custom path is configured but does not exist.
        """
        if not self.idb_path:
            return "idb"
        expanded = expand_home(self.idb_path)
        if not os.path.exists(expanded):
            raise ValueError(
                f"Custom IDB path specified in SIMSESSIONS_IDB_PATH does not exist: {expanded}"
            )
        return expanded

    def resolve_output_dir(self) -> str:
        """Return the default output directory for relative capture paths."""
        if self.default_output_dir:
            return expand_home(self.default_output_dir)
        return str(Path.home() / "Downloads")


class ServerSettings(BaseSettings):
    """Server configuration settings."""

    model_config = _shared_config

    server_host: str = Field(default="127.0.0.1", description="Server host")
    server_port: int = Field(default=8000, description="Server port")
    debug: bool = Field(default=True, description="Debug mode")
    environment: str = Field(default="development", description="Environment name (development, staging, production)")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Log level",
    )
    cors_origins: str = Field(default="*", description="CORS origins")

    def get_cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]


class LifecycleSettings(BaseSettings):
    """Session lifecycle configuration."""

    model_config = _shared_config

    teardown_timeout: float = Field(
        default=30.0,
        description="Upper bound in seconds for tearing down one device during shutdown",
    )
    session_id_max_length: int = Field(
        default=128,
        description="Maximum accepted length of a session identifier",
    )

    @field_validator("session_id_max_length")
    @classmethod
    def check_positive(cls, v: int) -> int:
        """Session ids need room for at least one character."""
        if v < 1:
            raise ValueError("session_id_max_length must be at least 1")
        return v


class Settings(BaseSettings):
    """
    Main settings class combining all configuration sections.

    Usage:
        from simsessions.config import get_settings
        settings = get_settings()
        print(settings.simulator.default_device_type)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Nested settings
    simulator: SimulatorSettings = Field(default_factory=SimulatorSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    lifecycle: LifecycleSettings = Field(default_factory=LifecycleSettings)

    def __init__(self, **kwargs):
        """Initialize settings with nested configuration."""
        super().__init__(**kwargs)
        # Re-initialize nested settings to pick up env vars
        self.simulator = kwargs.get("simulator") or SimulatorSettings()
        self.server = kwargs.get("server") or ServerSettings()
        self.lifecycle = kwargs.get("lifecycle") or LifecycleSettings()


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings loaded from environment.
    """
    return Settings()
