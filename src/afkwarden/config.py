"""Configuration management for afkwarden.

This module defines the configuration schema using Pydantic settings,
supporting JSON files, environment variables, and programmatic overrides.

Configuration loading priority (highest to lowest):
1. Programmatic overrides (passed to WardenConfig constructor)
2. Environment variables (AFKWARDEN_* prefix, plus PORT for the web server)
3. JSON configuration file
4. Default values defined in this module

Example JSON configuration (the flat server keys are the historical format):
    {
        "ip": "play.example.com",
        "name": "afkbot",
        "auto-night-skip": "true",
        "supervisor": {"liveness_timeout_seconds": 15}
    }

Example environment variable override:
    AFKWARDEN_SUPERVISOR__MAX_FAILURES=20
    PORT=8080
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Flat top-level keys of the JSON document that belong to the server section
SERVER_KEYS = ("ip", "name", "auto-night-skip", "port")


class ServerConfig(BaseModel):
    """Game server connection configuration.

    Validated from the nested ``server`` section, so environment overrides
    use the root prefix (AFKWARDEN_SERVER__IP).

    Attributes:
        host: Game server host name or address (JSON key ``ip``)
        port: Game server port
        base_name: Base label used to derive occupant identities (JSON key ``name``)
        auto_night_skip: Skip the night whenever the world clock reaches it
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    host: str = Field(default="localhost", alias="ip")
    port: int = Field(default=25565, ge=1, le=65535)
    base_name: str = Field(default="afkbot", alias="name", min_length=1)
    auto_night_skip: bool = Field(default=False, alias="auto-night-skip")


class SupervisorConfig(BaseSettings):
    """Connection-lifecycle timings and thresholds.

    Attributes:
        watchdog_interval_seconds: Seconds between liveness checks
        liveness_timeout_seconds: Silence after which a session is replaced
        presence_interval_seconds: Seconds between occupant roster checks
        heartbeat_interval_seconds: Seconds between heartbeat log entries
        reconnect_delay_seconds: Delay before reconnecting after a reactive failure
        retry_delay_seconds: Delay before retrying after a failed session creation
        max_failures: Consecutive failures that raise the repeated-failure alert
        rotation_min_minutes: Lower bound of the identity rotation interval
        rotation_max_minutes: Upper bound of the identity rotation interval
        handoff_min_seconds: Lower bound of the rotation overlap window
        handoff_max_seconds: Upper bound of the rotation overlap window
        connect_grace_seconds: Age under which a connecting session counts as healthy
        presence_yield_seconds: Hold after yielding to a human before rejoining
        backoff_multiplier: Growth factor applied to retry delays per failure
        max_backoff_seconds: Ceiling for grown retry delays
    """

    model_config = SettingsConfigDict(
        env_prefix="AFKWARDEN_SUPERVISOR__",
        extra="forbid",
    )

    watchdog_interval_seconds: float = Field(default=5.0, gt=0, le=300)
    liveness_timeout_seconds: float = Field(default=10.0, gt=0, le=3600)
    presence_interval_seconds: float = Field(default=5.0, gt=0, le=300)
    heartbeat_interval_seconds: float = Field(default=60.0, gt=0, le=3600)
    reconnect_delay_seconds: float = Field(default=2.0, ge=0, le=600)
    retry_delay_seconds: float = Field(default=5.0, ge=0, le=600)
    max_failures: int = Field(default=10, ge=1, le=1000)
    rotation_min_minutes: float = Field(default=60.0, gt=0, le=1440)
    rotation_max_minutes: float = Field(default=120.0, gt=0, le=1440)
    handoff_min_seconds: float = Field(default=5.0, ge=0, le=300)
    handoff_max_seconds: float = Field(default=10.0, ge=0, le=300)
    connect_grace_seconds: float = Field(default=10.0, ge=0, le=600)
    presence_yield_seconds: float = Field(default=30.0, ge=0, le=3600)
    backoff_multiplier: float = Field(default=1.0, ge=1.0, le=10.0)
    max_backoff_seconds: float = Field(default=60.0, ge=1.0, le=3600)

    @model_validator(mode="after")
    def validate_ranges(self) -> SupervisorConfig:
        """Validate that every randomized range is ordered."""
        if self.rotation_max_minutes < self.rotation_min_minutes:
            raise ValueError("rotation_max_minutes must be >= rotation_min_minutes")
        if self.handoff_max_seconds < self.handoff_min_seconds:
            raise ValueError("handoff_max_seconds must be >= handoff_min_seconds")
        return self


class LoggingConfig(BaseSettings):
    """Logging configuration.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Log format (plain, console or json)
        file: Append-only log file path (None for console only)
        rotation_size_mb: Log file rotation size in megabytes
        retention_count: Number of rotated log files to keep
    """

    model_config = SettingsConfigDict(
        env_prefix="AFKWARDEN_LOGGING__",
        extra="forbid",
    )

    level: str = Field(default="INFO")
    format: str = Field(default="plain")
    file: Path | None = Field(default=Path("bot.log"))
    rotation_size_mb: int = Field(default=10, ge=1, le=1000)
    retention_count: int = Field(default=5, ge=1, le=100)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level is recognized."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format is recognized."""
        valid_formats = {"plain", "console", "json"}
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Invalid log format: {v}. Must be one of {valid_formats}")
        return v_lower


class WebConfig(BaseSettings):
    """Health-check web server configuration.

    Attributes:
        host: Bind host address
        port: Bind port number (PORT environment variable)
        root_message: Static body served on GET /
    """

    model_config = SettingsConfigDict(
        env_prefix="AFKWARDEN_WEB__",
        extra="forbid",
        populate_by_name=True,
    )

    host: str = Field(default="0.0.0.0")
    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        validation_alias=AliasChoices("port", "PORT", "AFKWARDEN_WEB__PORT"),
    )
    root_message: str = Field(default="Bot has arrived")


class WardenConfig(BaseSettings):
    """Root configuration for afkwarden.

    Aggregates all subsystem configurations. Environment variable format for
    nested config:
        AFKWARDEN_<SECTION>__<KEY>=value

    Attributes:
        server: Game server connection settings
        supervisor: Lifecycle timings and thresholds
        logging: Logging settings
        web: Health-check server settings
        client_factory: Import path ("module:callable") of the game client factory
    """

    model_config = SettingsConfigDict(
        env_prefix="AFKWARDEN_",
        env_nested_delimiter="__",
        extra="forbid",
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    supervisor: SupervisorConfig = Field(default_factory=SupervisorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    client_factory: str | None = Field(default=None)


def _fold_server_keys(data: dict[str, Any]) -> dict[str, Any]:
    """Move the flat historical server keys into the ``server`` section."""
    folded = dict(data)
    server = dict(folded.pop("server", None) or {})
    for key in SERVER_KEYS:
        if key in folded:
            server[key] = folded.pop(key)
    if server:
        folded["server"] = server
    return folded


def load_config(config_path: Path | None = None) -> WardenConfig:
    """Load configuration from a JSON file with environment variable overrides.

    Configuration search order (first found is used):
    1. config_path if explicitly provided
    2. ./config.json (current directory)
    3. ~/.config/afkwarden/config.json (user config directory)

    Args:
        config_path: Explicit path to JSON config file. If None, searches
                    default locations.

    Returns:
        WardenConfig: Fully resolved configuration instance.

    Raises:
        FileNotFoundError: If config_path is explicitly provided but doesn't exist.
        ValueError: If the JSON file is malformed or contains invalid configuration.
    """
    json_data: dict[str, Any] = {}

    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        selected_path: Path | None = config_path
    else:
        search_paths = [
            Path.cwd() / "config.json",
            Path.home() / ".config" / "afkwarden" / "config.json",
        ]
        selected_path = None
        for path in search_paths:
            if path.exists():
                selected_path = path
                break

    if selected_path is not None:
        try:
            with open(selected_path, encoding="utf-8") as f:
                json_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Malformed JSON in {selected_path}: {e}") from e
        if not isinstance(json_data, dict):
            raise ValueError(f"Configuration in {selected_path} must be a JSON object")

    try:
        return WardenConfig(**_fold_server_keys(json_data))
    except Exception as e:
        if selected_path:
            raise ValueError(f"Invalid configuration in {selected_path}: {e}") from e
        raise ValueError(f"Invalid configuration: {e}") from e
