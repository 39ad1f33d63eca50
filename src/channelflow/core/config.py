# src/channelflow/core/config.py
"""
Configuration schema and loading for channelflow.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

# Node data keys stripped before a channel is persisted locally.
DEFAULT_SENSITIVE_FIELDS: tuple[str, ...] = (
    "password",
    "apiKey",
    "token",
    "secret",
    "connectionString",
    "credentials",
)


class PositionSettings(BaseModel):
    """A canvas coordinate used for node placement defaults."""

    model_config = {"frozen": True}

    x: float = Field(default=0.0, description="Horizontal canvas coordinate")
    y: float = Field(default=0.0, description="Vertical canvas coordinate")


class DefaultsSettings(BaseModel):
    """Fallback values applied when a document or caller leaves them out.

    Example YAML:
        defaults:
          channel_name: Admissions
          max_retries: 5
          duplicate_offset: {x: 40, y: 40}
    """

    model_config = {"frozen": True}

    channel_name: str = Field(default="My Channel", description="Name for channels loaded without one")
    imported_channel_name: str = Field(default="Imported Channel", description="Name for imported documents without one")
    export_name: str = Field(default="channelflow Workflow", description="Document 'name' when the channel has no name")
    max_retries: int = Field(default=3, ge=0, description="Delivery retries when a document does not specify them")
    node_position: PositionSettings = Field(
        default_factory=lambda: PositionSettings(x=300.0, y=200.0),
        description="Where add_node() places nodes when no position is given",
    )
    duplicate_offset: PositionSettings = Field(
        default_factory=lambda: PositionSettings(x=50.0, y=50.0),
        description="Offset applied to duplicated nodes",
    )


class PersistenceSettings(BaseModel):
    """Local persistence behavior."""

    model_config = {"frozen": True}

    sensitive_fields: tuple[str, ...] = Field(
        default=DEFAULT_SENSITIVE_FIELDS,
        description="Node data keys removed before persisting a channel",
    )

    @field_validator("sensitive_fields")
    @classmethod
    def validate_field_names(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Reject blank entries; they would silently strip nothing."""
        for i, name in enumerate(v):
            if not name.strip():
                raise ValueError(f"sensitive_fields[{i}] must be a non-empty field name")
        return v


class LoggingSettings(BaseModel):
    """Logging output configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO", description="Root log level")
    json_output: bool = Field(default=False, description="Emit JSON log lines instead of console output")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v


class ChannelFlowSettings(BaseModel):
    """Top-level channelflow configuration.

    Every section has defaults, so ``ChannelFlowSettings()`` is a valid
    configuration and a settings file only needs the keys it changes.
    """

    model_config = {"frozen": True}

    defaults: DefaultsSettings = Field(default_factory=DefaultsSettings, description="Fallback values")
    persistence: PersistenceSettings = Field(default_factory=PersistenceSettings, description="Local persistence")
    logging: LoggingSettings = Field(default_factory=LoggingSettings, description="Logging output")


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded
    """
    import os

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default = match.group(2)
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default is not None:
                return default
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lower_keys(value: Any) -> Any:
    """Dynaconf upper-cases keys; pydantic fields are lower-case."""
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_lower_keys(item) for item in value]
    return value


def load_settings(config_path: Path) -> ChannelFlowSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (CHANNELFLOW_*) - highest priority
    2. Config file
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: CHANNELFLOW_DEFAULTS__MAX_RETRIES for nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated ChannelFlowSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="CHANNELFLOW",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): _lower_keys(v) for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    raw_config = _expand_env_vars(raw_config)

    return ChannelFlowSettings(**raw_config)
