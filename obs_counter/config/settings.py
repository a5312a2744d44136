"""
config/settings.py — Central configuration via env vars + YAML override.

Priority: ENV > config.yaml > defaults
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from obs_counter.core.errors import ConfigurationError
from obs_counter.core.models import DEFAULT_TARGET_FIELD, DEFAULT_URL, ContextDefaults


class _Section(BaseSettings):
    """Env vars win over values passed in from config.yaml."""

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        return env_settings, init_settings, dotenv_settings, file_secret_settings


class OBSSettings(_Section):
    default_url: str = Field(DEFAULT_URL, description="WebSocket URL for buttons without one")
    default_password: str = Field("", description="OBS WebSocket password for buttons without one")
    default_text_source: str = Field(DEFAULT_TARGET_FIELD, description="OBS text input for buttons without one")
    health_interval: float = Field(12.0, ge=1.0, description="Seconds between session health sweeps")
    open_timeout: float = Field(5.0, gt=0, description="Seconds to wait for the WebSocket to open")
    unknown_indicator: str = Field("?", description="Button title while OBS is not authenticated")

    model_config = SettingsConfigDict(env_prefix="OBS_")

    def context_defaults(self) -> ContextDefaults:
        return ContextDefaults(
            url=self.default_url,
            credential=self.default_password,
            target_field=self.default_text_source,
        )


class HostSettings(_Section):
    host: str = Field("127.0.0.1", description="Device host WebSocket address")
    port: Optional[int] = Field(None, description="Device host WebSocket port (passed by the host as -port)")
    plugin_uuid: str = Field("", description="Plugin registration UUID (-pluginUUID)")
    register_event: str = Field("registerPlugin", description="Registration event name (-registerEvent)")
    action_uuid: str = Field("com.linkit.streamerdeck.counter.counter", description="Counter action UUID")
    long_press_sec: float = Field(3.0, gt=0, description="Hold time that resets a counter")

    model_config = SettingsConfigDict(env_prefix="HOST_")

    @property
    def url(self) -> str:
        if self.port is None:
            raise ConfigurationError("device host port is not set (-port)")
        return f"ws://{self.host}:{self.port}"


class APISettings(_Section):
    enabled: bool = Field(False, description="Serve the status API")
    host: str = Field("127.0.0.1", description="API server bind host")
    port: int = Field(8090, description="API server port")
    log_level: str = Field("info", description="Log level")
    log_file: Optional[Path] = Field(None, description="Also write logs to this file")

    model_config = SettingsConfigDict(env_prefix="API_")


class Settings(BaseSettings):
    obs: OBSSettings = Field(default_factory=OBSSettings)
    host: HostSettings = Field(default_factory=HostSettings)
    api: APISettings = Field(default_factory=APISettings)
    config_file: Path = Field(Path("config.yaml"), description="Path to YAML config file")

    model_config = SettingsConfigDict(env_prefix="COUNTER_")

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        """Load settings, merging YAML file if present."""
        path = config_path or Path(os.environ.get("COUNTER_CONFIG_FILE", "config.yaml"))
        yaml_data: dict = {}

        if path.exists():
            try:
                with open(path) as f:
                    yaml_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"invalid config file {path}: {e}") from e
            if not isinstance(yaml_data, dict):
                raise ConfigurationError(f"invalid config file {path}: expected a mapping")

        # Build sub-settings from YAML + env (env takes priority via pydantic-settings)
        obs = OBSSettings(**(yaml_data.get("obs") or {}))
        host = HostSettings(**(yaml_data.get("host") or {}))
        api = APISettings(**(yaml_data.get("api") or {}))

        return cls(obs=obs, host=host, api=api, config_file=path)

    def to_yaml(self, path: Path) -> None:
        """Save current settings to YAML."""
        data = {
            "obs": self.obs.model_dump(),
            "host": self.host.model_dump(exclude={"port", "plugin_uuid"}),
            "api": {
                **self.api.model_dump(exclude={"log_file"}),
                "log_file": str(self.api.log_file) if self.api.log_file else None,
            },
        }
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


# Singleton accessor — call get_settings() anywhere in the app
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reload_settings(config_path: Optional[Path] = None) -> Settings:
    global _settings
    _settings = Settings.load(config_path)
    return _settings
