"""config — Settings, env loading, YAML config."""
from .settings import APISettings, HostSettings, OBSSettings, Settings, get_settings, reload_settings

__all__ = ["APISettings", "HostSettings", "OBSSettings", "Settings", "get_settings", "reload_settings"]
