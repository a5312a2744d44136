"""
core/models.py — Per-context configuration as delivered by the device host.

The host persists a flat settings object per button:

    {"count": 5, "obsEnabled": true, "obsWebSocketUrl": "ws://localhost:4455",
     "obsWebSocketPassword": "", "obsTextSourceName": "CounterText"}

ContextConfig is the typed view of that object. A fresh copy is built on every
settings delivery, merged over the previous copy so a partial payload never
drops the URL, credential or enabled flag.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional

DEFAULT_URL = "ws://localhost:4455"
DEFAULT_TARGET_FIELD = "CounterText"


@dataclass(frozen=True)
class ContextDefaults:
    """Fallbacks used when neither the payload nor the cache has a field."""
    url: str = DEFAULT_URL
    credential: str = ""
    target_field: str = DEFAULT_TARGET_FIELD


@dataclass(frozen=True)
class ContextConfig:
    enabled: bool = False
    url: str = DEFAULT_URL
    credential: str = ""
    target_field: str = DEFAULT_TARGET_FIELD
    value: int = 0

    @property
    def requires_obs(self) -> bool:
        """True when the context should hold an authenticated OBS session."""
        return self.enabled and bool(self.url) and bool(self.target_field)

    def with_value(self, value: int) -> "ContextConfig":
        return replace(self, value=value)

    def to_settings(self) -> dict:
        return {
            "count": self.value,
            "obsEnabled": self.enabled,
            "obsWebSocketUrl": self.url,
            "obsWebSocketPassword": self.credential,
            "obsTextSourceName": self.target_field,
        }

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Mapping[str, Any]],
        previous: Optional["ContextConfig"] = None,
        defaults: Optional[ContextDefaults] = None,
    ) -> "ContextConfig":
        """
        Merge a host settings payload over the cached config.

        count / obsEnabled / obsWebSocketPassword keep an explicit falsy value
        from the payload; URL and source name treat an empty string as unset.
        """
        settings = settings or {}
        defaults = defaults or ContextDefaults()
        prev = previous or cls(
            url=defaults.url,
            credential=defaults.credential,
            target_field=defaults.target_field,
        )

        count = settings.get("count")
        enabled = settings.get("obsEnabled")
        password = settings.get("obsWebSocketPassword")

        return cls(
            enabled=bool(enabled) if enabled is not None else prev.enabled,
            url=settings.get("obsWebSocketUrl") or prev.url or defaults.url,
            credential=str(password) if password is not None else prev.credential,
            target_field=(
                settings.get("obsTextSourceName") or prev.target_field or defaults.target_field
            ),
            value=parse_count(count) if count is not None else prev.value,
        )


def parse_count(raw: Any) -> int:
    """Lenient integer parse; anything unparseable counts as 0."""
    if isinstance(raw, bool):
        return 0
    try:
        return int(raw)
    except (TypeError, ValueError, OverflowError):
        pass
    try:
        return int(float(raw))
    except (TypeError, ValueError, OverflowError):
        return 0
