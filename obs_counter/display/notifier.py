"""
display/notifier.py — Pushes a context's value to every surface that shows it.

Surfaces:
  - the button title on the device host
  - the OBS text input (best effort, only while authenticated)
  - the settings inspector, when one is open for the context

While a context needs OBS but its session is not authenticated the title shows
the unknown indicator instead of the number, so a stale count is never
mistaken for what OBS is displaying.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from obs_counter.core import ConnectionRegistry, SessionStatus

log = logging.getLogger(__name__)

UNKNOWN_INDICATOR = "?"


@dataclass(frozen=True)
class DisplayState:
    text: str
    value: Optional[int] = None
    status: Optional[SessionStatus] = None


class DisplayNotifier:
    def __init__(
        self,
        registry: ConnectionRegistry,
        host: Any,
        unknown_indicator: str = UNKNOWN_INDICATOR,
    ):
        self._registry = registry
        self._host = host
        self.unknown_indicator = unknown_indicator

    def attach(self) -> None:
        """Refresh every same-URL context when a session authenticates or closes."""
        self._registry.add_status_listener(self.update)

    def render(self, context: str) -> DisplayState:
        config = self._registry.config(context)
        if config is None:
            return DisplayState(self.unknown_indicator)
        status = self._registry.status(context)
        if config.requires_obs and status is not SessionStatus.AUTHENTICATED:
            return DisplayState(self.unknown_indicator, config.value, status)
        return DisplayState(str(config.value), config.value, status)

    def update(self, context: str) -> DisplayState:
        state = self.render(context)
        record = self._registry.record(context)
        if record is None:
            return state

        log.debug(f"[{context}] Updating display: {state.text}")

        try:
            self._host.set_title(context, state.text)
        except Exception as e:
            log.error(f"[{context}] set_title failed: {e}")

        try:
            self._registry.set_target_value(context, record.config.value)
        except Exception as e:
            log.warning(f"[{context}] OBS text update failed: {e}")

        if record.inspector_attached:
            try:
                self._host.send_to_inspector(
                    context, {"action": "updateCount", "count": record.config.value}
                )
            except Exception as e:
                log.error(f"[{context}] inspector update failed: {e}")

        return state
