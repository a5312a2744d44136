"""
host/counter.py — The counter button: host events → config cache → OBS sessions.

  willAppear / didReceiveSettings   cache settings, reconcile the OBS session
  willDisappear                     drop the context and close its session
  keyDown / keyUp                   short press increments, long press resets
  sendToPlugin {updateCount}        value typed into the inspector
  propertyInspectorDid(Dis)Appear   whether value updates go to the inspector

Every value change is persisted back to the host with the full settings
object, so OBS fields survive value-only updates.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from obs_counter.core import ConnectionRegistry, ContextConfig, ContextDefaults
from obs_counter.core.models import parse_count
from obs_counter.display import DisplayNotifier

log = logging.getLogger(__name__)

LONG_PRESS_SEC = 3.0


class CounterAction:
    def __init__(
        self,
        registry: ConnectionRegistry,
        notifier: DisplayNotifier,
        host: Any,
        defaults: Optional[ContextDefaults] = None,
        long_press_sec: float = LONG_PRESS_SEC,
    ):
        self._registry = registry
        self._notifier = notifier
        self._host = host
        self.defaults = defaults or ContextDefaults()
        self.long_press_sec = long_press_sec

    def register(self, bridge: Any) -> None:
        """Subscribe every handler to a HostBridge."""
        bridge.on("willAppear", self._event(self.will_appear))
        bridge.on("didReceiveSettings", self._event(self.did_receive_settings))
        bridge.on("willDisappear", self._event(self.will_disappear))
        bridge.on("keyDown", self._event(self.key_down))
        bridge.on("keyUp", self._event(self.key_up))
        bridge.on("sendToPlugin", self._event(self.send_to_plugin))
        bridge.on("propertyInspectorDidAppear", self._event(self.inspector_did_appear))
        bridge.on("propertyInspectorDidDisappear", self._event(self.inspector_did_disappear))

    @staticmethod
    def _event(handler):
        def dispatch(message: dict) -> None:
            context = message.get("context")
            if not context:
                log.warning(f"{message.get('event')} without context, ignored")
                return
            handler(context, message.get("payload") or {})
        return dispatch

    # ── Lifecycle ─────────────────────────────────────────────────────

    def will_appear(self, context: str, payload: Optional[dict] = None) -> None:
        settings = (payload or {}).get("settings") or {}
        log.info(f"[{context}] willAppear")
        config = ContextConfig.from_settings(settings, defaults=self.defaults)
        self._registry.add(context, config)
        self._registry.reconcile(context)
        self._notifier.update(context)

    def did_receive_settings(self, context: str, payload: Optional[dict] = None) -> None:
        settings = (payload or {}).get("settings") or {}
        log.info(f"[{context}] didReceiveSettings")
        config = ContextConfig.from_settings(
            settings, previous=self._registry.config(context), defaults=self.defaults
        )
        self._registry.reconcile(context, config)
        self._notifier.update(context)

    def will_disappear(self, context: str, payload: Optional[dict] = None) -> None:
        log.info(f"[{context}] willDisappear")
        self._registry.remove(context)

    # ── Keys ──────────────────────────────────────────────────────────

    def key_down(self, context: str, payload: Optional[dict] = None) -> None:
        record = self._registry.record(context)
        if record is None:
            return
        record.cancel_press_timer()
        loop = asyncio.get_running_loop()
        record.press_timer = loop.call_later(self.long_press_sec, self._long_press, context)

    def key_up(self, context: str, payload: Optional[dict] = None) -> None:
        record = self._registry.record(context)
        if record is None or record.press_timer is None:
            return
        record.cancel_press_timer()
        self.set_value(context, record.config.value + 1)
        log.info(f"[{context}] Counter incremented to {record.config.value}")

    def _long_press(self, context: str) -> None:
        record = self._registry.record(context)
        if record is None:
            return
        record.press_timer = None
        log.info(f"[{context}] Long press - resetting counter")
        self.set_value(context, 0, show_ok=True)

    # ── Inspector ─────────────────────────────────────────────────────

    def send_to_plugin(self, context: str, payload: Optional[dict] = None) -> None:
        payload = payload or {}
        if payload.get("action") != "updateCount":
            log.debug(f"[{context}] ignoring inspector message {payload.get('action')!r}")
            return
        value = parse_count(payload.get("count"))
        log.info(f"[{context}] Count updated from inspector: {value}")
        self.set_value(context, value)

    def inspector_did_appear(self, context: str, payload: Optional[dict] = None) -> None:
        record = self._registry.record(context)
        if record is None:
            return
        record.inspector_attached = True
        self._host.send_to_inspector(context, {"action": "updateCount", "count": record.config.value})

    def inspector_did_disappear(self, context: str, payload: Optional[dict] = None) -> None:
        record = self._registry.record(context)
        if record is not None:
            record.inspector_attached = False

    # ── Value ─────────────────────────────────────────────────────────

    def set_value(self, context: str, value: int, show_ok: bool = False) -> None:
        config = self._registry.config(context)
        if config is None:
            return
        config = config.with_value(value)
        self._registry.update_config(context, config)
        self._host.set_settings(context, config.to_settings())
        if show_ok:
            self._host.show_ok(context)
        self._notifier.update(context)
