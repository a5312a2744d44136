"""
host/bridge.py — WebSocket client for the device host (Stream Deck-style SDK).

The host launches the plugin with:

    -port 28196 -pluginUUID <uuid> -registerEvent registerPlugin -info '{...}'

The plugin connects to ws://127.0.0.1:<port>, registers with
{"event": <registerEvent>, "uuid": <pluginUUID>} and then receives one JSON
object per host event:

    {"event": "willAppear", "action": "...", "context": "...", "payload": {...}}

Outbound commands use the same envelope (setTitle, setSettings,
sendToPropertyInspector, showOk). Commands issued before registration are
queued and flushed in order once the socket is up.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from typing import Any, Callable, Optional, Protocol

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from obs_counter.core.errors import TransportError

log = logging.getLogger(__name__)

HostHandler = Callable[[dict], Any]


class DeviceHost(Protocol):
    def set_title(self, context: str, title: str) -> None: ...
    def set_settings(self, context: str, settings: dict) -> None: ...
    def send_to_inspector(self, context: str, payload: dict) -> None: ...
    def show_ok(self, context: str) -> None: ...


class HostBridge:
    def __init__(
        self,
        url: str,
        plugin_uuid: str,
        register_event: str = "registerPlugin",
        action_uuid: str = "",
    ):
        self.url = url
        self.plugin_uuid = plugin_uuid
        self.register_event = register_event
        self.action_uuid = action_uuid

        self._ws: Optional[Any] = None
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        self._handlers: dict[str, list[HostHandler]] = defaultdict(list)

    # ── Event subscriptions ───────────────────────────────────────────

    def on(self, event: str, handler: HostHandler) -> None:
        self._handlers[event].append(handler)

    def is_connected(self) -> bool:
        return self._ws is not None

    # ── DeviceHost ────────────────────────────────────────────────────

    def set_title(self, context: str, title: str) -> None:
        self._send({"event": "setTitle", "context": context, "payload": {"title": title, "target": 0}})

    def set_settings(self, context: str, settings: dict) -> None:
        self._send({"event": "setSettings", "context": context, "payload": settings})

    def send_to_inspector(self, context: str, payload: dict) -> None:
        self._send({
            "event": "sendToPropertyInspector",
            "action": self.action_uuid,
            "context": context,
            "payload": payload,
        })

    def show_ok(self, context: str) -> None:
        self._send({"event": "showOk", "context": context})

    def _send(self, message: dict) -> None:
        self._outbox.put_nowait(json.dumps(message))

    # ── Connection ────────────────────────────────────────────────────

    async def run(self) -> None:
        """Connect, register and dispatch host events until the host goes away."""
        log.info(f"Connecting to device host at {self.url}")
        try:
            async with websockets.connect(self.url) as ws:
                await ws.send(json.dumps({"event": self.register_event, "uuid": self.plugin_uuid}))
                self._ws = ws
                log.info("Registered with device host")
                writer = asyncio.create_task(self._write_loop(ws))
                try:
                    async for raw in ws:
                        self.dispatch(raw)
                finally:
                    writer.cancel()
        except ConnectionClosed as e:
            log.warning(f"Device host connection closed: {e}")
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise TransportError(self.url, str(e) or type(e).__name__) from e
        finally:
            self._ws = None
        log.info("Device host disconnected")

    async def _write_loop(self, ws: Any) -> None:
        try:
            while True:
                text = await self._outbox.get()
                await ws.send(text)
        except ConnectionClosed:
            pass

    def dispatch(self, raw: Any) -> None:
        if isinstance(raw, (bytes, bytearray)):
            raw = bytes(raw).decode("utf-8", errors="replace")
        try:
            message = json.loads(raw)
        except ValueError as e:
            log.warning(f"Dropped malformed host message: {e}")
            return
        if not isinstance(message, dict) or not isinstance(message.get("event"), str):
            log.warning(f"Dropped host message without event: {raw!r:.200}")
            return

        event = message["event"]
        handlers = self._handlers.get(event)
        if not handlers:
            log.debug(f"Unhandled host event: {event}")
            return
        for handler in handlers:
            try:
                handler(message)
            except Exception as e:
                log.error(f"Host event '{event}' handler error: {e}", exc_info=True)
