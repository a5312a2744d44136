"""
core/transport.py — One duplex WebSocket connection with callback-style events.

The transport knows nothing about OBS. It reports lifecycle to a listener:

    on_open()            socket connected
    on_message(text)     one inbound frame, in receipt order
    on_error(exc)        TransportError; always followed by on_close()
    on_close()           delivered exactly once per transport

send() never raises: frames sent before the socket is open, or after it has
closed, are dropped. Callers check readiness through is_open.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Optional, Protocol

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .errors import TransportError

log = logging.getLogger(__name__)


class TransportListener(Protocol):
    def on_open(self) -> None: ...
    def on_message(self, text: str) -> None: ...
    def on_error(self, error: Exception) -> None: ...
    def on_close(self) -> None: ...


class Transport(Protocol):
    url: str

    @property
    def is_open(self) -> bool: ...
    def open(self) -> None: ...
    def send(self, text: str) -> None: ...
    def close(self) -> None: ...


TransportFactory = Callable[[str, TransportListener], Transport]


class TransportState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class WebSocketTransport:
    def __init__(
        self,
        url: str,
        listener: TransportListener,
        open_timeout: float = 5.0,
    ):
        self.url = url
        self.open_timeout = open_timeout
        self.state = TransportState.IDLE

        self._listener = listener
        self._ws: Optional[Any] = None
        self._task: Optional[asyncio.Task] = None
        self._close_task: Optional[asyncio.Task] = None
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        self._close_notified = False

    @property
    def is_open(self) -> bool:
        return self.state is TransportState.OPEN

    # ── Lifecycle ─────────────────────────────────────────────────────

    def open(self) -> None:
        if self.state is not TransportState.IDLE:
            return
        self.state = TransportState.CONNECTING
        self._task = asyncio.get_running_loop().create_task(self._run())
        # a task cancelled before its first step never enters _run's finally
        self._task.add_done_callback(self._task_done)

    def close(self) -> None:
        if self.state in (TransportState.CLOSING, TransportState.CLOSED):
            return
        if self.state is TransportState.IDLE:
            self.state = TransportState.CLOSED
            return
        self.state = TransportState.CLOSING
        if self._ws is not None:
            self._close_task = asyncio.get_running_loop().create_task(self._ws.close())
        elif self._task is not None:
            self._task.cancel()

    def send(self, text: str) -> None:
        if not self.is_open:
            log.debug(f"[{self.url}] send skipped, transport is {self.state.value}")
            return
        self._outbox.put_nowait(text)

    # ── Connection task ───────────────────────────────────────────────

    async def _run(self) -> None:
        writer: Optional[asyncio.Task] = None
        try:
            async with websockets.connect(self.url, open_timeout=self.open_timeout) as ws:
                self._ws = ws
                if self.state is TransportState.CLOSING:
                    return
                self.state = TransportState.OPEN
                self._emit(self._listener.on_open)
                writer = asyncio.create_task(self._write_loop(ws))
                async for frame in ws:
                    if isinstance(frame, (bytes, bytearray)):
                        frame = bytes(frame).decode("utf-8", errors="replace")
                    self._emit(self._listener.on_message, frame)
        except asyncio.CancelledError:
            log.debug(f"[{self.url}] connect cancelled")
        except (OSError, asyncio.TimeoutError, WebSocketException, ValueError) as e:
            if self.state is not TransportState.CLOSING:
                self._emit(self._listener.on_error, TransportError(self.url, str(e) or type(e).__name__))
        finally:
            if writer is not None:
                writer.cancel()
            self._ws = None
            self.state = TransportState.CLOSED
            self._notify_closed()

    async def _write_loop(self, ws: Any) -> None:
        try:
            while True:
                text = await self._outbox.get()
                await ws.send(text)
        except ConnectionClosed:
            # the reader sees the same close and reports it
            pass

    def _task_done(self, task: asyncio.Task) -> None:
        self._ws = None
        self.state = TransportState.CLOSED
        self._notify_closed()

    def _notify_closed(self) -> None:
        if self._close_notified:
            return
        self._close_notified = True
        self._emit(self._listener.on_close)

    def _emit(self, callback: Callable, *args) -> None:
        try:
            callback(*args)
        except Exception as e:
            log.error(f"[{self.url}] transport listener error: {e}", exc_info=True)


def open_websocket(url: str, listener: TransportListener, open_timeout: float = 5.0) -> WebSocketTransport:
    """Default TransportFactory: build and start a WebSocketTransport."""
    transport = WebSocketTransport(url, listener, open_timeout=open_timeout)
    transport.open()
    return transport
