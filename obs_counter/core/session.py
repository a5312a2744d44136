"""
core/session.py — One OBS connection attempt bound to one button context.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .handshake import Handshake, SessionStatus
from .transport import Transport, TransportFactory

log = logging.getLogger(__name__)

StatusCallback = Callable[["Session", SessionStatus], None]


class Session:
    """
    Owns a Transport and the Handshake driving it.

    The session is the transport's listener; status transitions are forwarded
    to `on_status` with the session itself so the owner can tell a current
    session apart from one it has already discarded.
    """

    def __init__(
        self,
        context: str,
        url: str,
        target_field: str,
        credential: str,
        transport_factory: TransportFactory,
        on_status: Optional[StatusCallback] = None,
    ):
        self.context = context
        self.url = url
        self.target_field = target_field
        self._on_status = on_status
        self.handshake = Handshake(
            context,
            credential,
            send=self.send,
            on_status=self._status_changed,
        )
        self.transport: Optional[Transport] = None
        self._transport_factory = transport_factory

    def start(self) -> "Session":
        log.info(f"[{self.context}] Connecting to OBS: {self.url}")
        self.transport = self._transport_factory(self.url, self)
        return self

    @property
    def status(self) -> SessionStatus:
        return self.handshake.status

    @property
    def last_error(self) -> Optional[Exception]:
        return self.handshake.last_error

    @property
    def is_authenticated(self) -> bool:
        return self.status is SessionStatus.AUTHENTICATED

    @property
    def is_open(self) -> bool:
        return self.transport is not None and self.transport.is_open

    def send(self, text: str) -> None:
        if self.transport is not None:
            self.transport.send(text)

    def close(self) -> None:
        self.handshake.mark_closed()
        if self.transport is not None:
            self.transport.close()

    # ── TransportListener ─────────────────────────────────────────────

    def on_open(self) -> None:
        self.handshake.handle_open()

    def on_message(self, text: str) -> None:
        self.handshake.handle_message(text)

    def on_error(self, error: Exception) -> None:
        self.handshake.handle_error(error)

    def on_close(self) -> None:
        self.handshake.handle_close()

    def _status_changed(self, status: SessionStatus) -> None:
        if self._on_status is not None:
            self._on_status(self, status)

    def __repr__(self) -> str:
        return f"<Session {self.context} {self.url} {self.status.value}>"
