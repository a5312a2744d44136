"""
core/handshake.py — OBS WebSocket 5.x identification state machine.

    connecting ──Hello/Identify sent──▶ awaiting_auth ──Identified──▶ authenticated
         │                                   │                             │
         └──────────────────── transport closed ──────────────────────────┴──▶ closed

Runs synchronously inside the transport callbacks. There are no timers and no
retries here: a session that never reaches authenticated is replaced by the
health monitor.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from . import protocol
from .errors import ProtocolParseError
from .protocol import OpCode

log = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    CONNECTING = "connecting"
    AWAITING_AUTH = "awaiting_auth"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


_ORDER = {
    SessionStatus.CONNECTING: 0,
    SessionStatus.AWAITING_AUTH: 1,
    SessionStatus.AUTHENTICATED: 2,
    SessionStatus.CLOSED: 3,
}


class Handshake:
    def __init__(
        self,
        context: str,
        credential: str,
        send: Callable[[str], None],
        on_status: Optional[Callable[[SessionStatus], None]] = None,
    ):
        self.context = context
        self.status = SessionStatus.CONNECTING
        self.last_error: Optional[Exception] = None
        self.rpc_version: Optional[int] = None

        self._credential = credential or ""
        self._send = send
        self._on_status = on_status

    # ── Transport events ──────────────────────────────────────────────

    def handle_open(self) -> None:
        log.info(f"[{self.context}] OBS WebSocket opened")

    def handle_message(self, raw: str) -> None:
        try:
            envelope = protocol.parse_envelope(raw)
            if envelope.op == OpCode.HELLO:
                self._on_hello(protocol.parse_hello(envelope))
            elif envelope.op == OpCode.IDENTIFIED:
                self._on_identified()
            elif envelope.op == OpCode.EVENT:
                log.debug(f"[{self.context}] OBS event: {envelope.d.get('eventType', '?')}")
            elif envelope.op == OpCode.REQUEST_RESPONSE:
                self._on_request_response(protocol.parse_request_response(envelope))
            else:
                log.debug(f"[{self.context}] ignoring OBS op {envelope.op}")
        except ProtocolParseError as e:
            log.warning(f"[{self.context}] dropped OBS message: {e}")

    def handle_error(self, error: Exception) -> None:
        self.last_error = error
        log.warning(f"[{self.context}] OBS WebSocket error: {error}")

    def handle_close(self) -> None:
        log.info(f"[{self.context}] OBS WebSocket closed")
        self._transition(SessionStatus.CLOSED)

    def mark_closed(self) -> None:
        """Close locally without notifying: the owner is discarding the session."""
        self.status = SessionStatus.CLOSED

    # ── Message handlers ──────────────────────────────────────────────

    def _on_hello(self, hello: protocol.Hello) -> None:
        if self.status is not SessionStatus.CONNECTING:
            log.debug(f"[{self.context}] duplicate Hello while {self.status.value}, ignored")
            return
        self.rpc_version = hello.rpcVersion

        if hello.authentication is not None and self._credential:
            response = protocol.auth_response(
                self._credential,
                hello.authentication.salt,
                hello.authentication.challenge,
            )
            log.info(f"[{self.context}] Sending Identify with authentication")
            self._send(protocol.identify(hello.rpcVersion, response))
        else:
            if hello.auth_required:
                log.warning(f"[{self.context}] OBS requires a password but none is configured")
            log.info(f"[{self.context}] Sending Identify without authentication")
            self._send(protocol.identify(hello.rpcVersion))

        self._transition(SessionStatus.AWAITING_AUTH)

    def _on_identified(self) -> None:
        if self._transition(SessionStatus.AUTHENTICATED):
            log.info(f"[{self.context}] Successfully authenticated with OBS")

    def _on_request_response(self, response: protocol.RequestResponse) -> None:
        status = response.requestStatus
        if status.result:
            log.debug(f"[{self.context}] {response.requestType} #{response.requestId} ok")
        else:
            log.warning(
                f"[{self.context}] {response.requestType} #{response.requestId} failed "
                f"({status.code}): {status.comment}"
            )

    def _transition(self, target: SessionStatus) -> bool:
        if _ORDER[target] <= _ORDER[self.status]:
            return False
        self.status = target
        if self._on_status is not None:
            self._on_status(target)
        return True
