"""
core/registry.py — Per-context records, OBS session ownership and reconciliation.

The registry is the only shared mutable structure in the process. For each
button context it keeps:

  - the last ContextConfig delivered by the host (or produced locally)
  - at most one live Session
  - UI bookkeeping the host layer hangs off the context (inspector flag,
    pending long-press timer)

plus a secondary index url → {contexts} used to fan status changes out to
every button pointing at the same OBS instance.

All calls happen on the event loop thread; transport callbacks arrive on the
same loop, so no locking is needed.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Optional

from . import protocol
from .handshake import SessionStatus
from .models import ContextConfig
from .session import Session
from .transport import TransportFactory, open_websocket

log = logging.getLogger(__name__)

StatusListener = Callable[[str], None]
ActivityListener = Callable[[bool], None]


@dataclass
class ContextRecord:
    context: str
    config: ContextConfig
    session: Optional[Session] = None
    inspector_attached: bool = False
    press_timer: Optional[asyncio.TimerHandle] = None

    def cancel_press_timer(self) -> None:
        if self.press_timer is not None:
            self.press_timer.cancel()
            self.press_timer = None


class ConnectionRegistry:
    def __init__(self, transport_factory: TransportFactory = open_websocket):
        self._transport_factory = transport_factory
        self._records: dict[str, ContextRecord] = {}
        self._url_index: dict[str, set[str]] = defaultdict(set)
        self._request_ids = itertools.count(1)
        self._status_listeners: list[StatusListener] = []
        self._activity_listeners: list[ActivityListener] = []

    # ── Listeners ─────────────────────────────────────────────────────

    def add_status_listener(self, callback: StatusListener) -> None:
        """Called with each context sharing the URL of a session that authenticated or closed."""
        self._status_listeners.append(callback)

    def add_activity_listener(self, callback: ActivityListener) -> None:
        """Called with True when the first context is added, False when the last is removed."""
        self._activity_listeners.append(callback)

    # ── Records & configs ─────────────────────────────────────────────

    def add(self, context: str, config: ContextConfig) -> ContextRecord:
        record = self._records.get(context)
        if record is not None:
            self.update_config(context, config)
            return record
        record = ContextRecord(context=context, config=config)
        self._records[context] = record
        self._url_index[config.url].add(context)
        if len(self._records) == 1:
            self._emit_activity(True)
        return record

    def update_config(self, context: str, config: ContextConfig) -> None:
        record = self._records.get(context)
        if record is None:
            self.add(context, config)
            return
        if record.config.url != config.url:
            self._unindex(context, record.config.url)
            self._url_index[config.url].add(context)
        record.config = config

    def remove(self, context: str) -> bool:
        record = self._records.pop(context, None)
        if record is None:
            return False
        record.cancel_press_timer()
        self._unindex(context, record.config.url)
        self._close_session(record)
        log.info(f"[{context}] removed")
        if not self._records:
            self._emit_activity(False)
        return True

    def record(self, context: str) -> Optional[ContextRecord]:
        return self._records.get(context)

    def config(self, context: str) -> Optional[ContextConfig]:
        record = self._records.get(context)
        return record.config if record else None

    def session(self, context: str) -> Optional[Session]:
        record = self._records.get(context)
        return record.session if record else None

    def status(self, context: str) -> Optional[SessionStatus]:
        session = self.session(context)
        return session.status if session else None

    def is_authenticated(self, context: str) -> bool:
        session = self.session(context)
        return session is not None and session.is_authenticated

    def contexts(self) -> list[str]:
        return list(self._records)

    def enabled_contexts(self) -> list[str]:
        return [c for c, r in self._records.items() if r.config.enabled]

    def contexts_for_url(self, url: str) -> set[str]:
        return set(self._url_index.get(url, ()))

    def __contains__(self, context: object) -> bool:
        return context in self._records

    def __len__(self) -> int:
        return len(self._records)

    # ── Reconciliation ────────────────────────────────────────────────

    def reconcile(self, context: str, config: Optional[ContextConfig] = None) -> Optional[Session]:
        """
        Bring the context's session in line with its config.

        Opens, replaces or closes the session. A context that is already
        authenticated against the same URL and target field is left alone, so
        repeated calls with unchanged OBS settings cost nothing.
        """
        if config is not None:
            self.update_config(context, config)
        record = self._records.get(context)
        if record is None:
            return None
        cfg = record.config

        if not cfg.requires_obs:
            if record.session is not None:
                log.info(f"[{context}] Disconnecting from OBS")
                self._close_session(record)
            return None

        session = record.session
        if session is not None and not self._needs_replacement(session, cfg):
            return session

        self._close_session(record)
        session = Session(
            context,
            cfg.url,
            cfg.target_field,
            cfg.credential,
            transport_factory=self._transport_factory,
            on_status=self._session_status_changed,
        )
        record.session = session
        try:
            session.start()
        except Exception:
            record.session = None
            raise
        return session

    @staticmethod
    def _needs_replacement(session: Session, cfg: ContextConfig) -> bool:
        return (
            session.target_field != cfg.target_field
            or session.url != cfg.url
            or not session.is_authenticated
            or not session.is_open
        )

    def set_target_value(self, context: str, value: int) -> bool:
        """Push `value` into the context's OBS text input. No-op unless authenticated."""
        session = self.session(context)
        if session is None or not session.is_authenticated or not session.is_open:
            if session is not None:
                log.debug(f"[{context}] OBS not authenticated yet, skipping update")
            return False
        request_id = str(next(self._request_ids))
        session.send(protocol.set_input_text(request_id, session.target_field, str(value)))
        log.debug(f"[{context}] SetInputSettings #{request_id}: {session.target_field} = {value}")
        return True

    def close_all(self) -> None:
        for record in self._records.values():
            self._close_session(record)

    # ── Internals ─────────────────────────────────────────────────────

    def _close_session(self, record: ContextRecord) -> None:
        session, record.session = record.session, None
        if session is None:
            return
        try:
            session.close()
        except Exception as e:
            log.warning(f"[{record.context}] error closing OBS session: {e}")

    def _unindex(self, context: str, url: str) -> None:
        contexts = self._url_index.get(url)
        if contexts is None:
            return
        contexts.discard(context)
        if not contexts:
            del self._url_index[url]

    def _session_status_changed(self, session: Session, status: SessionStatus) -> None:
        record = self._records.get(session.context)
        if record is None or record.session is not session:
            log.debug(f"[{session.context}] late {status.value} from a discarded session, ignored")
            return
        if status not in (SessionStatus.AUTHENTICATED, SessionStatus.CLOSED):
            return
        for context in sorted(self.contexts_for_url(record.config.url)):
            for callback in self._status_listeners:
                try:
                    callback(context)
                except Exception as e:
                    log.error(f"[{context}] status listener error: {e}", exc_info=True)

    def _emit_activity(self, active: bool) -> None:
        for callback in self._activity_listeners:
            try:
                callback(active)
            except Exception as e:
                log.error(f"Activity listener error: {e}", exc_info=True)
