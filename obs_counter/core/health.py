"""
core/health.py — Periodic sweep that heals dropped or stalled OBS sessions.

Every `interval` seconds each enabled context is checked; anything without an
open, authenticated session is reconciled, which opens a fresh connection.
There is no backoff: a permanently unreachable OBS costs one connect attempt
per context per tick.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .registry import ConnectionRegistry

log = logging.getLogger(__name__)


class HealthMonitor:
    def __init__(self, registry: ConnectionRegistry, interval: float = 12.0):
        self._registry = registry
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    def attach(self) -> None:
        """Run only while the registry has at least one context."""
        self._registry.add_activity_listener(self._on_activity)
        if len(self._registry):
            self.start()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        log.debug(f"Health monitor started ({self.interval}s)")

    def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        log.debug("Health monitor stopped")

    def tick(self) -> list[str]:
        healed = []
        for context in self._registry.enabled_contexts():
            session = self._registry.session(context)
            if session is not None and session.is_authenticated and session.is_open:
                continue
            state = session.status.value if session else "no session"
            try:
                if self._registry.reconcile(context) is not None:
                    log.info(f"[{context}] health check: {state}, reconnecting")
                    healed.append(context)
            except Exception as e:
                log.error(f"[{context}] health check failed: {e}", exc_info=True)
        return healed

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.tick()

    def _on_activity(self, active: bool) -> None:
        if active:
            self.start()
        else:
            self.stop()
