"""
api/server.py — FastAPI status API for uptime monitoring and debugging.

  GET  /health                      summary (always 200)
  GET  /healthz                     503 while any OBS-enabled button is unauthenticated
  GET  /contexts                    per-button OBS session + display state
  POST /contexts/{context}/reconnect  force a reconcile for one button

Credentials are never included in responses.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException

from obs_counter import __version__
from obs_counter.core import ConnectionRegistry, HealthMonitor
from obs_counter.display import DisplayNotifier

log = logging.getLogger(__name__)


def _context_info(registry: ConnectionRegistry, notifier: DisplayNotifier, context: str) -> dict:
    config = registry.config(context)
    session = registry.session(context)
    return {
        "context": context,
        "enabled": config.enabled if config else False,
        "url": config.url if config else "",
        "target_field": config.target_field if config else "",
        "status": session.status.value if session else None,
        "last_error": str(session.last_error) if session and session.last_error else None,
        "display": notifier.render(context).text,
    }


def create_app(
    registry: ConnectionRegistry,
    notifier: DisplayNotifier,
    monitor: Optional[HealthMonitor] = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("obs-counter status API starting")
        yield
        log.info("obs-counter status API shutting down.")

    app = FastAPI(
        title="obs-counter",
        description="OBS session status for counter buttons",
        version=__version__,
        lifespan=lifespan,
    )

    def unhealthy() -> list[str]:
        return [
            c for c in registry.contexts()
            if registry.config(c).requires_obs and not registry.is_authenticated(c)
        ]

    # ─────────────────────────────────────────────────────────────────
    # Health
    # ─────────────────────────────────────────────────────────────────

    @app.get("/health", tags=["System"])
    async def health():
        contexts = registry.contexts()
        return {
            "status": "ok",
            "contexts": len(contexts),
            "authenticated": sum(1 for c in contexts if registry.is_authenticated(c)),
            "monitor_running": monitor.running if monitor else False,
            "version": __version__,
        }

    @app.get("/healthz", tags=["System"])
    async def healthz():
        """Machine-readable health check. Returns 503 while any OBS session is down."""
        pending = unhealthy()
        if pending:
            raise HTTPException(
                status_code=503,
                detail={"status": "degraded", "reason": "OBS not authenticated", "contexts": pending},
            )
        return {"status": "ok"}

    # ─────────────────────────────────────────────────────────────────
    # Contexts
    # ─────────────────────────────────────────────────────────────────

    @app.get("/contexts", tags=["Contexts"])
    async def list_contexts():
        return [_context_info(registry, notifier, c) for c in registry.contexts()]

    @app.post("/contexts/{context}/reconnect", tags=["Contexts"])
    async def reconnect(context: str):
        if context not in registry:
            raise HTTPException(status_code=404, detail=f"Unknown context '{context}'")
        registry.reconcile(context)
        notifier.update(context)
        return _context_info(registry, notifier, context)

    return app
