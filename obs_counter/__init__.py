"""
obs-counter — Counter buttons that mirror their value into an OBS text source.

Modules:
  core/     — OBS WebSocket transport, v5 handshake, session registry, health monitor
  display/  — Button title / OBS / inspector fan-out
  host/     — Device host bridge & counter action handlers
  api/      — FastAPI status endpoints
  config/   — Settings, env loading, YAML config
"""

__version__ = "1.0.0"
__author__ = "linkit"
