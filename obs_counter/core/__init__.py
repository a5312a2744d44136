"""core — OBS session management."""
from .errors import ConfigurationError, ObsCounterError, ProtocolParseError, TransportError
from .handshake import Handshake, SessionStatus
from .health import HealthMonitor
from .models import ContextConfig, ContextDefaults
from .registry import ConnectionRegistry, ContextRecord
from .session import Session
from .transport import WebSocketTransport, open_websocket

__all__ = [
    "ConfigurationError",
    "ConnectionRegistry",
    "ContextConfig",
    "ContextDefaults",
    "ContextRecord",
    "Handshake",
    "HealthMonitor",
    "ObsCounterError",
    "ProtocolParseError",
    "Session",
    "SessionStatus",
    "TransportError",
    "WebSocketTransport",
    "open_websocket",
]
