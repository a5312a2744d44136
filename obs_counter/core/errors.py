"""
core/errors.py — Exception types shared across obs-counter.
"""

from __future__ import annotations


class ObsCounterError(Exception):
    pass


class TransportError(ObsCounterError):
    """Connect, send or network failure on an OBS WebSocket."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{url}: {message}")
        self.url = url


class ProtocolParseError(ObsCounterError):
    """A frame that is not a well-formed OBS v5 message."""


class ConfigurationError(ObsCounterError):
    """Invalid process configuration (config file, launch arguments)."""
