"""
Shared fixtures: an in-memory transport network standing in for OBS.
"""

import json
from unittest.mock import MagicMock

import pytest

from obs_counter.core import ConnectionRegistry, ContextConfig
from obs_counter.display import DisplayNotifier


class FakeTransport:
    """Records outbound frames; the test plays the OBS side."""

    def __init__(self, url, listener):
        self.url = url
        self.listener = listener
        self.sent = []
        self.is_open = False
        self.closed = False

    def open(self):
        pass

    def send(self, text):
        if self.is_open:
            self.sent.append(text)

    def close(self):
        self.closed = True
        self.is_open = False

    # ── OBS side ──

    def server_open(self):
        self.is_open = True
        self.listener.on_open()

    def server_send(self, message):
        self.listener.on_message(message if isinstance(message, str) else json.dumps(message))

    def server_close(self, error=None):
        self.is_open = False
        if error is not None:
            self.listener.on_error(error)
        self.listener.on_close()

    def hello(self, authentication=None, rpc_version=1):
        d = {"obsWebSocketVersion": "5.1.0", "rpcVersion": rpc_version}
        if authentication is not None:
            d["authentication"] = authentication
        self.server_send({"op": 0, "d": d})

    def identified(self):
        self.server_send({"op": 2, "d": {"negotiatedRpcVersion": 1}})

    def authenticate(self):
        self.server_open()
        self.hello()
        self.identified()

    def sent_json(self):
        return [json.loads(s) for s in self.sent]


class FakeNetwork:
    """TransportFactory that keeps every transport it hands out."""

    def __init__(self):
        self.transports = []

    def __call__(self, url, listener):
        transport = FakeTransport(url, listener)
        self.transports.append(transport)
        return transport

    @property
    def last(self):
        return self.transports[-1]

    def for_url(self, url):
        return [t for t in self.transports if t.url == url]


OBS_URL = "ws://localhost:4455"


def obs_config(**overrides):
    values = dict(enabled=True, url=OBS_URL, credential="", target_field="CounterText", value=5)
    values.update(overrides)
    return ContextConfig(**values)


@pytest.fixture
def network():
    return FakeNetwork()


@pytest.fixture
def registry(network):
    return ConnectionRegistry(transport_factory=network)


@pytest.fixture
def host():
    return MagicMock()


@pytest.fixture
def notifier(registry, host):
    n = DisplayNotifier(registry, host)
    n.attach()
    return n
