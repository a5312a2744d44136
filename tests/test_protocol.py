"""
OBS v5 wire codec: auth vector, frame builders, parse errors.
"""

import json

import pytest

from obs_counter.core import ProtocolParseError, protocol
from obs_counter.core.protocol import OpCode


def test_auth_response_known_vector():
    assert protocol.auth_response("pw", "S", "C") == "VWC60yMM5XWsmGiCZZnUciqVhEzf7nvaE8mOkpgD2KQ="


def test_auth_response_is_padded_base64():
    response = protocol.auth_response("supersecretpassword", "salt", "challenge")
    assert len(response) == 44
    assert response.endswith("=")


def test_identify_without_authentication():
    frame = json.loads(protocol.identify(1))
    assert frame == {"op": 1, "d": {"rpcVersion": 1, "eventSubscriptions": 0}}


def test_identify_with_authentication():
    frame = json.loads(protocol.identify(1, "abc="))
    assert frame["op"] == OpCode.IDENTIFY
    assert frame["d"] == {"rpcVersion": 1, "authentication": "abc=", "eventSubscriptions": 0}


def test_set_input_text_request():
    frame = json.loads(protocol.set_input_text("7", "CounterText", "42"))
    assert frame == {
        "op": 6,
        "d": {
            "requestType": "SetInputSettings",
            "requestId": "7",
            "requestData": {"inputName": "CounterText", "inputSettings": {"text": "42"}},
        },
    }


def test_parse_hello_with_challenge():
    env = protocol.parse_envelope(json.dumps({
        "op": 0,
        "d": {"rpcVersion": 1, "authentication": {"salt": "S", "challenge": "C"}},
    }))
    hello = protocol.parse_hello(env)
    assert hello.auth_required
    assert hello.authentication.salt == "S"
    assert hello.authentication.challenge == "C"


def test_parse_hello_without_challenge():
    env = protocol.parse_envelope('{"op": 0, "d": {"rpcVersion": 1, "obsWebSocketVersion": "5.0.1"}}')
    hello = protocol.parse_hello(env)
    assert not hello.auth_required
    assert hello.rpcVersion == 1


@pytest.mark.parametrize("raw", [
    "not json",
    "[]",
    '{"d": {}}',
    '{"op": "0", "d": {}}',
    '{"op": 0, "d": "hello"}',
])
def test_parse_envelope_rejects_malformed(raw):
    with pytest.raises(ProtocolParseError):
        protocol.parse_envelope(raw)


def test_parse_hello_rejects_bad_challenge():
    env = protocol.parse_envelope('{"op": 0, "d": {"rpcVersion": 1, "authentication": {"salt": 5}}}')
    with pytest.raises(ProtocolParseError):
        protocol.parse_hello(env)


def test_parse_request_response_failure():
    env = protocol.parse_envelope(json.dumps({
        "op": 9,
        "d": {
            "requestType": "SetInputSettings",
            "requestId": "3",
            "requestStatus": {"result": False, "code": 600, "comment": "No source was found"},
        },
    }))
    response = protocol.parse_request_response(env)
    assert response.requestStatus.result is False
    assert response.requestStatus.code == 600
