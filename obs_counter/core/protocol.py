"""
core/protocol.py — OBS WebSocket 5.x wire codec.

Every frame is a JSON object {"op": <int>, "d": <object>}. Only the subset
needed to identify a session and push text into an input is modelled here:

  op 0  Hello             server → client
  op 1  Identify          client → server
  op 2  Identified        server → client
  op 6  Request           client → server
  op 8  Event             server → client (informational)
  op 9  RequestResponse   server → client (informational)

Authentication (when Hello carries a challenge):
  secret   = base64(sha256(password + salt))
  response = base64(sha256(secret + challenge))
"""

from __future__ import annotations

import base64
import hashlib
import json
from enum import IntEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, ValidationError

from .errors import ProtocolParseError

SET_INPUT_SETTINGS = "SetInputSettings"


class OpCode(IntEnum):
    HELLO = 0
    IDENTIFY = 1
    IDENTIFIED = 2
    REQUEST = 6
    EVENT = 8
    REQUEST_RESPONSE = 9


# ── Inbound models ────────────────────────────────────────────────────

class Envelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    op: StrictInt
    d: dict[str, Any]


class AuthChallenge(BaseModel):
    salt: StrictStr
    challenge: StrictStr


class Hello(BaseModel):
    model_config = ConfigDict(extra="allow")

    rpcVersion: StrictInt
    authentication: Optional[AuthChallenge] = None

    @property
    def auth_required(self) -> bool:
        return self.authentication is not None


class RequestStatus(BaseModel):
    model_config = ConfigDict(extra="allow")

    result: bool = False
    code: int = 0
    comment: str = ""


class RequestResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    requestType: str = ""
    requestId: str = ""
    requestStatus: RequestStatus = RequestStatus()


def parse_envelope(raw: str) -> Envelope:
    try:
        return Envelope.model_validate_json(raw)
    except ValidationError as e:
        raise ProtocolParseError(f"invalid OBS frame: {e.error_count()} error(s)") from e


def parse_hello(envelope: Envelope) -> Hello:
    try:
        return Hello.model_validate(envelope.d)
    except ValidationError as e:
        raise ProtocolParseError(f"invalid Hello payload: {e.error_count()} error(s)") from e


def parse_request_response(envelope: Envelope) -> RequestResponse:
    try:
        return RequestResponse.model_validate(envelope.d)
    except ValidationError as e:
        raise ProtocolParseError(f"invalid RequestResponse payload: {e.error_count()} error(s)") from e


# ── Auth ──────────────────────────────────────────────────────────────

def _b64_sha256(text: str) -> str:
    return base64.b64encode(hashlib.sha256(text.encode("utf-8")).digest()).decode("ascii")


def auth_response(password: str, salt: str, challenge: str) -> str:
    secret = _b64_sha256(password + salt)
    return _b64_sha256(secret + challenge)


# ── Outbound frames ───────────────────────────────────────────────────

def _frame(op: OpCode, d: dict) -> str:
    return json.dumps({"op": int(op), "d": d})


def identify(rpc_version: int, authentication: Optional[str] = None) -> str:
    d: dict[str, Any] = {"rpcVersion": rpc_version}
    if authentication is not None:
        d["authentication"] = authentication
    d["eventSubscriptions"] = 0
    return _frame(OpCode.IDENTIFY, d)


def set_input_text(request_id: str, input_name: str, text: str) -> str:
    return _frame(OpCode.REQUEST, {
        "requestType": SET_INPUT_SETTINGS,
        "requestId": request_id,
        "requestData": {
            "inputName": input_name,
            "inputSettings": {"text": text},
        },
    })
