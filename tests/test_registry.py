"""
Connection registry: reconcile, set_target_value, fan-out, late callbacks.
"""

import json
from unittest.mock import MagicMock

from obs_counter.core import ContextConfig, SessionStatus

from conftest import OBS_URL, obs_config


def test_reconcile_opens_session(registry, network):
    session = registry.reconcile("ctx1", obs_config())
    assert session is registry.session("ctx1")
    assert session.status is SessionStatus.CONNECTING
    assert len(network.transports) == 1
    assert network.last.url == OBS_URL


def test_reconcile_is_idempotent_once_authenticated(registry, network):
    registry.reconcile("ctx1", obs_config())
    transport = network.last
    transport.authenticate()
    sent_before = list(transport.sent)

    again = registry.reconcile("ctx1", obs_config())

    assert again is registry.session("ctx1")
    assert len(network.transports) == 1
    assert transport.sent == sent_before
    assert not transport.closed


def test_reconcile_replaces_unauthenticated_session(registry, network):
    first = registry.reconcile("ctx1", obs_config())
    network.last.server_open()
    second = registry.reconcile("ctx1", obs_config())
    assert second is not first
    assert network.transports[0].closed
    assert len(network.transports) == 2
    assert first.status is SessionStatus.CLOSED


def test_reconcile_replaces_on_url_or_target_change(registry, network):
    registry.reconcile("ctx1", obs_config())
    network.last.authenticate()

    registry.reconcile("ctx1", obs_config(target_field="Other"))
    assert network.transports[0].closed
    assert registry.session("ctx1").target_field == "Other"

    network.last.authenticate()
    registry.reconcile("ctx1", obs_config(target_field="Other", url="ws://10.0.0.2:4455"))
    assert network.transports[1].closed
    assert network.last.url == "ws://10.0.0.2:4455"


def test_disable_closes_session(registry, network):
    registry.reconcile("ctx1", obs_config())
    network.last.authenticate()

    assert registry.reconcile("ctx1", obs_config(enabled=False)) is None
    assert registry.session("ctx1") is None
    assert network.last.closed

    # idempotent
    assert registry.reconcile("ctx1", obs_config(enabled=False)) is None
    assert len(network.transports) == 1


def test_enabled_without_url_or_target_opens_nothing(registry, network):
    assert registry.reconcile("ctx1", obs_config(url="")) is None
    assert registry.reconcile("ctx2", obs_config(target_field="")) is None
    assert network.transports == []


def test_missing_target_closes_existing_session(registry, network):
    registry.reconcile("ctx1", obs_config())
    registry.reconcile("ctx1", obs_config(target_field=""))
    assert registry.session("ctx1") is None
    assert network.last.closed


def test_reconcile_unknown_context_without_config(registry, network):
    assert registry.reconcile("ghost") is None
    assert network.transports == []


def test_set_target_value_sends_request_when_authenticated(registry, network):
    registry.reconcile("ctx1", obs_config())
    network.last.authenticate()

    assert registry.set_target_value("ctx1", 12) is True
    assert registry.set_target_value("ctx1", 13) is True

    requests = [m for m in network.last.sent_json() if m["op"] == 6]
    assert [r["d"]["requestData"] for r in requests] == [
        {"inputName": "CounterText", "inputSettings": {"text": "12"}},
        {"inputName": "CounterText", "inputSettings": {"text": "13"}},
    ]
    ids = [int(r["d"]["requestId"]) for r in requests]
    assert ids[1] > ids[0]
    assert all(r["d"]["requestType"] == "SetInputSettings" for r in requests)


def test_set_target_value_noop_until_authenticated(registry, network):
    registry.reconcile("ctx1", obs_config())
    network.last.server_open()
    network.last.hello()
    assert registry.set_target_value("ctx1", 3) is False
    assert registry.set_target_value("nobody", 3) is False
    assert all(m["op"] != 6 for m in network.last.sent_json())


def test_remove_closes_and_drops_everything(registry, network):
    registry.reconcile("ctx1", obs_config())
    record = registry.record("ctx1")
    record.press_timer = MagicMock()
    timer = record.press_timer

    assert registry.remove("ctx1") is True
    assert "ctx1" not in registry
    assert network.last.closed
    timer.cancel.assert_called_once()
    assert registry.contexts_for_url(OBS_URL) == set()
    assert registry.remove("ctx1") is False


def test_late_callbacks_after_remove_are_ignored(registry, network):
    listener = MagicMock()
    registry.add_status_listener(listener)
    registry.reconcile("ctx1", obs_config())
    transport = network.last
    registry.remove("ctx1")

    transport.is_open = True
    transport.hello()
    transport.identified()
    transport.server_close()

    listener.assert_not_called()
    assert "ctx1" not in registry


def test_url_index_follows_config_changes(registry):
    registry.add("a", obs_config())
    registry.add("b", obs_config())
    registry.add("c", obs_config(url="ws://other:4455"))
    assert registry.contexts_for_url(OBS_URL) == {"a", "b"}

    registry.update_config("b", obs_config(url="ws://other:4455"))
    assert registry.contexts_for_url(OBS_URL) == {"a"}
    assert registry.contexts_for_url("ws://other:4455") == {"b", "c"}


def test_fan_out_on_authentication_and_close(registry, network):
    listener = MagicMock()
    registry.add_status_listener(listener)
    registry.reconcile("a", obs_config(credential="one"))
    registry.reconcile("b", obs_config(credential="two"))
    registry.reconcile("c", obs_config(url="ws://elsewhere:4455"))
    ta, tb, _ = network.transports

    ta.authenticate()
    notified = sorted(call.args[0] for call in listener.call_args_list)
    assert notified == ["a", "b"]

    # authentication is per session, not shared by URL
    assert registry.is_authenticated("a")
    assert not registry.is_authenticated("b")

    listener.reset_mock()
    tb.server_close()
    assert sorted(call.args[0] for call in listener.call_args_list) == ["a", "b"]


def test_same_url_contexts_authenticate_independently(registry, network):
    registry.reconcile("a", obs_config(credential="pw"))
    registry.reconcile("b", obs_config(credential="other"))
    ta, tb = network.transports
    assert ta is not tb

    for t in (ta, tb):
        t.server_open()
        t.hello(authentication={"salt": "S", "challenge": "C"})

    auth_a = ta.sent_json()[0]["d"]["authentication"]
    auth_b = tb.sent_json()[0]["d"]["authentication"]
    assert auth_a == "VWC60yMM5XWsmGiCZZnUciqVhEzf7nvaE8mOkpgD2KQ="
    assert auth_a != auth_b


def test_transport_error_surfaces_as_closed(registry, network):
    registry.reconcile("ctx1", obs_config())
    network.last.server_close(error=OSError("connection refused"))
    session = registry.session("ctx1")
    assert session.status is SessionStatus.CLOSED
    assert isinstance(session.last_error, OSError)


def test_activity_listener_first_and_last(registry):
    events = []
    registry.add_activity_listener(events.append)
    registry.add("a", ContextConfig())
    registry.add("b", ContextConfig())
    registry.remove("a")
    registry.remove("b")
    assert events == [True, False]


def test_close_all(registry, network):
    registry.reconcile("a", obs_config())
    registry.reconcile("b", obs_config())
    registry.close_all()
    assert all(t.closed for t in network.transports)
    assert registry.session("a") is None
    assert len(registry) == 2


def test_request_frames_are_valid_json(registry, network):
    registry.reconcile("ctx1", obs_config())
    network.last.authenticate()
    registry.set_target_value("ctx1", -4)
    assert json.loads(network.last.sent[-1])["d"]["requestData"]["inputSettings"]["text"] == "-4"
