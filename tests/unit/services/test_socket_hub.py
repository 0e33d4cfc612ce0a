import threading
from unittest.mock import MagicMock

import pytest

from bridge.domain.actuators import Device
from bridge.domain.exceptions import LinkDownError, PublishError
from bridge.domain.telemetry import TelemetrySample
from bridge.enums.events import ConnectionState
from bridge.security.session_gate import SessionGate
from bridge.services.settings_store import SettingsStore
from bridge.services.socket_hub import SocketHub
from bridge.utils.emitters import EmitterService

COMMAND_TOPIC = "tp/esp32/cmd"


@pytest.fixture()
def provider():
    provider = MagicMock()
    provider.resolve_token.side_effect = lambda token: "alice" if token == "good-token" else None
    return provider


@pytest.fixture()
def publisher():
    return MagicMock()


@pytest.fixture()
def settings_store():
    return SettingsStore()


@pytest.fixture()
def hub(fake_sio, provider, publisher, settings_store):
    return SocketHub(
        EmitterService(fake_sio),
        SessionGate(provider),
        settings_store,
        publisher=publisher,
        command_topic=COMMAND_TOPIC,
    )


@pytest.fixture()
def authed_sid(hub):
    hub.connect("sid-1")
    assert hub.authenticate("sid-1", "good-token") is True
    return "sid-1"


def test_connect_reports_last_link_status(hub):
    assert hub.connect("a") is False
    hub.broadcast_link_status(True)
    assert hub.connect("b") is True
    assert hub.connection_count == 2


def test_connect_sends_link_status_to_new_connection(hub, fake_sio):
    hub.broadcast_link_status(True)
    fake_sio.emits.clear()

    hub.connect("a")

    assert fake_sio.events("mqtt_status") == [
        {"event": "mqtt_status", "payload": {"connected": True}, "to": "a", "namespace": "/"}
    ]


def test_status_change_waits_for_initial_status_of_new_connection(hub, fake_sio):
    entered = threading.Event()
    release = threading.Event()
    original_emit = fake_sio.emit

    def slow_emit(event, payload, to=None, namespace="/"):
        if event == "mqtt_status" and to == "late":
            entered.set()
            release.wait(2)
        original_emit(event, payload, to=to, namespace=namespace)

    fake_sio.emit = slow_emit
    connecting = threading.Thread(target=hub.connect, args=("late",))
    connecting.start()
    assert entered.wait(2)

    flipping = threading.Thread(target=hub.broadcast_link_status, args=(True,))
    flipping.start()
    flipping.join(0.2)
    # The flip is held back until the stale status has gone out.
    assert flipping.is_alive()

    release.set()
    connecting.join(2)
    flipping.join(2)

    statuses = [e["payload"]["connected"] for e in fake_sio.events("mqtt_status")]
    assert statuses == [False, True]


def test_new_connection_is_unauthenticated(hub):
    hub.connect("a")
    assert hub.get_connection("a").state is ConnectionState.UNAUTHENTICATED


def test_successful_auth_answers_only_that_connection(hub, fake_sio):
    hub.connect("a")
    hub.connect("b")

    assert hub.authenticate("a", "good-token") is True

    assert fake_sio.events("auth_success") == [
        {"event": "auth_success", "payload": {"username": "alice"}, "to": "a", "namespace": "/"}
    ]
    assert hub.get_connection("a").authenticated
    assert not hub.get_connection("b").authenticated


def test_bad_credential_emits_auth_error(hub, fake_sio):
    hub.connect("a")

    assert hub.authenticate("a", "bad-token") is False

    (event,) = fake_sio.events("auth_error")
    assert event["to"] == "a"
    assert event["payload"] == {"message": "Invalid or expired token"}
    assert hub.get_connection("a").state is ConnectionState.UNAUTHENTICATED


def test_backend_failure_is_reported_distinctly(hub, fake_sio, provider):
    hub.connect("a")
    provider.resolve_token.side_effect = RuntimeError("db locked")

    assert hub.authenticate("a", "good-token") is False

    (event,) = fake_sio.events("auth_error")
    assert event["payload"] == {"message": "Authentication is temporarily unavailable"}


def test_failed_reauth_keeps_connection_authenticated(hub, authed_sid):
    assert hub.authenticate(authed_sid, "bad-token") is False
    assert hub.get_connection(authed_sid).authenticated


def test_unauthenticated_command_never_reaches_broker(hub, fake_sio, publisher):
    hub.connect("a")

    ack = hub.handle_command("a", "LED_ON")

    publisher.publish.assert_not_called()
    assert ack.status == "error"
    assert ack.reason == "unauthenticated"
    (event,) = fake_sio.events("cmd_ack")
    assert event["to"] == "a"
    assert event["payload"]["cmd"] == "LED_ON"
    assert event["payload"]["status"] == "error"


def test_authenticated_command_is_published_and_acked(hub, fake_sio, publisher, authed_sid):
    ack = hub.handle_command(authed_sid, "fan_on")

    publisher.publish.assert_called_once_with(COMMAND_TOPIC, "FAN_ON")
    assert ack.to_wire() == {"cmd": "fan_on", "status": "sent"}
    assert fake_sio.events("cmd_ack")[-1]["payload"] == {"cmd": "fan_on", "status": "sent"}


def test_command_listener_sees_sent_commands(hub, authed_sid):
    seen = []
    hub.add_command_listener(lambda device, on: seen.append((device, on)))

    hub.handle_command(authed_sid, "HUM_OFF")

    assert seen == [(Device.HUMIDIFIER, False)]


@pytest.mark.parametrize("cmd", ["", "LED_BLINK", "PUMP_ON", 7, None, {"cmd": "LED_ON"}])
def test_invalid_command_is_refused(hub, publisher, authed_sid, cmd):
    ack = hub.handle_command(authed_sid, cmd)

    assert ack.reason == "invalid_command"
    publisher.publish.assert_not_called()


def test_link_down_command_is_acked_not_published(hub, publisher, authed_sid):
    publisher.publish.side_effect = LinkDownError("down")

    ack = hub.handle_command(authed_sid, "LED_ON")

    assert ack.status == "error"
    assert ack.reason == "link_down"
    assert ack.message == "MQTT broker not connected"


def test_publish_failure_is_acked(hub, publisher, authed_sid):
    publisher.publish.side_effect = PublishError("queue full")

    ack = hub.handle_command(authed_sid, "LED_OFF")

    assert ack.reason == "publish_failed"


def test_disabled_link_reports_link_down(fake_sio, provider, settings_store):
    hub = SocketHub(
        EmitterService(fake_sio), SessionGate(provider), settings_store, publisher=None, command_topic=COMMAND_TOPIC
    )
    hub.connect("a")
    hub.authenticate("a", "good-token")

    assert hub.handle_command("a", "LED_ON").reason == "link_down"


def test_manual_command_refused_while_automation_on(hub, publisher, settings_store, authed_sid):
    settings_store.merge({"automations": {"led": True}})

    ack = hub.handle_command(authed_sid, "LED_OFF")

    assert ack.reason == "automation_active"
    publisher.publish.assert_not_called()
    # Other devices are unaffected.
    assert hub.handle_command(authed_sid, "FAN_ON").status == "sent"


def test_closed_connection_receives_nothing(hub, fake_sio):
    hub.connect("a")
    hub.disconnect("a")
    fake_sio.emits.clear()

    assert hub.authenticate("a", "good-token") is False
    hub.handle_command("a", "LED_ON")
    hub.broadcast(TelemetrySample(temperature=21.0))

    assert fake_sio.emits == []
    assert hub.get_connection("a") is None


def test_broadcast_goes_to_everyone(hub, fake_sio):
    hub.connect("a")
    hub.broadcast(TelemetrySample(temperature=21.0, humidifier_on=True))

    (event,) = fake_sio.events("telemetry")
    assert event["to"] is None
    assert event["payload"]["temperature"] == 21.0
    assert event["payload"]["humidifier_on"] is True


def test_link_status_and_settings_broadcasts(hub, fake_sio, settings_store):
    hub.broadcast_link_status(True)
    hub.broadcast_settings(settings_store.get())

    assert fake_sio.events("mqtt_status")[0]["payload"] == {"connected": True}
    assert fake_sio.events("settings_updated")[0]["payload"] == settings_store.get().to_dict()
    assert hub.link_connected is True


def test_system_command_emits_automation_cmd(hub, fake_sio, publisher):
    assert hub.issue_system_command(Device.FAN, True) is True

    publisher.publish.assert_called_once_with(COMMAND_TOPIC, "FAN_ON")
    assert fake_sio.events("automation_cmd")[0]["payload"] == {"cmd": "FAN_ON", "status": "sent"}


def test_failed_system_command_is_not_announced(hub, fake_sio, publisher):
    publisher.publish.side_effect = LinkDownError("down")

    assert hub.issue_system_command(Device.LIGHT, False) is False
    assert fake_sio.events("automation_cmd") == []


def test_commands_are_audited(fake_sio, provider, publisher, settings_store):
    audit = MagicMock()
    hub = SocketHub(
        EmitterService(fake_sio),
        SessionGate(provider),
        settings_store,
        publisher=publisher,
        command_topic=COMMAND_TOPIC,
        audit_logger=audit,
    )
    hub.connect("a")
    hub.authenticate("a", "good-token")

    hub.handle_command("a", "LED_ON")

    audit.log_event.assert_called_once_with(actor="alice", action="command", resource="LED_ON", outcome="sent")
