import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from host import ActionStatus, MqttHost

##############################################
# Mocked objects
##############################################
connected = SimpleNamespace(is_failure=False)
refused = SimpleNamespace(is_failure=True)


def message(topic, payload=b""):
    return SimpleNamespace(topic=topic, payload=payload)


@pytest.fixture
def mqttclient():
    return MagicMock()


@pytest.fixture
def loop():
    return MagicMock()


@pytest.fixture
def mqtt_host(mqttclient, loop):
    mqtt_host = MqttHost(mqttclient, loop, "timer-adapter")
    mqtt_host.attach(MagicMock())
    return mqtt_host


##############################################
# Tests
##############################################
def test_last_will(mqttclient, loop):
    MqttHost(mqttclient, loop, "timer-adapter")

    mqttclient.will_set.assert_called_once_with(
        "v1/timer-adapter/status", "offline", qos=1, retain=True
    )


def test_on_connect(mqtt_host, mqttclient, loop):
    mqtt_host.on_connect(mqttclient, None, {}, connected, None)

    mqttclient.subscribe.assert_any_call("v1/timer-adapter/+/actions/+")
    mqttclient.subscribe.assert_any_call("v1/timer-adapter/pairing")
    mqttclient.publish.assert_called_once_with(
        "v1/timer-adapter/status", "online", qos=1, retain=True
    )
    loop.call_soon_threadsafe.assert_called_once_with(mqtt_host.adapter.advertise)


def test_on_connect_refused(mqtt_host, mqttclient, loop):
    mqtt_host.on_connect(mqttclient, None, {}, refused, None)

    mqttclient.subscribe.assert_not_called()
    loop.call_soon_threadsafe.assert_not_called()


def test_action_is_handed_to_the_loop(mqtt_host, mqttclient, loop):
    mqtt_host.on_action(mqttclient, None, message("v1/timer-adapter/timer-tea/actions/start"))

    loop.call_soon_threadsafe.assert_called_once_with(
        mqtt_host.adapter.perform_action, "timer-tea", "start"
    )


@pytest.mark.parametrize(
    "topic",
    [
        "v1/other-adapter/timer-tea/actions/start",
        "v1/timer-adapter/timer-tea/events/start",
        "v1/timer-adapter/timer-tea/actions",
        "v1/timer-adapter//actions/start",
    ],
)
def test_malformed_action_topic(mqtt_host, mqttclient, loop, topic, caplog):
    mqtt_host.on_action(mqttclient, None, message(topic))

    loop.call_soon_threadsafe.assert_not_called()
    assert "is malformed" in caplog.text


@pytest.mark.parametrize(
    "payload, timeout",
    [(b"", 60), (b"30", 30), (b"soon", 60)],
)
def test_pairing(mqtt_host, mqttclient, loop, payload, timeout):
    mqtt_host.on_pairing(mqttclient, None, message("v1/timer-adapter/pairing", payload))

    loop.call_soon_threadsafe.assert_called_once_with(
        mqtt_host.adapter.start_pairing, timeout
    )


def test_register_device(mqtt_host, mqttclient):
    mqtt_host.register_device("timer-tea", {"id": "timer-tea", "title": "Tea"})

    topic, payload = mqttclient.publish.call_args.args
    assert topic == "v1/timer-adapter/timer-tea/description"
    assert json.loads(payload) == {"id": "timer-tea", "title": "Tea"}
    assert mqttclient.publish.call_args.kwargs == {"qos": 1, "retain": True}


@pytest.mark.parametrize("value, payload", [(True, "true"), (False, "false"), (12, "12")])
def test_property_changed(mqtt_host, mqttclient, value, payload):
    mqtt_host.notify_property_changed("timer-tea", "running", value)

    mqttclient.publish.assert_called_once_with(
        "v1/timer-adapter/timer-tea/properties/running", payload, qos=1, retain=True
    )


def test_event(mqtt_host, mqttclient):
    mqtt_host.notify_event("interval-pulse", "elapsed")

    topic, payload = mqttclient.publish.call_args.args
    assert topic == "v1/timer-adapter/interval-pulse/events/elapsed"
    assert json.loads(payload)["name"] == "elapsed"
    assert "timestamp" in json.loads(payload)
    assert mqttclient.publish.call_args.kwargs == {"qos": 2, "retain": False}


def test_action_status(mqtt_host, mqttclient):
    mqtt_host.notify_action_status("timer-tea", "start", ActionStatus.COMPLETED)

    mqttclient.publish.assert_called_once_with(
        "v1/timer-adapter/timer-tea/actions/start/status", "completed", qos=1, retain=False
    )


def test_close_publishes_offline(mqtt_host, mqttclient):
    mqtt_host.close()

    mqttclient.publish.assert_called_once_with(
        "v1/timer-adapter/status", "offline", qos=1, retain=True
    )
    mqttclient.publish.return_value.wait_for_publish.assert_called_once_with(2.0)
    mqttclient.disconnect.assert_called_once_with()
    names = [name for name, _, _ in mqttclient.mock_calls]
    assert names.index("disconnect") > names.index("publish().wait_for_publish")


def test_close_disconnects_when_offline_fails(mqtt_host, mqttclient, caplog):
    mqttclient.publish.return_value.wait_for_publish.side_effect = RuntimeError("not connected")

    mqtt_host.close()

    assert "Unable to publish the offline status" in caplog.text
    mqttclient.disconnect.assert_called_once_with()
