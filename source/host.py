import asyncio
from datetime import datetime, timezone
import json
import logging
from typing import Any, Optional

import paho.mqtt.client as mqtt

import config
import utils

logger = logging.getLogger(__name__)


class ActionStatus:
    PENDING = "pending"
    COMPLETED = "completed"


class Host:
    """
    The gateway side of the add-on. Devices and the adapter only talk to the
    gateway through these calls, every one of them fire-and-forget.
    """

    def register_device(self, device_id: str, description: dict):
        raise NotImplementedError

    def notify_property_changed(self, device_id: str, name: str, value: Any):
        raise NotImplementedError

    def notify_event(self, device_id: str, name: str):
        raise NotImplementedError

    def notify_action_status(self, device_id: str, name: str, status: str):
        raise NotImplementedError


class MqttHost(Host):
    """
    Host backed by the MQTT broker. Everything lives below v1/<addonId>:

        status                              online/offline (retained, last will)
        <deviceId>/description              device description (retained)
        <deviceId>/properties/<name>        property value (retained)
        <deviceId>/events/<name>            event notification
        <deviceId>/actions/<name>           incoming action requests
        <deviceId>/actions/<name>/status    pending/completed
        pairing                             incoming pairing requests

    paho delivers messages on its own network thread, so incoming requests are
    handed over to the event loop that owns the devices.
    """

    PAIRING_TIMEOUT = 60

    def __init__(
        self,
        mqtt_client: mqtt.Client,
        loop: asyncio.AbstractEventLoop,
        addon_id: str = config.ADDON_ID,
    ):
        self.mqtt_client = mqtt_client
        self.loop = loop
        self.root = f"v1/{addon_id}"
        self.status_topic = f"{self.root}/status"
        self.actions_topic = f"{self.root}/+/actions/+"
        self.pairing_topic = f"{self.root}/pairing"
        self.adapter = None

        self.mqtt_client.will_set(self.status_topic, "offline", qos=1, retain=True)

    def attach(self, adapter):
        self.adapter = adapter
        self.mqtt_client.message_callback_add(self.actions_topic, self.on_action)
        self.mqtt_client.message_callback_add(self.pairing_topic, self.on_pairing)
        self.mqtt_client.on_connect = self.on_connect

    def on_connect(self, client: mqtt.Client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            logger.error(f"Unable to connect to the MQTT broker: {reason_code}")
            return

        logger.info("Connected to the MQTT broker")
        client.subscribe(self.actions_topic)
        client.subscribe(self.pairing_topic)
        client.publish(self.status_topic, "online", qos=1, retain=True)

        # Retained descriptions may have been lost while we were away
        if self.adapter is not None:
            self.loop.call_soon_threadsafe(self.adapter.advertise)

    def on_action(self, client: mqtt.Client, userdata, msg: mqtt.MQTTMessage) -> None:
        try:
            tags = utils.getTags(msg.topic, self.root)
            assert tags["endpoint"] == "actions"
        except AssertionError:
            logger.error(f'The topic: "{msg.topic}" is malformed. Ignoring action')
            return

        if self.adapter is None:
            logger.warning(f"No adapter attached, dropping action {tags['name']}")
            return

        self.loop.call_soon_threadsafe(
            self.adapter.perform_action, tags["deviceId"], tags["name"]
        )

    def on_pairing(self, client: mqtt.Client, userdata, msg: mqtt.MQTTMessage) -> None:
        if self.adapter is None:
            return

        timeout = utils.parseTimeout(msg.payload, self.PAIRING_TIMEOUT)
        self.loop.call_soon_threadsafe(self.adapter.start_pairing, timeout)

    def register_device(self, device_id: str, description: dict):
        self.mqtt_client.publish(
            f"{self.root}/{device_id}/description",
            json.dumps(description),
            qos=1,
            retain=True,
        )

    def notify_property_changed(self, device_id: str, name: str, value: Any):
        self.mqtt_client.publish(
            f"{self.root}/{device_id}/properties/{name}",
            utils.encodeValue(value),
            qos=1,
            retain=True,
        )

    def notify_event(self, device_id: str, name: str):
        payload = {
            "name": name,
            "timestamp": datetime.now(tz=timezone.utc).isoformat(),
        }
        self.mqtt_client.publish(
            f"{self.root}/{device_id}/events/{name}",
            json.dumps(payload),
            qos=2,
            retain=False,
        )

    def notify_action_status(self, device_id: str, name: str, status: str):
        self.mqtt_client.publish(
            f"{self.root}/{device_id}/actions/{name}/status",
            status,
            qos=1,
            retain=False,
        )

    def close(self, timeout: Optional[float] = 2.0):
        info = self.mqtt_client.publish(self.status_topic, "offline", qos=1, retain=True)
        try:
            info.wait_for_publish(timeout)
        except (RuntimeError, ValueError):
            logger.warning("Unable to publish the offline status", exc_info=True)
        self.mqtt_client.disconnect()
