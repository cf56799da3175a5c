import asyncio
import logging
from logging import handlers
import os
import signal

import paho.mqtt.client as mqtt

from adapter import TimerAdapter
from api import create_app, create_server
import config
from database import ConfigDatabase
from host import MqttHost
from scheduler import LoopScheduler

logger = logging.getLogger()


def setup_logging():
    log_dir = os.path.dirname(config.LOG_FILE)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    handler = handlers.RotatingFileHandler(
        config.LOG_FILE, mode="a", maxBytes=1024 * 1024 * 10, backupCount=2
    )
    formatter = logging.Formatter(
        "%(asctime)s <%(levelname).1s> %(funcName)s:%(lineno)s: %(message)s"
    )
    handler.setFormatter(formatter)
    console = logging.StreamHandler()
    console.setFormatter(formatter)

    logger.setLevel(config.LOG_LEVEL)
    logger.addHandler(handler)
    logger.addHandler(console)


def create_mqtt_client() -> mqtt.Client:
    mqttclient = mqtt.Client(
        mqtt.CallbackAPIVersion.VERSION2, client_id=f"{config.ADDON_ID}-adapter"
    )
    token = config.get_docker_secrets("mqtt_token")
    if token:
        mqttclient.username_pw_set(token, "_")
    return mqttclient


async def main():
    loop = asyncio.get_running_loop()
    exit_event = asyncio.Event()

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, exit_event.set)

    mqttclient = create_mqtt_client()
    host = MqttHost(mqttclient, loop, config.ADDON_ID)
    adapter = TimerAdapter(
        host,
        ConfigDatabase(config.DB_PATH, config.ADDON_ID),
        LoopScheduler(loop),
        logger=logging.getLogger("timers"),
    )
    host.attach(adapter)
    adapter.load()

    # Devices are advertised from the connect callback
    mqttclient.connect_async(config.MQTT_HOST, config.MQTT_PORT, config.MQTT_KEEPALIVE)
    mqttclient.loop_start()

    waiters = [asyncio.create_task(exit_event.wait())]
    server = None
    if config.API_ENABLED:
        server = create_server(create_app(adapter))
        waiters.append(asyncio.create_task(server.serve()))

    logger.info("Starting...")

    try:
        await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    finally:
        exit_event.set()
        if server is not None:
            server.should_exit = True
        await asyncio.gather(*waiters, return_exceptions=True)
        adapter.unload()
        # Waits for the offline status, off the loop
        await asyncio.to_thread(host.close)
        mqttclient.loop_stop()
        logger.info("Exiting...")


def run():
    setup_logging()
    asyncio.run(main())


if __name__ == "__main__":
    run()
