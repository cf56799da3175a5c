"""
Configuration constants for the timers add-on
"""
import json
import os

# Add-on identity, used for the config database key and the MQTT topic root
ADDON_ID = os.environ.get("TIMERS_ADDON_ID", "timer-adapter")
ADDON_DESCRIPTION = "Virtual timer devices"

# MQTT broker
MQTT_HOST = os.environ.get("MQTT_HOST", "mosquitto")
MQTT_PORT = int(os.environ.get("MQTT_PORT", "1883"))
MQTT_KEEPALIVE = 60

# Config database (sqlite settings table shared with the gateway)
DB_PATH = os.environ.get(
    "TIMERS_DB_PATH",
    os.path.join(os.path.expanduser("~"), ".webthings", "config", "db.sqlite3"),
)

# Logging
LOG_FILE = os.environ.get("TIMERS_LOG_FILE", "../logs/timers.log")
LOG_LEVEL = os.environ.get("TIMERS_LOG_LEVEL", "INFO")

# HTTP API
API_ENABLED = os.environ.get("TIMERS_API_ENABLED", "true").lower() == "true"
API_HOST = os.environ.get("TIMERS_API_HOST", "0.0.0.0")
API_PORT = int(os.environ.get("TIMERS_API_PORT", "8003"))

# Time intervals (in seconds)
TICK_INTERVAL = 1.0

SECRETS_PATH = os.path.abspath(os.path.join(os.sep, "run", "secrets"))


def get_docker_secrets(name, default=None, secrets_path=SECRETS_PATH):
    """This function fetches a docker secret

    :param name: the name of the docker secret
    :param default: returned when there are no secrets or [name] is missing
    :param secrets_path: the directory where the secrets are stored
    :returns: docker secret
    :raises ValueError: if the secrets cannot be parsed
    """
    try:
        secrets_file = sorted(os.listdir(secrets_path))[0]
    except (FileNotFoundError, IndexError):
        return default

    with open(os.path.join(secrets_path, secrets_file)) as f:
        secrets = json.load(f)
    return secrets.get(name, default)
