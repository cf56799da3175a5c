import logging
import secrets

logger = logging.getLogger(__name__)


def generate_id() -> str:
    return secrets.token_hex(16)


def encodeValue(value) -> str:
    """ Encode a property value as an MQTT payload
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def getTags(topic: str, root: str):
    """ Split a topic below [root] into its device, endpoint and name parts

    v1/<addon>/<deviceId>/actions/<name> -> {"deviceId", "endpoint", "name"}
    """
    prefix = root + "/"
    assert topic.startswith(prefix)
    subtopics = topic[len(prefix):].split("/")
    assert len(subtopics) == 3 and all(subtopics)
    return {
        "deviceId": subtopics[0],
        "endpoint": subtopics[1],
        "name": subtopics[2],
    }


def parseTimeout(value: bytes, default: int):
    decoded_value = value.decode().strip()
    if not decoded_value:
        return default
    try:
        return int(decoded_value)
    except ValueError:
        logger.warning(f"Pairing timeout '{decoded_value}' is not valid, using {default}")
        return default
