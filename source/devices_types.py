from enum import Enum
import logging
from typing import Any, Optional

import config
from host import Host
from models import IntervalConfig, TimerConfig

SCHEMA_CONTEXT = "https://webthings.io/schemas/"


class Property:
    def __init__(self, name: str, value: Any, metadata: dict):
        self.name = name
        self.value = value
        self.metadata = {"title": name, **metadata}

    def as_dict(self) -> dict:
        return dict(self.metadata)


class NoAction(str, Enum):
    pass


class Device:
    """
    Base class of the virtual devices. A device owns its properties and timer
    handles and reports every change to the host right away.

    Attributes:
        id (str): Identifier of the device on the gateway, <ID_PREFIX>-<config id>.
        name (str): Human readable name, taken from the config.
        properties (dict[str, Property]): Observable state, in declaration order.
        events (dict[str, dict]): Events the device can emit.
    """

    ID_PREFIX = "device"
    TYPES: list[str] = []

    # Actions the host can invoke by name and their descriptions
    Action: type[Enum] = NoAction
    ACTION_DESCRIPTIONS: dict[Enum, str] = {}

    def __init__(
        self,
        device_config: TimerConfig,
        host: Host,
        scheduler,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = device_config
        self.id = f"{self.ID_PREFIX}-{device_config.id}"
        self.name = device_config.name
        self.host = host
        self.scheduler = scheduler
        self.logger = logger or logging.getLogger(__name__)
        self.types = list(self.TYPES)
        self.properties: dict[str, Property] = {}
        self.events: dict[str, dict] = {}

    def add_property(self, name: str, value: Any, **metadata) -> Property:
        prop = Property(name, value, metadata)
        self.properties[name] = prop
        return prop

    def add_event(self, name: str, description: str):
        self.events[name] = {
            "name": name,
            "metadata": {"description": description, "type": "string"},
        }

    def set_property(self, prop: Property, value: Any):
        prop.value = value
        self.host.notify_property_changed(self.id, prop.name, value)

    def emit(self, name: str):
        self.host.notify_event(self.id, name)

    def perform_action(self, name: str) -> bool:
        """
        Run the action called [name]. Names the device does not know come
        straight from the host, they are logged and ignored.

        Returns:
            bool: True if the action exists and was run
        """
        try:
            action = self.Action(name)
        except ValueError:
            self.logger.warning(f"Unknown action {name} for device {self.id}")
            return False

        self.run_action(action)
        return True

    def run_action(self, action: Enum):
        raise NotImplementedError

    def values(self) -> dict[str, Any]:
        return {name: prop.value for name, prop in self.properties.items()}

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.name,
            "@context": SCHEMA_CONTEXT,
            "@type": self.types,
            "description": config.ADDON_DESCRIPTION,
            "properties": {
                name: prop.as_dict() for name, prop in self.properties.items()
            },
            "actions": {
                action.value: {"title": action.value, "description": description}
                for action, description in self.ACTION_DESCRIPTIONS.items()
            },
            "events": {name: dict(event) for name, event in self.events.items()},
        }

    def close(self):
        """Release the timer handles, without notifying the host"""


class TimerAction(str, Enum):
    START = "start"
    RESTART = "restart"
    RESET = "reset"


class CountdownTimer(Device):
    """
    Counts the seconds up to the configured duration once started.

    Idle (running=False, elapsed=False) -> Running (running=True) ->
    Elapsed (running=False, elapsed=True) -> reset -> Idle
    """

    ID_PREFIX = "timer"
    TYPES = ["MultiLevelSensor"]
    Action = TimerAction
    ACTION_DESCRIPTIONS = {
        TimerAction.START: "Start the timer",
        TimerAction.RESTART: "Restart the timer",
        TimerAction.RESET: "Reset the timer",
    }

    def __init__(
        self,
        device_config: TimerConfig,
        host: Host,
        scheduler,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(device_config, host, scheduler, logger)
        self.seconds = 0
        self.timer_handle = None

        self.elapsed_property = self.add_property(
            "elapsed",
            False,
            type="boolean",
            description="Whether the timer has elapsed",
            readOnly=True,
        )
        self.running_property = self.add_property(
            "running",
            False,
            type="boolean",
            description="Whether the timer is currently running",
            readOnly=True,
        )
        self.seconds_property = self.add_property(
            "seconds",
            0,
            **{"@type": "LevelProperty"},
            type="integer",
            minimum=0,
            maximum=device_config.seconds,
            description="The number of seconds",
            readOnly=True,
        )

    @property
    def running(self) -> bool:
        return self.running_property.value

    @property
    def elapsed(self) -> bool:
        return self.elapsed_property.value

    def run_action(self, action: TimerAction):
        match action:
            case TimerAction.START:
                self.start()
            case TimerAction.RESTART:
                self.restart()
            case TimerAction.RESET:
                self.reset()

    def start(self):
        if self.timer_handle is not None:
            return

        if self.elapsed:
            self.logger.info(f"Timer {self.name} has already elapsed, reset it first")
            return

        self.logger.info(f"Starting timer {self.name}")
        self.set_property(self.running_property, True)
        self.timer_handle = self.scheduler.call_every(config.TICK_INTERVAL, self.tick)

    def restart(self):
        self.reset()
        self.start()

    def reset(self):
        if self.timer_handle is not None:
            self.logger.info(f"Resetting timer {self.name}")
            self.timer_handle.cancel()
            self.timer_handle = None

        self.set_property(self.running_property, False)
        self.set_property(self.elapsed_property, False)
        self._set_seconds(0)

    def tick(self):
        self._set_seconds(self.seconds + 1)
        self.logger.debug(f"Timer {self.name}: {self.seconds}/{self.config.seconds}")

        if self.seconds >= self.config.seconds:
            self.finish()

    def finish(self):
        if self.timer_handle is not None:
            self.timer_handle.cancel()
            self.timer_handle = None

        self.logger.info(f"Timer {self.name} elapsed")
        self.set_property(self.running_property, False)
        self.set_property(self.elapsed_property, True)

    def _set_seconds(self, value: int):
        self.seconds = value
        self.set_property(self.seconds_property, value)

    def close(self):
        if self.timer_handle is not None:
            self.timer_handle.cancel()
            self.timer_handle = None


class PrecisionTimerAction(str, Enum):
    START = "start"


class PrecisionTimer(Device):
    """
    Fires a single elapsed event after the configured delay. It has no
    properties: one delayed call instead of a per-second tick keeps the
    sub-second precision.
    """

    ID_PREFIX = "precision-timer"
    Action = PrecisionTimerAction
    ACTION_DESCRIPTIONS = {
        PrecisionTimerAction.START: "Start the timer",
    }

    def __init__(
        self,
        device_config: TimerConfig,
        host: Host,
        scheduler,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(device_config, host, scheduler, logger)
        self.timer_handle = None
        self.add_event("elapsed", "Timer elapsed")

    @property
    def pending(self) -> bool:
        return self.timer_handle is not None

    def run_action(self, action: PrecisionTimerAction):
        match action:
            case PrecisionTimerAction.START:
                self.start()

    def start(self):
        if self.timer_handle is not None:
            return

        self.logger.info(f"Starting precision timer {self.name}")
        self.timer_handle = self.scheduler.call_later(self.config.seconds, self.finish)

    def finish(self):
        try:
            self.logger.info(f"Precision timer {self.name} elapsed")
            self.emit("elapsed")
        finally:
            self.timer_handle = None

    def close(self):
        if self.timer_handle is not None:
            self.timer_handle.cancel()
            self.timer_handle = None


class Interval(Device):
    """
    Emits an elapsed event every [seconds] seconds for as long as it lives.
    The counter can be shown as a progress property.
    """

    ID_PREFIX = "interval"
    TYPES = ["MultiLevelSensor"]

    def __init__(
        self,
        device_config: IntervalConfig,
        host: Host,
        scheduler,
        logger: Optional[logging.Logger] = None,
        progress: bool = True,
    ):
        super().__init__(device_config, host, scheduler, logger)
        self.seconds = 1
        self.seconds_property = None

        if progress:
            self.seconds_property = self.add_property(
                "seconds",
                self.seconds,
                **{"@type": "LevelProperty"},
                type="integer",
                minimum=0,
                maximum=device_config.seconds,
                description="The number of seconds",
                readOnly=True,
            )
        else:
            # MultiLevelSensor requires a level property
            self.types = []

        self.add_event("elapsed", "Interval elapsed")
        self.timer_handle = self.scheduler.call_every(config.TICK_INTERVAL, self.tick)

    def tick(self):
        period = self.config.seconds
        self.seconds += 1

        # The event goes out before the wrap, the property after it
        if self.seconds == period:
            self.emit("elapsed")

        if self.seconds > period:
            self.seconds = 1
            # A one second period never gets through the check above
            if period == 1:
                self.emit("elapsed")

        if self.seconds_property is not None:
            self.set_property(self.seconds_property, self.seconds)

    def close(self):
        if self.timer_handle is not None:
            self.timer_handle.cancel()
            self.timer_handle = None
