import logging
from typing import Callable, Optional

from pydantic import ValidationError

from database import ConfigDatabase, ConfigStoreError
from devices_types import CountdownTimer, Device, Interval, PrecisionTimer
from host import ActionStatus, Host
from models import AddonConfig, IntervalConfig, TimerConfig
import utils


class TimerAdapter:
    """
    Builds the timer devices from the add-on config and advertises them to the
    host. Devices are tracked by their config id, one dict per device kind.

    Attributes:
        timers (dict[str, CountdownTimer]): Countdown timers.
        precision_timers (dict[str, PrecisionTimer]): Precision timers.
        intervals (dict[str, Interval]): Repeating intervals.
    """

    def __init__(
        self,
        host: Host,
        database: ConfigDatabase,
        scheduler,
        logger: Optional[logging.Logger] = None,
        id_generator: Callable[[], str] = utils.generate_id,
    ):
        self.host = host
        self.database = database
        self.scheduler = scheduler
        self.logger = logger or logging.getLogger(__name__)
        self.log_level = self.logger.level
        self.id_generator = id_generator

        self.timers: dict[str, CountdownTimer] = {}
        self.precision_timers: dict[str, PrecisionTimer] = {}
        self.intervals: dict[str, Interval] = {}

    @property
    def devices(self) -> list[Device]:
        """All the devices, timers first, then precision timers and intervals"""
        return [
            *self.timers.values(),
            *self.precision_timers.values(),
            *self.intervals.values(),
        ]

    def get_device(self, device_id: str) -> Optional[Device]:
        for device in self.devices:
            if device.id == device_id:
                return device
        return None

    def load(self) -> bool:
        """
        Create the devices from the stored config and save it back, so the ids
        generated for new entries are kept.

        The devices of a previous load are only replaced once the config has
        been read. If the store cannot be opened or read they keep running.

        Returns:
            bool: False if the config store failed. Devices created before a
            failed save are kept.
        """
        try:
            self.database.open()
        except ConfigStoreError:
            self.logger.error("Unable to load the add-on config", exc_info=True)
            return False

        try:
            config = self.database.load_config()
            options = self._parse_options(config)
            self.unload()
            self._create_devices(config, options)
            self.database.save_config(config)
        except ConfigStoreError:
            self.logger.error("Unable to load the add-on config", exc_info=True)
            return False
        finally:
            self.database.close()

        self.logger.info(
            f"Loaded {len(self.timers)} timers, {len(self.precision_timers)} "
            f"precision timers and {len(self.intervals)} intervals"
        )
        return True

    def _parse_options(self, config: dict) -> AddonConfig:
        """
        Validate the top level of the config. A bad value is logged and left
        out, so it falls back to its default instead of rejecting everything.
        """
        values = dict(config)
        try:
            options = AddonConfig.model_validate(values)
        except ValidationError as exc:
            for error in exc.errors():
                key = error["loc"][0]
                self.logger.error(
                    f"Ignoring config value {key}={values.pop(key, None)!r}: {error['msg']}"
                )
            options = AddonConfig.model_validate(values)

        self.logger.setLevel(logging.DEBUG if options.debug else self.log_level)
        return options

    def _create_devices(self, config: dict, options: AddonConfig):
        for device_config in self._parse_entries(config, "timers", TimerConfig):
            self.timers[device_config.id] = CountdownTimer(
                device_config, self.host, self.scheduler, self.logger
            )

        for device_config in self._parse_entries(config, "precisionTimers", TimerConfig):
            self.precision_timers[device_config.id] = PrecisionTimer(
                device_config, self.host, self.scheduler, self.logger
            )

        for device_config in self._parse_entries(config, "intervals", IntervalConfig):
            self.intervals[device_config.id] = Interval(
                device_config,
                self.host,
                self.scheduler,
                self.logger,
                progress=not options.deactivate_progress_bar,
            )

    def _parse_entries(self, config: dict, key: str, model: type[TimerConfig]):
        entries = config.get(key) or []
        if not isinstance(entries, list):
            # Already reported by _parse_options
            return

        seen = set()
        for entry in entries:
            if not isinstance(entry, dict):
                self.logger.error(f"Ignoring {key} entry {entry!r}: not an object")
                continue

            if not entry.get("id"):
                entry["id"] = self.id_generator()

            try:
                device_config = model.model_validate(entry)
            except ValidationError as exc:
                self.logger.error(
                    f"Ignoring {key} entry {entry.get('name')!r}: "
                    f"{exc.error_count()} invalid fields"
                )
                self.logger.debug(str(exc))
                continue

            if device_config.id in seen:
                self.logger.error(
                    f"Ignoring {key} entry {device_config.name!r}: "
                    f"duplicated id {device_config.id}"
                )
                continue

            seen.add(device_config.id)
            yield device_config

    def advertise(self):
        for device in self.devices:
            self.host.register_device(device.id, device.as_dict())

    def start_pairing(self, timeout_seconds: int = 60):
        self.logger.info(f"Start pairing ({timeout_seconds} s)")
        self.advertise()

    def perform_action(self, device_id: str, name: str) -> bool:
        """
        Run an action requested by the host. The host always gets the action
        back as completed, even when the device or the action is unknown.
        """
        self.host.notify_action_status(device_id, name, ActionStatus.PENDING)
        try:
            device = self.get_device(device_id)
            if device is None:
                self.logger.warning(f"Unknown device {device_id}, ignoring action {name}")
                return False
            return device.perform_action(name)
        except Exception:
            self.logger.error(f"{device_id}: Error executing action {name}", exc_info=True)
            return False
        finally:
            self.host.notify_action_status(device_id, name, ActionStatus.COMPLETED)

    def unload(self):
        for device in self.devices:
            device.close()

        self.timers.clear()
        self.precision_timers.clear()
        self.intervals.clear()
