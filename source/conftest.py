import logging

import pytest

from adapter import TimerAdapter
from database import ConfigDatabase
from host import Host
from models import IntervalConfig, TimerConfig


##############################################
# Mocked objects
##############################################
class FakeHandle:
    def __init__(self, seq, when, callback, interval=None):
        self.seq = seq
        self.when = when
        self.callback = callback
        self.interval = interval
        self.done = False
        self._cancelled = False

    @property
    def active(self):
        return not (self.done or self._cancelled)

    def run(self):
        if self.interval is None:
            self.done = True
        else:
            self.when += self.interval
        self.callback()

    def cancel(self):
        self._cancelled = True

    def cancelled(self):
        return self._cancelled


class FakeScheduler:
    """Scheduler with a manual clock, time only moves on advance()"""

    def __init__(self):
        self.now = 0.0
        self.handles = []

    def time(self):
        return self.now

    def _add(self, delay, callback, interval=None):
        handle = FakeHandle(len(self.handles), self.now + delay, callback, interval)
        self.handles.append(handle)
        return handle

    def call_later(self, delay, callback):
        return self._add(delay, callback)

    def call_every(self, interval, callback):
        return self._add(interval, callback, interval)

    @property
    def active_handles(self):
        return [handle for handle in self.handles if handle.active]

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [h for h in self.active_handles if h.when <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: (h.when, h.seq))
            self.now = handle.when
            handle.run()
        self.now = target


class RecordingHost(Host):
    """Host that keeps everything it is told, stamped with the scheduler time"""

    def __init__(self, clock=lambda: 0.0):
        self.clock = clock
        self.registered = []
        self.trace = []
        self.action_statuses = []

    def register_device(self, device_id, description):
        self.registered.append((device_id, description))

    def notify_property_changed(self, device_id, name, value):
        self.trace.append(("property", self.clock(), device_id, name, value))

    def notify_event(self, device_id, name):
        self.trace.append(("event", self.clock(), device_id, name, None))

    def notify_action_status(self, device_id, name, status):
        self.action_statuses.append((device_id, name, status))

    def properties(self, device_id=None):
        return [
            (name, value)
            for kind, _, device, name, value in self.trace
            if kind == "property" and device_id in (None, device)
        ]

    def events(self, device_id=None):
        return [
            (time, name)
            for kind, time, device, name, _ in self.trace
            if kind == "event" and device_id in (None, device)
        ]

    def clear(self):
        self.trace.clear()


class SequentialIds:
    def __init__(self):
        self.count = 0

    def __call__(self):
        self.count += 1
        return f"generated{self.count}"


##############################################
# Fixtures
##############################################
@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def host(scheduler):
    return RecordingHost(clock=scheduler.time)


@pytest.fixture
def database(tmp_path):
    return ConfigDatabase(str(tmp_path / "config" / "db.sqlite3"), "timer-adapter")


@pytest.fixture
def adapter(host, database, scheduler):
    adapter = TimerAdapter(
        host,
        database,
        scheduler,
        logger=logging.getLogger("timers.test"),
        id_generator=SequentialIds(),
    )
    yield adapter
    adapter.unload()


def store(database, config):
    with database:
        database.save_config(config)


def timer_config(seconds=3, name="Tea", id="tea"):
    return TimerConfig(id=id, name=name, seconds=seconds)


def interval_config(seconds=3, name="Pulse", id="pulse"):
    return IntervalConfig(id=id, name=name, seconds=seconds)
