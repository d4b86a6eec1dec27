"""Shared fixtures: manual scheduler and sample configuration records."""

import pytest

from arcticfox.config_writer import build_configuration
from arcticfox.models import Configuration, DeviceInfo
from arcticfox.scheduler import Scheduler, TimerHandle


class FakeTimer(TimerHandle):
    """Timer that only runs when a test calls ``fire()``."""

    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True

    @property
    def active(self):
        return not (self.cancelled or self.fired)

    def fire(self):
        if self.active:
            self.fired = True
            self.callback()


class FakeScheduler(Scheduler):
    """Records every call_later; nothing runs on its own."""

    def __init__(self):
        self.timers = []

    def call_later(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self):
        return [t for t in self.timers if t.active]

    def fire_all(self):
        for timer in self.active:
            timer.fire()


@pytest.fixture
def scheduler():
    return FakeScheduler()


def make_config(settings_version=9, firmware_build=170603) -> Configuration:
    """Configuration that passes the 'current' version gate by default."""
    config = Configuration(info=DeviceInfo(
        settings_version=settings_version,
        product_id='E052',
        hardware_version=106,
        max_device_power=75.0,
        number_of_batteries=1,
        display_size=0,
        firmware_version=170603,
        firmware_build=firmware_build,
    ))
    config.profiles[0].name = 'SS316'
    config.profiles[0].power = 40.5
    config.profiles[0].is_enabled = True
    return config


def make_blob(settings_version=9, firmware_build=170603) -> bytes:
    return build_configuration(make_config(settings_version, firmware_build))


@pytest.fixture
def config_blob():
    return make_blob()
