"""Fixtures shared by the lasercal test modules.

Pytest picks these up automatically.  Hardware is replaced by a
``SimulatedHost`` running the units of a typical laser calibration setup.
"""
from typing import Iterable

import pytest

from lasercal.drivers.signal_host import RunMode
from lasercal.drivers.simulated_host import SimulatedHost
from lasercal.drivers.signal_units import UnitRegistry


def make_rig(mode: RunMode = RunMode.IDLE, mode_lag: int = 0,
             with_meter: bool = False) -> SimulatedHost:
    """A signal host running a laser tester and, optionally, a meter unit."""
    host = SimulatedHost(mode=mode, mode_lag=mode_lag)
    host.add_unit('LaserTester1', {'Wavelength': (0, 0, 1),
                                   'Enable': (0, 0, 1),
                                   'VoltsSF': (0., 0., 5.5)})
    if with_meter:
        host.add_unit('AvgPMvolts', {'Strobe': (0, 0, 1),
                                     'out_Main': (0., -10., 10.)})
    return host


def feed_meter(host: SimulatedHost, volts: Iterable[float]) -> None:
    """Make the meter unit return the given readings, in order."""
    readings = iter(volts)
    host.on_read('AvgPMvolts', 'out_Main', lambda: next(readings))


@pytest.fixture
def rig():
    """A signal host in Idle mode with nothing but a laser tester."""
    return make_rig()


@pytest.fixture
def meter_rig():
    """A signal host in Preview mode with laser tester and meter unit."""
    return make_rig(mode=RunMode.PREVIEW, with_meter=True)


@pytest.fixture
def registry():
    """A fresh unit registry, so tests don't claim each other's units."""
    return UnitRegistry()
