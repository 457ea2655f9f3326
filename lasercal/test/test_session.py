"""Tests for measuring a single laser.

This module is not to be run manually but will instead be found and invoked
automatically by the Pytest test suite.
"""
import asyncio

import numpy as np
import pytest

from lasercal.controller.range_control import AmplificationRangeController
from lasercal.controller.session import (MeasurementSession, check_volt_range,
                                         make_voltages)
from lasercal.controller.strategies import (AutomatedRead, ManualEntry,
                                            MeasurementMethod, MeterStrategy,
                                            make_strategy)
from lasercal.drivers.signal_host import RunMode
from lasercal.drivers.signal_units import LaserTester
from lasercal.errors import (HardwareMissing, InvalidArgument,
                             RetriesExhausted, RetryableReading, Timeout)
from lasercal.util.console import ScriptedOperator

from .conftest import feed_meter, make_rig


def make_session(host, registry, operator, voltages=(0., 2.5, 5.), **kwargs):
    tester = LaserTester(host, registry=registry)
    strategy = make_strategy(MeasurementMethod.MANUAL, operator)
    kwargs.setdefault('mode_interval', 0)
    return MeasurementSession(host, tester, strategy, np.array(voltages), **kwargs)


class FailingStrategy:
    """Breaks the connection to the host while taking the first sample."""

    def __init__(self, host):
        self.host = host

    async def prepare(self):
        pass

    async def take_sample(self, volts):
        self.host.unreachable = True
        raise ValueError("Meter on fire.")


# Input voltages


def test_single_voltage_is_upper_limit():
    assert np.allclose(make_voltages(1, (0., 5.)), [5.])


def test_evenly_spaced_voltages():
    assert np.allclose(make_voltages(5, (0., 5.)), [0., 1.25, 2.5, 3.75, 5.])


def test_explicit_voltages_are_kept():
    assert np.allclose(make_voltages([5., 0., 2.5, 2.5]), [5., 0., 2.5, 2.5])


@pytest.mark.parametrize('count', [0, -3, 2.5, True, np.nan, 'five'])
def test_invalid_voltage_count(count):
    with pytest.raises(InvalidArgument):
        make_voltages(count)


@pytest.mark.parametrize('values', [[], [1., 6.], [np.inf]])
def test_invalid_voltages(values):
    with pytest.raises(InvalidArgument):
        make_voltages(values, (0., 5.))


@pytest.mark.parametrize('volt_range', [(5., 0.), (1., 1.), (-1., 5.),
                                        (0., 6.), (0.,), 'ab'])
def test_invalid_volt_range(volt_range):
    with pytest.raises(InvalidArgument):
        check_volt_range(volt_range)


# Manual entry


def test_manual_entry_rejects_garbage():
    operator = ScriptedOperator(['abc', '-1', 'nan', '2.5'])
    strategy = make_strategy('manual', operator)

    async def sample():
        for _ in range(3):
            with pytest.raises(RetryableReading):
                await strategy.take_sample(1.)
        return await strategy.take_sample(1.)

    assert asyncio.run(sample()) == ManualEntry(2.5)
    assert operator.messages[0] == "Output power at 1.000V in mW:"


def test_meter_strategy_needs_meter():
    with pytest.raises(InvalidArgument):
        make_strategy(MeasurementMethod.PM100D, ScriptedOperator())


# Sessions


def test_manual_session(rig, registry):
    operator = ScriptedOperator(['1.0', 'abc', '3.2', '-1', '6.1'])
    session = make_session(rig, registry, operator)
    record = asyncio.run(session.run())
    assert np.allclose(record.input_v, [0., 2.5, 5.])
    assert np.allclose(record.output_mw, [1.0, 3.2, 6.1])


def test_voltage_is_set_once_per_step(rig, registry):
    operator = ScriptedOperator(['1.0', 'abc', '3.2', '6.1'])
    asyncio.run(make_session(rig, registry, operator).run())
    voltages = [value for unit, param, value in rig.writes if param == 'VoltsSF']
    assert voltages == [0., 2.5, 5., 0]


def test_session_cleans_up(rig, registry):
    operator = ScriptedOperator(['1.0', '3.2', '6.1'])
    session = make_session(rig, registry, operator, laser_index=1)
    asyncio.run(session.run())
    assert rig.value('LaserTester1', 'VoltsSF') == 0
    assert rig.value('LaserTester1', 'Enable') == 0
    assert rig.value('LaserTester1', 'Wavelength') == 1
    assert rig.mode == RunMode.IDLE
    assert rig.mode_requests == [RunMode.PREVIEW, RunMode.IDLE]
    assert not registry.is_claimed('LaserTester', 'LaserTester1')


def test_inverted_ttl(rig, registry):
    tester = LaserTester(rig, registry=registry, ttl_invert=True)
    session = MeasurementSession(
        rig, tester, make_strategy('manual', ScriptedOperator(['1'])),
        np.array([5.]), mode_interval=0)
    asyncio.run(session.run())
    enable_writes = [value for unit, param, value in rig.writes if param == 'Enable']
    assert enable_writes == [0, 1]


def test_runtime_mode_is_kept(registry):
    host = make_rig(mode=RunMode.RECORD)
    asyncio.run(make_session(host, registry, ScriptedOperator(['1', '2', '3'])).run())
    assert host.mode_requests == []
    assert host.mode == RunMode.RECORD


def test_session_cleans_up_after_failure(rig, registry):
    operator = ScriptedOperator(['1.0'])
    session = make_session(rig, registry, operator, max_retries=2)
    with pytest.raises(RetriesExhausted):
        asyncio.run(session.run())
    assert rig.value('LaserTester1', 'VoltsSF') == 0
    assert rig.value('LaserTester1', 'Enable') == 0
    assert rig.mode == RunMode.IDLE


def test_retry_budget(rig, registry):
    """Two rejected readings are fine with a budget of two."""
    operator = ScriptedOperator(['x', 'y', '1', '2', '3'])
    record = asyncio.run(make_session(rig, registry, operator, max_retries=2).run())
    assert np.allclose(record.output_mw, [1, 2, 3])


def test_zero_retry_budget(rig, registry):
    operator = ScriptedOperator(['x', '1', '2', '3'])
    with pytest.raises(RetriesExhausted):
        asyncio.run(make_session(rig, registry, operator, max_retries=0).run())


def test_cleanup_failure_doesnt_mask_error(rig, registry):
    tester = LaserTester(rig, registry=registry)
    session = MeasurementSession(rig, tester, FailingStrategy(rig),
                                 np.array([1.]), mode_interval=0)
    with pytest.raises(ValueError, match='on fire'):
        asyncio.run(session.run())
    assert not registry.is_claimed('LaserTester', 'LaserTester1')


def test_mode_switch_timeout(registry):
    host = make_rig(mode_lag=None)
    session = make_session(host, registry, ScriptedOperator(['1', '2', '3']),
                           mode_checks=3)
    with pytest.raises(Timeout):
        asyncio.run(session.run())
    assert host.value('LaserTester1', 'Enable') == 0


def test_missing_tester(registry):
    host = make_rig()
    session = MeasurementSession(
        host, LaserTester(host, 'LaserTester2', registry=registry),
        make_strategy('manual', ScriptedOperator()), np.array([1.]))
    with pytest.raises(HardwareMissing):
        asyncio.run(session.run())


def test_invalid_session_settings(rig, registry):
    with pytest.raises(InvalidArgument):
        make_session(rig, registry, ScriptedOperator(), laser_index=2)
    with pytest.raises(InvalidArgument):
        make_session(rig, registry, ScriptedOperator(), max_retries=-1)


def test_meter_session(meter_rig, registry):
    """The saturated reading at 5V is dropped and taken again."""
    operator = ScriptedOperator()
    # Zero, 0V, 2.5V, saturated 5V, new zero, 5V.
    feed_meter(meter_rig, [0., 0.2, 1.0, 1.95, 0.01, 0.3])
    meter = AmplificationRangeController(meter_rig, operator, coefficient=4.5,
                                         settle_time=0)
    strategy = MeterStrategy(meter)
    session = MeasurementSession(meter_rig, LaserTester(meter_rig, registry=registry),
                                 strategy, np.array([0., 2.5, 5.]))
    record = asyncio.run(session.run())
    assert np.allclose(record.output_mw, [0.2 / 2 * 0.045, 1.0 / 2 * 0.045,
                                          0.29 / 2 * 0.45])
    assert meter.stage == 1
    assert meter_rig.mode_requests == []


def test_meter_sample_carries_raw_reading(meter_rig):
    feed_meter(meter_rig, [0.1, 0.5])
    meter = AmplificationRangeController(meter_rig, ScriptedOperator(),
                                         coefficient=4.5, settle_time=0)
    strategy = MeterStrategy(meter)

    async def sample():
        await strategy.prepare()
        return await strategy.take_sample(1.)

    assert asyncio.run(sample()) == AutomatedRead(
        pytest.approx(0.4 / 2 * 0.045), pytest.approx(0.5), 0)


def test_meter_noise_below_zero_is_no_power(meter_rig, registry):
    """A reading just under the zero offset must not turn into negative mW."""
    feed_meter(meter_rig, [0.02, 0.019, 0.5, 1.0])
    meter = AmplificationRangeController(meter_rig, ScriptedOperator(),
                                         coefficient=4.5, settle_time=0)
    session = MeasurementSession(meter_rig, LaserTester(meter_rig, registry=registry),
                                 MeterStrategy(meter), np.array([0., 2.5, 5.]))
    record = asyncio.run(session.run())
    assert np.all(record.output_mw >= 0)
    assert record.output_mw[0] == 0
    assert np.allclose(record.output_mw[1:], [0.48 / 2 * 0.045, 0.98 / 2 * 0.045])
