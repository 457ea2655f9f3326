"""Measure the transfer function of one laser (or one laser output channel).

A session steps the laser through a list of input voltages and takes one
valid power reading at each.  The signal host is put into a runtime mode for
the duration of the session if necessary.  Whatever happens, the laser is
switched off and the host's run mode is restored when the session ends.
"""
import logging
import math
import typing
from typing import Optional, Sequence, Union

import numpy as np

from .. import constants as cs
from .. import logger
from ..drivers.signal_host import (RUNTIME_MODES, RunMode, SignalHost,
                                   ensure_run_mode)
from ..drivers.signal_units import LaserTester
from ..errors import InvalidArgument, RetriesExhausted, RetryableReading
from ..util import asyncio_tools as tools
from .strategies import Strategy  # pylint: disable=unused-import

LOGGER = logging.getLogger('lasercal.controller.session')

MeasurementRecord = typing.NamedTuple('MeasurementRecord',
                                      [('input_v', np.ndarray),
                                       ('output_mw', np.ndarray)])
"""Index-aligned input voltages and resulting output power of a laser."""


def make_voltages(count_or_values: Union[int, Sequence[float], np.ndarray],
                  volt_range: cs.VoltRange = cs.INPUT_VOLT_RANGE) -> np.ndarray:
    """Get the input voltages to test.

    :param count_or_values: Either the number of voltages to spread evenly
                over ``volt_range``, or the actual voltages.  A count of one
                only tests the upper range limit.  Explicit voltages are kept
                in order and may repeat.
    :param volt_range: Inclusive (low, high) range.  Must lie within
                ``constants.INPUT_VOLT_LIMITS``.
    :raises InvalidArgument: Count isn't a positive integer, range is
                invalid or voltages exceed it.
    """
    low, high = check_volt_range(volt_range)
    if np.ndim(count_or_values) == 0:
        count = count_or_values
        is_number = isinstance(count, (int, float, np.integer, np.floating))
        if (isinstance(count, bool) or not is_number or not math.isfinite(count)
                or count < 1 or count % 1):
            raise InvalidArgument("Number of input voltages must be a positive "
                                  "integer, got {}.".format(count))
        if count == 1:
            return np.array([high])
        return np.linspace(low, high, int(count))

    values = np.asarray(count_or_values, dtype=float).ravel()
    if values.size == 0:
        raise InvalidArgument("Got an empty list of input voltages.")
    if not np.all(np.isfinite(values)):
        raise InvalidArgument("Input voltages must be finite.")
    if np.any(values < low) or np.any(values > high):
        raise InvalidArgument("Input voltages not in range [{}, {}].".format(low, high))
    return values


def check_volt_range(volt_range: cs.VoltRange) -> cs.VoltRange:
    """:raises InvalidArgument: Not a valid input voltage range."""
    try:
        low, high = (float(v) for v in volt_range)
    except (TypeError, ValueError) as err:
        raise InvalidArgument("Voltage range must be two numbers.") from err
    min_volts, max_volts = cs.INPUT_VOLT_LIMITS
    if not (math.isfinite(low) and math.isfinite(high)
            and min_volts <= low < high <= max_volts):
        raise InvalidArgument("Voltage range must be ascending and within "
                              "[{}, {}].".format(min_volts, max_volts))
    return low, high


class MeasurementSession:
    """One sweep over all input voltages of one laser."""

    def __init__(self, host: SignalHost, tester: LaserTester, strategy: Strategy,
                 voltages: np.ndarray, laser_index: int = 0,
                 max_retries: Optional[int] = cs.SAMPLE_MAX_RETRIES,
                 mode_checks: int = cs.MODE_CHECKS,
                 mode_interval: float = cs.MODE_CHECK_INTERVAL,
                 label: str = None) -> None:
        """
        :param tester: Feeds the laser.  If not open yet, it is opened for the
                    duration of the session.
        :param voltages: See ``make_voltages()``.
        :param laser_index: Which of the tester's lasers to use.
        :param max_retries: Give up on a voltage after rejecting this many
                    readings.  None retries forever.
        :param label: Measurements are logged as quantity of this name.
        """
        if laser_index not in cs.LASER_INDEX_RANGE:
            raise InvalidArgument("Laser index must be one of {}.".format(
                cs.LASER_INDEX_RANGE))
        if max_retries is not None and max_retries < 0:
            raise InvalidArgument("Retry budget can't be negative.")
        self.voltages = np.array(voltages, dtype=float)
        self.laser_index = laser_index
        self.max_retries = max_retries
        self.mode_checks = mode_checks
        self.mode_interval = mode_interval
        self.label = label or 'laser{}'.format(laser_index)
        self._host = host
        self._tester = tester
        self._strategy = strategy
        self._initial_mode = None  # type: Optional[RunMode]

    async def run(self) -> MeasurementRecord:
        """Measure the output power at every input voltage.

        :raises HardwareMissing: Tester or meter unit isn't running.
        :raises Timeout: Couldn't put the host into a runtime mode.
        :raises RetriesExhausted: Too many readings were rejected in a row.
        :raises ConfigurationError: Meter ran out of ranges.
        """
        opened_tester = not self._tester.is_open
        if opened_tester:
            await self._tester.open()
        try:
            self._initial_mode = await self._host.get_mode()
            if self._initial_mode not in RUNTIME_MODES:
                await ensure_run_mode(self._host, RunMode.PREVIEW,
                                      self.mode_checks, self.mode_interval)
            await self._strategy.prepare()
            await self._tester.select_laser(self.laser_index)
            await self._tester.set_enabled(True)

            output = np.zeros(self.voltages.size)
            LOGGER.info("Input(V),Output(mW)")
            for index, volts in enumerate(self.voltages):
                await self._tester.set_voltage(float(volts))
                output[index] = await self._take_valid_sample(float(volts))
                LOGGER.info("%.3fV,%.3fmW", volts, output[index])
                logger.log_quantity(self.label, '{}\t{}'.format(volts, output[index]))
        finally:
            await self._clean_up()
            if opened_tester:
                await self._tester.close()
        return MeasurementRecord(self.voltages.copy(), output)

    async def _take_valid_sample(self, volts: float) -> float:
        rejected = 0
        while True:
            try:
                sample = await self._strategy.take_sample(volts)
            except RetryableReading as err:
                if self.max_retries is not None and rejected >= self.max_retries:
                    raise RetriesExhausted("Gave up at {:.3f}V after {} rejected "
                                           "readings.".format(volts, rejected + 1)) from err
                rejected += 1
                LOGGER.warning("Measuring %.3fV again: %s", volts, err)
                continue
            return sample.milliwatts

    async def _clean_up(self) -> None:
        """Switch off the laser and restore the run mode.  Never raises."""
        await tools.safe_async_call(self._tester.set_voltage, 0)
        await tools.safe_async_call(self._tester.set_enabled, False)
        if self._initial_mode is not None:
            await tools.safe_async_call(self._restore_mode, self._initial_mode)

    async def _restore_mode(self, mode: RunMode) -> None:
        if await self._host.get_mode() != mode:
            await ensure_run_mode(self._host, mode, self.mode_checks,
                                  self.mode_interval)
