"""Read a ThorLabs PM100D power meter through the signal host.

The meter's analogue output is averaged by a signal accumulator unit on the
signal host.  The meter itself has to be operated by hand: whenever a reading
comes close to the upper limit of the current range, the operator is asked to
switch to the next range and a new zero reading is taken.  The reading that
triggered the change is dropped, as it was likely clipped.

Stage transitions:

    UNINITIALIZED -> AT_STAGE(i) -> AWAITING_ZERO(i) -> READY(i)
    READY(i) -> SATURATED(i) -> AWAITING_ZERO(i + 1) -> READY(i + 1)
"""
import asyncio
from enum import IntEnum
import logging
import math
from typing import Sequence

from .. import constants as cs
from ..drivers.signal_host import SignalHost  # pylint: disable=unused-import
from ..errors import (ConfigurationError, HardwareMissing, InvalidArgument,
                      RetryableReading)
from ..util.console import Operator  # pylint: disable=unused-import

LOGGER = logging.getLogger('lasercal.controller.range_control')


class RangeStatus(IntEnum):
    """Where the controller is in setting up the current meter range."""
    UNINITIALIZED = 0
    AT_STAGE = 1  # Operator sets the meter range.
    AWAITING_ZERO = 2  # Beam is blocked for a zero reading.
    READY = 3
    SATURATED = 4  # Last reading was too close to the range limit.


class AmplificationRangeController:
    """Keep track of the power meter's range and zero offset.

    :attr stage: Index into ``magnitudes`` of the current range.
    :attr ceiling: Upper limit of the current range in mW.
    :attr zero_offset: Meter output in volts with the beam blocked.
    """

    def __init__(self, host: SignalHost, operator: Operator,
                 coefficient: float = cs.PM100D_COEFFICIENT,
                 magnitudes: Sequence[float] = cs.PM100D_MAGNITUDES,
                 threshold: float = cs.PM100D_THRESHOLD,
                 accumulator: str = cs.PM100D_ACCUMULATOR,
                 settle_time: float = cs.PM100D_SETTLE_TIME,
                 full_scale_volts: float = cs.PM100D_FULL_SCALE_VOLTS,
                 initial_stage: int = 0) -> None:
        """
        :param coefficient: Wavelength correction of the meter.  See
                    ``constants.PM100D_COEFFICIENT``.
        :param magnitudes: Ranges to step through, relative to
                    ``coefficient``.  Lowest first.
        :param threshold: Readings above this fraction of the current range
                    limit trigger a switch to the next range.
        :param accumulator: Name of the averaging signal unit.
        :param settle_time: Average for this many seconds per reading.
        :param full_scale_volts: Meter output at the range limit.
        :param initial_stage: Index of the range to start each laser with.
        :raises InvalidArgument: Any of the above is out of range.
        """
        if not (math.isfinite(coefficient) and coefficient > 0):
            raise InvalidArgument("Meter coefficient must be positive.")
        if not magnitudes or not all(math.isfinite(m) and m > 0 for m in magnitudes):
            raise InvalidArgument("Meter magnitudes must be positive numbers.")
        if not 0 < threshold <= 1:
            raise InvalidArgument("Range threshold must be in (0, 1].")
        if not (math.isfinite(settle_time) and settle_time >= 0):
            raise InvalidArgument("Settle time must be zero or positive.")
        if not (math.isfinite(full_scale_volts) and full_scale_volts > 0):
            raise InvalidArgument("Full scale output must be positive.")
        if initial_stage not in range(len(magnitudes)):
            raise InvalidArgument("Initial stage must index the magnitudes.")

        self.coefficient = float(coefficient)
        self.magnitudes = tuple(float(m) for m in magnitudes)
        self.threshold = float(threshold)
        self.accumulator = accumulator
        self.settle_time = float(settle_time)
        self.full_scale_volts = float(full_scale_volts)
        self.initial_stage = initial_stage

        self.status = RangeStatus.UNINITIALIZED
        self.stage = initial_stage
        self.ceiling = float('nan')
        self.zero_offset = float('nan')
        self.last_reading = float('nan')
        """Meter output in volts of the latest power reading."""

        self._host = host
        self._operator = operator

    async def check_hardware(self) -> None:
        """:raises HardwareMissing: The accumulator unit isn't running."""
        if self.accumulator not in await self._host.list_units():
            raise HardwareMissing("Signal host is missing the signal "
                                  "accumulator {}.".format(self.accumulator))

    async def start(self) -> None:
        """Reset to the initial range and take a zero reading.

        Do this at the start of every laser.
        """
        await self._enter_stage(self.initial_stage)

    async def rerange(self) -> None:
        """Switch the meter to the next range.

        :raises ConfigurationError: There is no higher range left.
        """
        next_stage = self.stage + 1
        if next_stage >= len(self.magnitudes):
            raise ConfigurationError(
                "Laser power exceeds the highest meter range ({:.3f}mW).".format(
                    self.ceiling))
        await self._enter_stage(next_stage)

    async def read_volts(self) -> float:
        """Average the meter output over the settle time."""
        await self._set_accumulator(cs.ACCUMULATOR_STROBE, 1)
        try:
            await asyncio.sleep(self.settle_time)
            volts = float(await self._host.get_parameter(
                self.accumulator, cs.ACCUMULATOR_OUTPUT))
        finally:
            await self._set_accumulator(cs.ACCUMULATOR_STROBE, 0)
        return volts

    async def read_power(self) -> float:
        """Take a power reading in mW.

        Readings below the zero offset count as zero power.

        :raises RetryableReading: The reading came too close to the range limit
                    and was dropped.  The meter is at the next range now.
        :raises ConfigurationError: See ``rerange()``.
        """
        if self.status != RangeStatus.READY:
            raise RuntimeError("Meter range is not set up. Call start() first.")
        volts = await self.read_volts()
        self.last_reading = volts
        milliwatts = max(0., (volts - self.zero_offset) / self.full_scale_volts
                         * self.ceiling)
        if milliwatts > self.threshold * self.ceiling:
            LOGGER.info("Reading of %.3fmW is close to the %.3fmW range limit.",
                        milliwatts, self.ceiling)
            self.status = RangeStatus.SATURATED
            await self.rerange()
            raise RetryableReading("Meter range was changed, measure again.")
        return milliwatts

    async def _enter_stage(self, stage: int) -> None:
        self.status = RangeStatus.AT_STAGE
        self.stage = stage
        self.ceiling = self.coefficient * self.magnitudes[stage]
        LOGGER.debug("Entering meter range %s (%.3fmW).", stage, self.ceiling)
        await self._operator.confirm(
            "Please set PM100D Manual range to {:.3f}mW.".format(self.ceiling))
        await self._operator.confirm(
            "Please block laser emission for zero measurement.")
        self.status = RangeStatus.AWAITING_ZERO
        self.zero_offset = await self.read_volts()
        LOGGER.debug("Meter zero offset is %sV.", self.zero_offset)
        await self._operator.confirm("Please un-block laser emission.")
        self.status = RangeStatus.READY

    async def _set_accumulator(self, param: str, value: float) -> None:
        if not await self._host.set_parameter(self.accumulator, param, value):
            raise ConnectionError("Failed to set {} of {}.".format(
                param, self.accumulator))
