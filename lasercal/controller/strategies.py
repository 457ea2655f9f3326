"""Ways of measuring the laser output power at a given input voltage."""
from enum import Enum
import logging
import math
import typing

from ..errors import InvalidArgument, RetryableReading
from ..util.console import Operator  # pylint: disable=unused-import
from .range_control import AmplificationRangeController

LOGGER = logging.getLogger('lasercal.controller.strategies')

ManualEntry = typing.NamedTuple('ManualEntry', [('milliwatts', float)])
"""A power reading typed in by the operator."""

AutomatedRead = typing.NamedTuple('AutomatedRead', [('milliwatts', float),
                                                    ('volts', float),
                                                    ('stage', int)])
"""A power reading taken from a meter.

`volts`
    Raw meter output, zero offset included.
`stage`
    Meter range the reading was taken in.
"""


class MeasurementMethod(Enum):
    """How laser output power is measured."""
    MANUAL = 'manual'  # Operator reads a meter and types in the values.
    PM100D = 'pm100d'  # PM100D analogue output is read by the signal host.


class ManualStrategy:
    """The operator reads the power meter and types in each value."""

    def __init__(self, operator: Operator) -> None:
        self._operator = operator

    async def prepare(self) -> None:
        pass

    async def take_sample(self, volts: float) -> ManualEntry:
        """Ask the operator for the power at the current input voltage.

        :raises RetryableReading: The answer isn't a finite, non-negative
                    number.
        """
        answer = await self._operator.ask(
            "Output power at {:.3f}V in mW:".format(volts))
        try:
            milliwatts = float(answer)
        except ValueError:
            raise RetryableReading('"{}" is not a number.'.format(answer)) from None
        if not (math.isfinite(milliwatts) and milliwatts >= 0):
            raise RetryableReading('"{}" is not a valid power.'.format(answer))
        return ManualEntry(milliwatts)


class MeterStrategy:
    """Read a PM100D meter through the signal host."""

    def __init__(self, meter: AmplificationRangeController) -> None:
        self.meter = meter

    async def prepare(self) -> None:
        """Check the hardware and set up the initial meter range.

        :raises HardwareMissing: Meter accumulator unit is not running.
        """
        await self.meter.check_hardware()
        await self.meter.start()

    async def take_sample(self, volts: float) -> AutomatedRead:  # pylint: disable=unused-argument
        """:raises RetryableReading: Meter had to switch ranges."""
        milliwatts = await self.meter.read_power()
        return AutomatedRead(milliwatts, self.meter.last_reading, self.meter.stage)


Strategy = typing.Union[ManualStrategy, MeterStrategy]  # pylint: disable=invalid-name


def make_strategy(method: MeasurementMethod, operator: Operator,
                  meter: AmplificationRangeController = None) -> Strategy:
    """Get the strategy implementing given measurement method.

    :param meter: Required for the PM100D method.
    """
    method = MeasurementMethod(method)
    if method == MeasurementMethod.MANUAL:
        return ManualStrategy(operator)
    if meter is None:
        raise InvalidArgument("Method {} needs a power meter.".format(method.value))
    return MeterStrategy(meter)
