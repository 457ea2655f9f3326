"""Calibrate a set of lasers in one go.

Each laser is measured once per output channel (if its light is split between
several fibres, say).  The measurements of all channels of a laser are fitted
jointly, so that the resulting transfer function maps input voltage to the
expected power of a single channel.
"""
import logging
import re
import typing
from typing import Callable, Dict, List, Mapping, Sequence, Tuple  # pylint: disable=unused-import

import numpy as np

from .. import constants as cs
from ..analysis.fitting import fit_coefficients
from ..analysis.splines import LookupSplines, fit_splines, mean_power
from ..analysis.tables import CalibrationRow
from ..errors import ConfigurationError, InconsistentInput, InvalidArgument
from ..util.console import Operator  # pylint: disable=unused-import
from .session import MeasurementRecord, MeasurementSession  # pylint: disable=unused-import

LOGGER = logging.getLogger('lasercal.controller.batch')

LASER_ARG = re.compile(r'^(\d+)(?:_(\w+))?$', re.ASCII)
"""A laser given as <wavelength in nm>[_<name>]."""

LaserSpec = typing.NamedTuple('LaserSpec', [('position', int),
                                            ('wavelength_nm', int),
                                            ('name', str)])
"""A laser to calibrate.  `position` selects it on the laser tester."""

BatchResult = typing.NamedTuple('BatchResult',
                                [('rows', List[CalibrationRow]),
                                 ('voltages', np.ndarray),
                                 ('records', List[List[MeasurementRecord]]),
                                 ('labels', List[str]),
                                 ('splines', List[LookupSplines])])
"""Everything a batch calibration produced.

`records`
    Indexed by laser, then by channel.
`labels`
    One per record, laser-major, e.g. "Laser0_505nm_ch1_green".
`splines`
    Lookup splines of each laser, through the mean power of its channels.
"""

SessionFactory = Callable[[LaserSpec, int], MeasurementSession]  # pylint: disable=invalid-name


def parse_laser_args(tokens: Sequence[str]) -> List[LaserSpec]:
    """Turn command line tokens like "505" or "633_red" into laser specs.

    The position of a token is the laser's index on the laser tester.  Lasers
    without a name are called <nm>_<position>.

    :raises InvalidArgument: Malformed token, zero wavelength, or explicit
                names that are duplicate or not valid identifiers.
    """
    if not tokens:
        raise InvalidArgument("Usage: lasercal wlen0 [wlen1] [wlen2] ...")
    lasers = []
    for position, token in enumerate(tokens):
        match = LASER_ARG.match(str(token))
        if not match:
            raise InvalidArgument("Invalid format of arg {}: {}".format(position, token))
        wavelength = int(match.group(1))
        if wavelength <= 0:
            raise InvalidArgument("All wavelengths must be positive integers.")
        name = match.group(2)
        if name:
            if not name.isidentifier():
                raise InvalidArgument("Laser name {} is not a valid "
                                      "identifier.".format(name))
        else:
            name = '{}_{}'.format(wavelength, position)
        lasers.append(LaserSpec(position, wavelength, name))
    names = [laser.name for laser in lasers]
    if len(set(names)) != len(names):
        raise InvalidArgument("Laser names must be unique to each laser.")
    return lasers


def check_meter_coefficients(lasers: Sequence[LaserSpec],
                             coefficients: Mapping[int, float]) -> None:
    """Make sure there is a meter coefficient for every laser's wavelength.

    :raises ConfigurationError: Some wavelengths lack a coefficient.
    """
    missing = [str(laser.wavelength_nm) for laser in lasers
               if laser.wavelength_nm not in coefficients]
    if missing:
        raise ConfigurationError("Missing pm100d_coef_*nm entry for wavelengths: "
                                 "{}".format(', '.join(missing)))


def channel_label(laser: LaserSpec, channel: int) -> str:
    return 'Laser{}_{}nm_ch{}_{}'.format(laser.position, laser.wavelength_nm,
                                         channel, laser.name)


class BatchCalibrationDriver:
    """Measure every channel of every laser, then fit each laser."""

    def __init__(self, lasers: Sequence[LaserSpec], session_factory: SessionFactory,
                 operator: Operator, channels: int = 1) -> None:
        """
        :param session_factory: Builds the session measuring a given laser
                    channel.
        :param channels: Number of output channels per laser.
        """
        if isinstance(channels, bool) or not isinstance(channels, int) or channels < 1:
            raise InvalidArgument("Number of output channels must be an "
                                  "integer of 1 or more.")
        if not lasers:
            raise InvalidArgument("Got no lasers to calibrate.")
        if any(laser.position not in cs.LASER_INDEX_RANGE for laser in lasers):
            raise InvalidArgument("The laser tester drives at most {} "
                                  "lasers.".format(len(cs.LASER_INDEX_RANGE)))
        self.lasers = list(lasers)
        self.channels = channels
        self._make_session = session_factory
        self._operator = operator

    async def run(self) -> BatchResult:
        """Measure all lasers and fit their transfer functions.

        :raises InconsistentInput: Measurements used different voltages.
        """
        records = []  # type: List[List[MeasurementRecord]]
        labels = []  # type: List[str]
        for laser in self.lasers:
            laser_records = []
            for channel in range(self.channels):
                await self._operator.confirm(
                    "Please prepare to measure laser {}, {}nm, chan {}, {} "
                    "power.".format(laser.position, laser.wavelength_nm,
                                    channel, laser.name))
                LOGGER.info("Measuring %s.", channel_label(laser, channel))
                session = self._make_session(laser, channel)
                laser_records.append(await session.run())
                labels.append(channel_label(laser, channel))
            records.append(laser_records)

        voltages = records[0][0].input_v
        if not all(np.array_equal(voltages, record.input_v)
                   for laser_records in records for record in laser_records):
            raise InconsistentInput("Voltage input mismatch across measured lasers.")

        rows = []
        splines = []
        for laser, laser_records in zip(self.lasers, records):
            pooled_volts = np.tile(voltages, len(laser_records))
            pooled_mw = np.concatenate([r.output_mw for r in laser_records])
            coefficients = fit_coefficients(pooled_volts, pooled_mw)
            LOGGER.info("Laser %s (%snm): %s", laser.position,
                        laser.wavelength_nm, coefficients)
            rows.append(CalibrationRow(laser.position, laser.wavelength_nm,
                                       laser.name, coefficients))
            splines.append(fit_splines(
                voltages, mean_power([r.output_mw for r in laser_records])))
        return BatchResult(rows, voltages, records, labels, splines)
